"""
Funciones de mapeo de payloads de PayOS a value objects.

Todas fallan con `MalformedPayload` en lugar de devolver campos vacíos.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from app.adapters.base import PaymentLinkResult, WebhookPayload
from app.schemas.payment import ProviderPaymentStatus
from app.schemas.payos import (
    CheckoutLinkData,
    PaymentInfoData,
    PayOSEnvelope,
    PayOSWebhookBody,
)
from app.utils.exceptions import MalformedPayload


ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: type[ModelT], raw: Any, what: str) -> ModelT:
    if not isinstance(raw, dict):
        raise MalformedPayload(f"{what} must be a JSON object")
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        fields = ", ".join(".".join(map(str, err["loc"])) for err in e.errors())
        raise MalformedPayload(f"{what} has invalid fields: {fields}") from e


def parse_envelope(raw: Any) -> PayOSEnvelope:
    """Valida la envoltura `{code, desc, data}` de una respuesta de PayOS."""
    return _validate(PayOSEnvelope, raw, "provider response")


def to_payment_link_result(envelope: PayOSEnvelope, order_code: int) -> PaymentLinkResult:
    """Extrae el checkout URL de una respuesta exitosa de creación."""
    data = _validate(CheckoutLinkData, envelope.data, "provider response data")
    return PaymentLinkResult(
        checkout_url=data.checkout_url,
        order_code=data.order_code or order_code,
        payment_link_id=data.payment_link_id,
    )


def to_provider_status(envelope: PayOSEnvelope) -> ProviderPaymentStatus:
    """Extrae el estado de una respuesta exitosa de consulta."""
    return _validate(PaymentInfoData, envelope.data, "provider response data").status


def to_webhook_payload(raw: Any) -> WebhookPayload:
    """Convierte el cuerpo JSON de un webhook en `WebhookPayload`."""
    body = _validate(PayOSWebhookBody, raw, "webhook body")
    return WebhookPayload(
        data=dict(body.data),
        signature=body.signature,
        code=body.code,
        desc=body.desc,
        success=body.success,
        raw=raw,
    )
