"""
Adapter para PayOS.
Firma y envía solicitudes de pago y valida webhooks entrantes.
"""

from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from app.adapters.base import GatewayMode, PaymentRequest, WebhookPayload
from app.adapters.mappers import (
    parse_envelope,
    to_payment_link_result,
    to_provider_status,
)
from app.config import PayOSConfig
from app.schemas.payment import ProviderPaymentStatus
from app.utils.exceptions import MalformedPayload, PaymentCreationFailed
from app.utils.hmac_utils import (
    build_signature_data,
    sign_fields,
    sign_sorted_fields,
    verify_signature,
)


logger = structlog.get_logger(__name__)


class PayOSAdapter:
    """
    Adapter para la pasarela PayOS.

    El modo (mock o live) se decide una sola vez en el constructor a partir
    de `PayOSConfig.mock_mode`. En modo mock nunca se hacen llamadas de red:
    - `get_payment_info` devuelve None
    - `verify_webhook_signature` devuelve True (NO usar en producción)
    - los llamadores deben usar `get_mock_payment_url` en lugar de
      `create_payment_link`

    No guarda estado mutable entre llamadas: cada request abre su propio
    cliente httpx y no hay reintentos automáticos.
    """

    PAYMENT_REQUESTS_PATH = "/v2/payment-requests"
    MOCK_PAY_PATH = "/api/payments/mock-pay"

    def __init__(
        self,
        config: PayOSConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Inicializa el adapter.

        Args:
            config: Configuración inmutable de PayOS
            transport: Transporte httpx alternativo (tests)
        """
        self._config = config
        self._mode = GatewayMode.MOCK if config.mock_mode else GatewayMode.LIVE
        self._transport = transport

        if self._mode is GatewayMode.MOCK:
            logger.warning(
                "PayOSAdapter running in mock mode, webhook signatures are not verified",
            )
        else:
            logger.info("PayOSAdapter initialized", base_url=config.base_url)

    @property
    def provider_name(self) -> str:
        return "payos"

    @property
    def mode(self) -> GatewayMode:
        return self._mode

    def is_mock_mode(self) -> bool:
        return self._mode is GatewayMode.MOCK

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "x-client-id": self._config.client_id,
            "x-api-key": self._config.api_key,
        }
        if self._config.partner_code:
            headers["x-partner-code"] = self._config.partner_code
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    # ============================================
    # Firmas
    # ============================================

    def generate_signature(self, request: PaymentRequest) -> str:
        """Firma los campos fijos de la solicitud (hex HMAC-SHA256)."""
        return sign_fields(
            request.signature_fields(),
            PaymentRequest.SIGNATURE_KEYS,
            self._config.checksum_key,
        )

    def compute_webhook_signature(self, data: dict[str, Any]) -> str:
        """Firma esperada para el `data` de un webhook: todas sus claves, ordenadas."""
        return sign_sorted_fields(data, self._config.checksum_key)

    def verify_webhook_signature(self, payload: WebhookPayload, signature: str) -> bool:
        """
        Verifica la firma de un webhook de PayOS.

        Nunca lanza: un payload malformado devuelve False, igual que una
        firma incorrecta.
        """
        if self.is_mock_mode():
            logger.info("Mock mode, skipping webhook signature verification")
            return True

        try:
            if not isinstance(payload.data, dict):
                raise MalformedPayload("webhook data must be an object")
            message = build_signature_data(payload.data, sorted(payload.data.keys()))
            is_valid = verify_signature(
                message.encode("utf-8"),
                signature,
                self._config.checksum_key,
            )
        except Exception as e:
            logger.error(
                "Webhook signature verification error",
                error_type=type(e).__name__,
                order_code=_safe_order_code(payload),
            )
            return False

        if not is_valid:
            logger.error(
                "Invalid webhook signature",
                order_code=_safe_order_code(payload),
            )
        return is_valid

    # ============================================
    # API de PayOS
    # ============================================

    async def create_payment_link(self, request: PaymentRequest) -> str:
        """
        Crea un link de pago en PayOS y retorna el checkout URL.

        Raises:
            PaymentCreationFailed: Si PayOS rechaza la solicitud o la
                llamada no se completa (error de red, JSON inválido, etc.)
        """
        if self.is_mock_mode():
            logger.warning(
                "create_payment_link called in mock mode, returning mock URL",
                order_code=request.order_code,
            )
            return self.get_mock_payment_url(request.order_code)

        signature = self.generate_signature(request)

        try:
            async with self._client() as client:
                response = await client.post(
                    self.PAYMENT_REQUESTS_PATH,
                    json=request.to_payload(signature),
                    headers=self._headers(),
                )
            envelope = parse_envelope(response.json())
        except Exception as e:
            logger.error(
                "PayOS create payment link call failed",
                order_code=request.order_code,
                error=str(e),
            )
            raise PaymentCreationFailed(str(e)) from e

        if not envelope.is_success:
            logger.error(
                "PayOS rejected payment link",
                order_code=request.order_code,
                code=envelope.code,
                desc=envelope.desc,
            )
            raise PaymentCreationFailed(envelope.desc or f"code {envelope.code}")

        try:
            result = to_payment_link_result(envelope, request.order_code)
        except MalformedPayload as e:
            logger.error(
                "PayOS payment link response malformed",
                order_code=request.order_code,
                error=e.message,
            )
            raise PaymentCreationFailed(e.message) from e

        logger.info(
            "PayOS payment link created",
            order_code=request.order_code,
            payment_link_id=result.payment_link_id,
        )
        return result.checkout_url

    async def get_payment_info(self, order_code: int | str) -> ProviderPaymentStatus | None:
        """
        Consulta el estado de un pago en PayOS.

        None significa "estado desconocido", no "pago fallido". Nunca lanza.
        """
        if self.is_mock_mode():
            logger.info("Mock mode, payment info unavailable", order_code=order_code)
            return None

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.PAYMENT_REQUESTS_PATH}/{order_code}",
                    headers=self._headers(),
                )
            envelope = parse_envelope(response.json())

            if not envelope.is_success:
                logger.warning(
                    "PayOS payment info lookup rejected",
                    order_code=order_code,
                    code=envelope.code,
                    desc=envelope.desc,
                )
                return None

            status = to_provider_status(envelope)
        except Exception as e:
            logger.warning(
                "PayOS payment info lookup failed",
                order_code=order_code,
                error=str(e),
            )
            return None

        logger.info("PayOS payment status", order_code=order_code, status=status.value)
        return status

    # ============================================
    # Métodos auxiliares para modo mock
    # ============================================

    def get_mock_payment_url(self, order_code: int) -> str:
        """URL local y determinista que sustituye al checkout de PayOS."""
        return f"{self._config.mock_payment_base_url}{self.MOCK_PAY_PATH}/{order_code}"

    def build_mock_webhook_payload(self, order_code: int, amount: int = 0) -> dict[str, Any]:
        """
        Genera el cuerpo de un webhook exitoso para pruebas locales.

        La firma se calcula con la checksum key configurada, así que el
        payload también verifica en modo live.
        """
        data: dict[str, Any] = {
            "orderCode": order_code,
            "amount": amount,
            "description": "Mock payment",
            "accountNumber": "mock",
            "reference": "mock-ref",
            "transactionDateTime": datetime.now(timezone.utc).isoformat(),
            "currency": "VND",
            "paymentLinkId": "mock",
            "code": "00",
            "desc": "success",
            "counterAccountBankId": None,
            "counterAccountBankName": None,
            "counterAccountName": None,
            "counterAccountNumber": None,
            "virtualAccountName": None,
            "virtualAccountNumber": None,
        }
        return {
            "code": "00",
            "desc": "success",
            "success": True,
            "data": data,
            "signature": self.compute_webhook_signature(data),
        }


def _safe_order_code(payload: Any) -> Any:
    data = getattr(payload, "data", None)
    return data.get("orderCode") if isinstance(data, dict) else None
