"""
Schemas del protocolo de PayOS (respuestas de la API y webhooks).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.payment import ProviderPaymentStatus


class PayOSModel(BaseModel):
    """Base para modelos de PayOS: tolera campos nuevos del proveedor."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PayOSEnvelope(PayOSModel):
    """Envoltura común de las respuestas `{code, desc, data}`."""

    code: str
    desc: str = ""
    data: dict[str, Any] | None = None

    @property
    def is_success(self) -> bool:
        return self.code == "00"


class CheckoutLinkData(PayOSModel):
    """`data` de `POST /v2/payment-requests`."""

    checkout_url: str = Field(..., alias="checkoutUrl", min_length=1)
    payment_link_id: str | None = Field(None, alias="paymentLinkId")
    order_code: int | None = Field(None, alias="orderCode")


class PaymentInfoData(PayOSModel):
    """`data` de `GET /v2/payment-requests/{orderCode}`."""

    status: ProviderPaymentStatus
    order_code: int | None = Field(None, alias="orderCode")
    amount: int | None = None
    amount_paid: int | None = Field(None, alias="amountPaid")


class PayOSWebhookBody(PayOSModel):
    """Cuerpo del webhook entrante de PayOS."""

    code: str = ""
    desc: str = ""
    success: bool = False
    data: dict[str, Any]
    signature: str = Field(..., min_length=1)
