"""
Schemas del microservicio de pagos.
Exporta todos los schemas para fácil acceso.
"""

# Common
from app.schemas.common import (
    APIResponse,
    BaseSchema,
    TimestampMixin,
)

# Payment
from app.schemas.payment import (
    CheckoutItem,
    EnrollmentStatus,
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentResponse,
    PaymentStatus,
    PaymentVerifyResponse,
    ProviderPaymentStatus,
)

# PayOS
from app.schemas.payos import (
    CheckoutLinkData,
    PaymentInfoData,
    PayOSEnvelope,
    PayOSWebhookBody,
)

__all__ = [
    # Common
    "APIResponse",
    "BaseSchema",
    "TimestampMixin",
    # Payment
    "CheckoutItem",
    "EnrollmentStatus",
    "PaymentCreateRequest",
    "PaymentCreateResponse",
    "PaymentResponse",
    "PaymentStatus",
    "PaymentVerifyResponse",
    "ProviderPaymentStatus",
    # PayOS
    "CheckoutLinkData",
    "PaymentInfoData",
    "PayOSEnvelope",
    "PayOSWebhookBody",
]
