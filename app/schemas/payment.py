"""
Schemas para pagos e inscripciones.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field, HttpUrl

from app.schemas.common import BaseSchema, TimestampMixin


class PaymentStatus(str, Enum):
    """Ciclo de vida interno de un pago."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class EnrollmentStatus(str, Enum):
    """Estados de una inscripción a un curso."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REFUNDED = "REFUNDED"


class ProviderPaymentStatus(str, Enum):
    """Estado reportado por PayOS para un link de pago."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


STATUS_MESSAGES = {
    PaymentStatus.COMPLETED: "Payment completed",
    PaymentStatus.PENDING: "Waiting for payment",
    PaymentStatus.FAILED: "Payment failed",
    PaymentStatus.REFUNDED: "Payment refunded",
}


# ============================================
# Request Schemas (entrada)
# ============================================

class CheckoutItem(BaseSchema):
    """
    Curso incluido en un checkout, con el precio ya resuelto.

    El monto cobrado es el `price` recibido: el catálogo de cursos vive en
    otro servicio, así que este schema solo debe llegar desde un llamador
    interno de confianza que ya consultó el precio, nunca desde el navegador.
    """

    course_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    price: int = Field(..., gt=0, description="Precio en la unidad menor (VND)")


class PaymentCreateRequest(BaseSchema):
    """Request para crear el pago de uno o varios cursos."""

    user_id: int = Field(..., gt=0)
    items: list[CheckoutItem] = Field(..., min_length=1)
    return_url: HttpUrl | None = None
    cancel_url: HttpUrl | None = None


# ============================================
# Response Schemas (salida)
# ============================================

class PaymentCreateResponse(BaseSchema):
    """Respuesta al crear un pago (para redirigir al checkout)."""

    payment_url: str
    order_code: int
    payment_id: int
    enrollment_ids: list[int]


class PaymentVerifyResponse(BaseSchema):
    """Resultado de verificar un pago al volver del checkout."""

    success: bool
    status: PaymentStatus
    message: str
    payment_id: int
    order_code: int
    enrollment_ids: list[int] = Field(default_factory=list)


class PaymentResponse(BaseSchema, TimestampMixin):
    """Respuesta con datos de un pago."""

    id: int
    user_id: int
    order_code: int
    amount: int
    currency: str
    status: PaymentStatus
    method: str
    description: str | None = None
    checkout_url: str | None = None
    enrollment_ids: list[int] = Field(default_factory=list)
    paid_at: datetime | None = None
