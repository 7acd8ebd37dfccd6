"""
Value objects del gateway de pago.
Define las estructuras que el adapter recibe y devuelve.
"""

import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar
from urllib.parse import urlparse

from app.schemas.payment import PaymentStatus, ProviderPaymentStatus


class GatewayMode(str, Enum):
    """Modo de operación del adapter, fijo durante toda la vida del proceso."""

    MOCK = "mock"
    LIVE = "live"


def _is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class PaymentItem:
    """Línea del pedido mostrada en el checkout (no forma parte de la firma)."""

    name: str
    quantity: int
    price: int

    def to_payload(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "price": self.price}


@dataclass(frozen=True)
class PaymentRequest:
    """
    Solicitud de link de pago hacia PayOS.

    Inmutable: una vez firmada no puede cambiar. La firma se calcula sobre
    `SIGNATURE_KEYS`, una lista fija y ya ordenada alfabéticamente.
    """

    SIGNATURE_KEYS: ClassVar[tuple[str, ...]] = (
        "amount",
        "cancelUrl",
        "description",
        "orderCode",
        "returnUrl",
    )

    order_code: int
    amount: int
    description: str
    cancel_url: str
    return_url: str
    items: tuple[PaymentItem, ...] = ()
    expired_at: int | None = None  # Unix timestamp

    def __post_init__(self):
        if isinstance(self.order_code, bool) or not isinstance(self.order_code, int) or self.order_code <= 0:
            raise ValueError(f"order_code must be a positive integer, got {self.order_code!r}")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {self.amount!r}")
        for name in ("cancel_url", "return_url"):
            if not _is_absolute_url(getattr(self, name)):
                raise ValueError(f"{name} must be an absolute URL")
        # Permite pasar una lista de items sin romper la inmutabilidad
        object.__setattr__(self, "items", tuple(self.items))

    def signature_fields(self) -> dict[str, Any]:
        """Campos firmados, con los nombres que usa PayOS."""
        return {
            "amount": self.amount,
            "cancelUrl": self.cancel_url,
            "description": self.description,
            "orderCode": self.order_code,
            "returnUrl": self.return_url,
        }

    def to_payload(self, signature: str) -> dict[str, Any]:
        """Cuerpo JSON de `POST /v2/payment-requests`."""
        body: dict[str, Any] = {
            "orderCode": self.order_code,
            "amount": self.amount,
            "description": self.description,
            "items": [item.to_payload() for item in self.items],
            "cancelUrl": self.cancel_url,
            "returnUrl": self.return_url,
        }
        if self.expired_at is not None:
            body["expiredAt"] = self.expired_at
        body["signature"] = signature
        return body


@dataclass(frozen=True)
class PaymentLinkResult:
    """Resultado de crear un link de pago."""

    checkout_url: str
    order_code: int
    payment_link_id: str | None = None

    def __post_init__(self):
        if not self.checkout_url:
            raise ValueError("checkout_url must not be empty")


@dataclass(frozen=True)
class WebhookPayload:
    """
    Webhook de PayOS ya deserializado.

    El conjunto de claves de `data` lo define el proveedor y puede crecer.
    """

    data: dict[str, Any]
    signature: str
    code: str = ""
    desc: str = ""
    success: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def order_code(self) -> Any:
        return self.data.get("orderCode")

    @property
    def is_success(self) -> bool:
        return self.success is True and self.code == "00"


# Mapeo de estados de PayOS a estados internos
PROVIDER_STATUS_MAP = {
    ProviderPaymentStatus.PAID: PaymentStatus.COMPLETED,
    ProviderPaymentStatus.CANCELLED: PaymentStatus.FAILED,
    ProviderPaymentStatus.EXPIRED: PaymentStatus.FAILED,
    ProviderPaymentStatus.PENDING: PaymentStatus.PENDING,
    ProviderPaymentStatus.PROCESSING: PaymentStatus.PENDING,
}


def map_provider_status(status: ProviderPaymentStatus) -> PaymentStatus:
    """PAID -> COMPLETED, CANCELLED/EXPIRED -> FAILED, resto -> PENDING."""
    return PROVIDER_STATUS_MAP.get(status, PaymentStatus.PENDING)


def generate_order_code() -> int:
    """
    Genera un order code: últimos 9 dígitos del reloj en ms + 3 dígitos aleatorios.

    No garantiza unicidad global; la columna `order_code` es única en BD.
    """
    timestamp = int(time.time() * 1000) % 1_000_000_000
    suffix = random.randint(0, 999)
    return int(f"{timestamp}{suffix:03d}")
