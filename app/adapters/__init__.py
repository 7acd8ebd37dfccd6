"""
Adapter del gateway de pago PayOS.
"""

from app.adapters.base import (
    GatewayMode,
    PaymentItem,
    PaymentLinkResult,
    PaymentRequest,
    WebhookPayload,
    generate_order_code,
    map_provider_status,
)
from app.adapters.payos_adapter import PayOSAdapter
from app.adapters.factory import get_payment_gateway

__all__ = [
    "GatewayMode",
    "PaymentItem",
    "PaymentLinkResult",
    "PaymentRequest",
    "WebhookPayload",
    "generate_order_code",
    "map_provider_status",
    "PayOSAdapter",
    "get_payment_gateway",
]
