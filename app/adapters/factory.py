"""
Factory para obtener el gateway de pago configurado.
"""

from functools import lru_cache

import structlog

from app.adapters.payos_adapter import PayOSAdapter
from app.config import get_payos_config, settings


logger = structlog.get_logger(__name__)


@lru_cache()
def get_payment_gateway() -> PayOSAdapter:
    """
    Retorna el adapter de PayOS configurado.

    La instancia es cacheada: el modo (mock o live) queda fijo durante
    toda la vida del proceso.
    """
    config = get_payos_config()

    if config.unsafe_for(settings.ENVIRONMENT):
        logger.warning(
            "PayOS mock mode enabled in production, webhook signatures are NOT verified",
            environment=settings.ENVIRONMENT,
        )

    gateway = PayOSAdapter(config)

    logger.info(
        "Payment gateway initialized",
        provider=gateway.provider_name,
        mode=gateway.mode.value,
    )

    return gateway
