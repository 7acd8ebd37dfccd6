"""
Servicios de negocio del microservicio de pagos.
"""

from app.services.payment_service import PaymentService

__all__ = [
    "PaymentService",
]
