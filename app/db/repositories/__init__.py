"""
Repositorios para operaciones de base de datos.
"""

from app.db.repositories.payment_repo import PaymentRepository
from app.db.repositories.enrollment_repo import EnrollmentRepository

__all__ = [
    "PaymentRepository",
    "EnrollmentRepository",
]
