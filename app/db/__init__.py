"""
Capa de base de datos del microservicio de pagos.
"""

from app.db.database import (
    get_db,
    init_db,
    close_db,
    AsyncSessionLocal,
    engine,
)
from app.db.models import (
    Base,
    Enrollment,
    Payment,
)

__all__ = [
    # Database
    "get_db",
    "init_db",
    "close_db",
    "AsyncSessionLocal",
    "engine",
    # Models
    "Base",
    "Enrollment",
    "Payment",
]
