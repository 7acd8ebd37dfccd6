"""
Utilidades del microservicio de pagos.
"""

from app.utils.hmac_utils import (
    build_signature_data,
    generate_signature,
    sign_fields,
    sign_sorted_fields,
    verify_signature,
)
from app.utils.idempotency import (
    IdempotencyManager,
    InMemoryIdempotencyManager,
    get_idempotency_manager_with_fallback,
)

__all__ = [
    # HMAC
    "build_signature_data",
    "generate_signature",
    "sign_fields",
    "sign_sorted_fields",
    "verify_signature",
    # Idempotency
    "IdempotencyManager",
    "InMemoryIdempotencyManager",
    "get_idempotency_manager_with_fallback",
]
