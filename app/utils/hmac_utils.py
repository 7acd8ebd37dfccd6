"""
Utilidades para firmas HMAC-SHA256 de PayOS.

PayOS firma la cadena `clave1=valor1&clave2=valor2...` con la checksum key.
Las claves se ordenan alfabéticamente; quién decide el conjunto de claves
(lista fija o todas las del payload) lo decide el llamador.
"""

import hashlib
import hmac
from typing import Any, Iterable, Mapping

import structlog

from app.utils.exceptions import MalformedPayload


logger = structlog.get_logger(__name__)


def generate_signature(payload: bytes, secret: str) -> str:
    """
    Genera una firma HMAC-SHA256 para un payload.

    Args:
        payload: Datos a firmar (bytes)
        secret: Clave secreta

    Returns:
        Firma hexadecimal
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()


def stringify_value(value: Any) -> str:
    """
    Serializa un valor escalar tal como lo hace PayOS al firmar.

    None -> "", booleanos en minúscula, floats enteros sin decimales.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    raise MalformedPayload(f"unsupported value type {type(value).__name__}")


def build_signature_data(data: Mapping[str, Any], keys: Iterable[str]) -> str:
    """
    Construye la cadena a firmar `k=v&k=v` en el orden de `keys`.

    Las claves ausentes en `data` se serializan como cadena vacía.
    """
    return "&".join(f"{key}={stringify_value(data.get(key))}" for key in keys)


def sign_fields(data: Mapping[str, Any], keys: Iterable[str], secret: str) -> str:
    """Firma los campos `keys` de `data` con la checksum key."""
    message = build_signature_data(data, keys)
    return generate_signature(message.encode("utf-8"), secret)


def sign_sorted_fields(data: Mapping[str, Any], secret: str) -> str:
    """Firma todas las claves presentes en `data`, ordenadas lexicográficamente."""
    return sign_fields(data, sorted(data.keys()), secret)


def verify_signature(
    payload: bytes,
    signature: str,
    secret: str,
) -> bool:
    """
    Verifica una firma HMAC-SHA256.

    Args:
        payload: Datos firmados (bytes)
        signature: Firma a verificar
        secret: Clave secreta

    Returns:
        True si la firma es válida
    """
    expected = generate_signature(payload, secret)
    match = hmac.compare_digest(expected, signature)

    logger.debug(
        "Signature verification",
        payload_length=len(payload),
        match=match,
    )

    return match
