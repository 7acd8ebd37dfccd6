"""
Control de idempotencia para la creación de checkouts.
Evita generar dos links de pago para el mismo pedido del cliente.
"""

import json
from datetime import timedelta
from typing import Any

import structlog
import redis.asyncio as redis
from redis.exceptions import RedisError

from app.config import settings


logger = structlog.get_logger(__name__)

# Un checkout de PayOS no vive más de un día
IDEMPOTENCY_TTL_HOURS = 24
LOCK_TTL_SECONDS = 30


def make_checkout_key(user_id: int, idempotency_key: str) -> str:
    """Clave de idempotencia acotada al usuario que la envía."""
    return f"{user_id}:{idempotency_key}"


class IdempotencyManager:
    """
    Gestor de idempotencia usando Redis.

    Guarda la respuesta de creación de checkout para devolverla tal
    cual si el cliente repite el request con la misma Idempotency-Key.
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client
        self._prefix = "checkout:idempotency:"

    def _make_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _lock_key(self, key: str) -> str:
        return f"{self._prefix}lock:{key}"

    async def get_cached_response(self, key: str) -> dict[str, Any] | None:
        """
        Obtiene la respuesta cacheada para una clave.

        Returns:
            Respuesta cacheada o None si no existe
        """
        try:
            data = await self._redis.get(self._make_key(key))
        except RedisError as e:
            logger.error("Redis error getting idempotency key", error=str(e), key=key)
            # Sin Redis el request continúa sin cache
            return None

        if data:
            logger.info("Idempotency cache hit", key=key)
            return json.loads(data)
        return None

    async def cache_response(
        self,
        key: str,
        response: dict[str, Any],
        ttl_hours: int = IDEMPOTENCY_TTL_HOURS,
    ) -> bool:
        """Cachea la respuesta. Retorna True si se guardó."""
        try:
            await self._redis.setex(
                self._make_key(key),
                timedelta(hours=ttl_hours),
                json.dumps(response, default=str),
            )
        except RedisError as e:
            logger.error("Redis error caching response", error=str(e), key=key)
            return False

        logger.info("Checkout response cached", key=key, ttl_hours=ttl_hours)
        return True

    async def is_processing(self, key: str) -> bool:
        """
        Intenta tomar el lock de procesamiento.

        Retorna True si otro request con la misma clave ya lo tiene.
        """
        try:
            acquired = await self._redis.set(
                self._lock_key(key),
                "processing",
                nx=True,
                ex=LOCK_TTL_SECONDS,
            )
        except RedisError as e:
            logger.error("Redis error checking processing lock", error=str(e), key=key)
            return False
        return not acquired

    async def release_lock(self, key: str) -> None:
        try:
            await self._redis.delete(self._lock_key(key))
        except RedisError as e:
            logger.error("Redis error releasing lock", error=str(e), key=key)


class InMemoryIdempotencyManager:
    """
    Implementación en memoria para desarrollo y tests sin Redis.

    NO USAR EN PRODUCCIÓN - no es persistente ni distribuido.
    """

    def __init__(self):
        self._cache: dict[str, dict[str, Any]] = {}
        self._locks: set[str] = set()

    async def get_cached_response(self, key: str) -> dict[str, Any] | None:
        return self._cache.get(key)

    async def cache_response(
        self,
        key: str,
        response: dict[str, Any],
        ttl_hours: int = IDEMPOTENCY_TTL_HOURS,
    ) -> bool:
        # Misma serialización que Redis
        self._cache[key] = json.loads(json.dumps(response, default=str))
        return True

    async def is_processing(self, key: str) -> bool:
        if key in self._locks:
            return True
        self._locks.add(key)
        return False

    async def release_lock(self, key: str) -> None:
        self._locks.discard(key)


# Singletons
_redis_client: redis.Redis | None = None
_idempotency_manager: IdempotencyManager | None = None
_memory_manager: InMemoryIdempotencyManager | None = None


async def get_redis_client() -> redis.Redis:
    """Obtiene o crea el cliente Redis."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
        logger.info("Redis client initialized", url=settings.REDIS_URL.split("@")[-1])

    return _redis_client


async def get_idempotency_manager() -> IdempotencyManager:
    """Obtiene el gestor Redis, verificando que el servidor responde."""
    global _idempotency_manager

    if _idempotency_manager is None:
        client = await get_redis_client()
        await client.ping()
        _idempotency_manager = IdempotencyManager(client)

    return _idempotency_manager


async def get_idempotency_manager_with_fallback() -> IdempotencyManager | InMemoryIdempotencyManager:
    """
    Obtiene el gestor de idempotencia con fallback a memoria.

    Si Redis no responde se usa (y se conserva) la implementación en memoria.
    """
    global _memory_manager

    if _memory_manager is not None:
        return _memory_manager

    try:
        return await get_idempotency_manager()
    except (RedisError, OSError) as e:
        logger.warning(
            "Failed to connect to Redis, using in-memory idempotency",
            error=str(e),
        )
        _memory_manager = InMemoryIdempotencyManager()
        return _memory_manager


async def close_redis() -> None:
    """Cierra la conexión de Redis."""
    global _redis_client, _idempotency_manager, _memory_manager

    _memory_manager = None
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
        _idempotency_manager = None
        logger.info("Redis connection closed")
