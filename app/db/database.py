"""
Configuración de la base de datos y sesión async.
"""

import json
from typing import Any, AsyncGenerator
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config import settings


logger = structlog.get_logger(__name__)


def build_database_url(raw_url: str) -> str:
    """
    Normaliza la URL de conexión.

    `postgresql://` pasa a `postgresql+asyncpg://` y se eliminan los
    parámetros que asyncpg no soporta (pgbouncer, sslmode).
    """
    if not raw_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        return raw_url

    url = raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)
    for param in ("pgbouncer", "sslmode"):
        query_params.pop(param, None)
    query_params["prepared_statement_cache_size"] = ["0"]

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        urlencode(query_params, doseq=True),
        parsed.fragment,
    ))


database_url = build_database_url(settings.DATABASE_URL)

engine_kwargs: dict[str, Any] = {
    "echo": settings.DEBUG,
    "future": True,
}
if database_url.startswith("postgresql+asyncpg://"):
    engine_kwargs.update(
        poolclass=NullPool,  # Recomendado para pgbouncer
        json_serializer=lambda obj: json.dumps(obj),
        json_deserializer=lambda s: json.loads(s) if isinstance(s, str) else s,
        connect_args={
            "prepared_statement_cache_size": 0,
            "command_timeout": 60,
        },
    )

engine = create_async_engine(database_url, **engine_kwargs)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency que provee una sesión de base de datos.

    Hace commit al terminar el request y rollback si algo falla.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Inicializa la base de datos.
    Crea todas las tablas si no existen.
    """
    from app.db.models import Base

    logger.info("Initializing database...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized successfully")


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    await engine.dispose()
    logger.info("Database connections closed")
