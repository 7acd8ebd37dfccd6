"""
Configuración de tests y fixtures compartidos.
"""

from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.adapters import PayOSAdapter, get_payment_gateway
from app.config import PayOSConfig
from app.db.models import Base
from app.db.database import get_db
from app.utils.idempotency import (
    InMemoryIdempotencyManager,
    get_idempotency_manager_with_fallback,
)


# Base de datos de testing en memoria (una sola conexión compartida)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CHECKSUM_KEY = "test-checksum-key"
PAYOS_BASE_URL = "https://payos.test"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Crea un engine de testing para cada test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Crea una sesión de testing."""
    async_session = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def mock_config() -> PayOSConfig:
    return PayOSConfig(
        checksum_key=CHECKSUM_KEY,
        mock_mode=True,
        mock_payment_base_url="http://localhost:3000",
    )


@pytest.fixture
def live_config() -> PayOSConfig:
    return PayOSConfig(
        client_id="client-id",
        api_key="api-key",
        checksum_key=CHECKSUM_KEY,
        base_url=PAYOS_BASE_URL,
        mock_mode=False,
        timeout_seconds=5,
    )


@pytest.fixture
def mock_gateway(mock_config) -> PayOSAdapter:
    """Adapter en modo mock: nunca hace llamadas de red."""
    return PayOSAdapter(mock_config)


@pytest.fixture
def payos_calls() -> list[httpx.Request]:
    """Requests recibidas por el PayOS simulado."""
    return []


@pytest.fixture
def make_live_gateway(live_config, payos_calls) -> Callable[..., PayOSAdapter]:
    """
    Construye un adapter live cuyo transporte responde con `handler`.

    `handler(request) -> httpx.Response`; todas las requests se registran
    en `payos_calls`.
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> PayOSAdapter:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            payos_calls.append(request)
            return handler(request)

        return PayOSAdapter(live_config, transport=httpx.MockTransport(recording_handler))

    return factory


@pytest.fixture
def idempotency_manager() -> InMemoryIdempotencyManager:
    return InMemoryIdempotencyManager()


@pytest_asyncio.fixture(scope="function")
async def client(
    test_session: AsyncSession,
    mock_gateway: PayOSAdapter,
    idempotency_manager: InMemoryIdempotencyManager,
) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP para tests de API (PayOS en modo mock)."""

    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: mock_gateway
    app.dependency_overrides[get_idempotency_manager_with_fallback] = lambda: idempotency_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_checkout_data():
    """Datos de ejemplo para crear un pago de un curso."""
    return {
        "user_id": 7,
        "items": [
            {"course_id": 101, "title": "Python desde cero", "price": 50000},
        ],
    }


@pytest.fixture
def sample_batch_checkout_data():
    """Checkout de varios cursos (con un curso repetido)."""
    return {
        "user_id": 7,
        "items": [
            {"course_id": 101, "title": "Python desde cero", "price": 50000},
            {"course_id": 102, "title": "FastAPI avanzado", "price": 75000},
            {"course_id": 101, "title": "Python desde cero", "price": 50000},
        ],
        "return_url": "https://shop.example.com/ok",
        "cancel_url": "https://shop.example.com/cancel",
    }
