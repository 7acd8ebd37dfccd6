"""
Configuración del microservicio de pagos.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuración principal del servicio."""

    # Aplicación
    APP_NAME: str = "E-Learning Payment Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Base de datos (SQLite local por defecto, PostgreSQL en despliegue)
    DATABASE_URL: str = "sqlite+aiosqlite:///./payments.db"

    # Redis para idempotencia de checkout
    REDIS_URL: str = "redis://localhost:6379/0"

    # Frontend (URLs de retorno por defecto)
    FRONTEND_URL: str = "http://localhost:3001"

    # PayOS
    PAYOS_CLIENT_ID: str = ""
    PAYOS_API_KEY: str = ""
    PAYOS_CHECKSUM_KEY: str = "mock-checksum-key"
    PAYOS_PARTNER_CODE: str = ""
    PAYOS_BASE_URL: str = "https://api-merchant.payos.vn"
    PAYOS_MOCK_MODE: bool = False
    PAYOS_TIMEOUT_SECONDS: float = 10.0

    # Base de la URL de pago simulada (solo modo mock)
    MOCK_PAYMENT_BASE_URL: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


class PayOSConfig(BaseModel):
    """
    Configuración inmutable del gateway PayOS.

    Se construye una sola vez al arrancar y se inyecta en el adapter;
    el adapter nunca lee `settings` directamente.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    api_key: str = ""
    checksum_key: str
    partner_code: str = ""
    base_url: str = "https://api-merchant.payos.vn"
    mock_mode: bool = False
    timeout_seconds: float = 10.0
    mock_payment_base_url: str = "http://localhost:3000"

    def unsafe_for(self, environment: str) -> bool:
        """Modo mock desactiva la verificación de firmas: no apto para producción."""
        return self.mock_mode and environment == "production"


@lru_cache()
def get_settings() -> Settings:
    """Retorna instancia cacheada de settings."""
    return Settings()


settings = get_settings()


@lru_cache()
def get_payos_config() -> PayOSConfig:
    """Construye la configuración de PayOS a partir de settings."""
    return PayOSConfig(
        client_id=settings.PAYOS_CLIENT_ID,
        api_key=settings.PAYOS_API_KEY,
        checksum_key=settings.PAYOS_CHECKSUM_KEY,
        partner_code=settings.PAYOS_PARTNER_CODE,
        base_url=settings.PAYOS_BASE_URL.rstrip("/"),
        mock_mode=settings.PAYOS_MOCK_MODE,
        timeout_seconds=settings.PAYOS_TIMEOUT_SECONDS,
        mock_payment_base_url=settings.MOCK_PAYMENT_BASE_URL.rstrip("/"),
    )
