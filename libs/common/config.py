from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Kuwait"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Identity provider (tokens are issued elsewhere, we only verify them)
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Money
    CURRENCY: str = "KWD"
    CURRENCY_MINOR_DIGITS: int = 3

    # Marketplace policy
    PLATFORM_COMMISSION_PERCENT: Decimal = Decimal("5")
    CHECKOUT_LOCK_TIMEOUT_SECONDS: float = 3.0
    CHECKOUT_LOCK_LEASE_SECONDS: float = 10.0

    # Payment gateway
    PAYMENT_GATEWAY_URL: str = "http://payments-gateway:8010"
    PAYMENT_GATEWAY_SECRET_KEY: Optional[str] = None
    PAYMENT_GATEWAY_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @field_validator("PLATFORM_COMMISSION_PERCENT")
    @classmethod
    def check_commission_range(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("PLATFORM_COMMISSION_PERCENT must be between 0 and 100")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
