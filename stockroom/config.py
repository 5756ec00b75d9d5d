from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./stockroom.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes
    # Inventory rows are also locked FOR UPDATE, see services/inventory_service.py
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    AUTO_CREATE_TABLES: bool = False

    # JWT Settings (tokens are issued by the identity provider)
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # App Settings
    APP_NAME: str = "Stockroom WMS"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Cycle counting
    DEFAULT_COUNT_TOLERANCE_PERCENT: float = 5.0

    # Returns policy
    RESTOCK_LOCATION_TYPE: str = "STORAGE"
    RETURN_WINDOW_DAYS: int = 30
    RESTOCKING_FEE_PERCENT: float = 10.0
    RETURN_AUTO_APPROVE_THRESHOLD: float = 100.0
    RETURN_MAX_AUTO_APPROVE_QUANTITY: int = 10

    # External fulfillment platform (best-effort sync)
    FULFILLMENT_API_URL: Optional[str] = None
    FULFILLMENT_API_TOKEN: str = ""

    # Real-time push transport
    PUSH_API_URL: Optional[str] = None
    PUSH_API_KEY: str = ""

    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    PENDING_SYNC_RETRY_INTERVAL_MINUTES: int = 10
    PENDING_SYNC_MAX_ATTEMPTS: int = 5

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
