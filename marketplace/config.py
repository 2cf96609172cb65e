from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # SQLite writers wait this many seconds for the database lock
    SQLITE_BUSY_TIMEOUT: float = 30.0

    # App Settings
    APP_NAME: str = "Marketplace Orders"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Order numbers: UTC timestamp + random digits, unique constraint enforced at insert
    ORDER_NUMBER_RANDOM_DIGITS: int = 6
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5

    # Used when checkout does not name a payment method
    DEFAULT_PAYMENT_METHOD: str = "ONLINE"

    # Accepted payment method codes and their display names
    PAYMENT_METHODS: dict[str, str] = {
        "ONLINE": "Online payment",
        "CARD": "Credit card",
        "COD": "Cash on delivery",
        "ALIPAY": "Alipay",
        "WECHAT": "WeChat Pay",
    }

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
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
