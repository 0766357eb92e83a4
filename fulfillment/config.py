from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./fulfillment.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes
    DB_LOCK_TIMEOUT: int = 30  # SQLite: seconds a writer waits for the database lock

    # App Settings
    APP_NAME: str = "MAK Fulfillment"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Email/SMTP Settings
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""  # Defaults to SMTP_USER
    SMTP_FROM_NAME: str = "MAK Warehouse"
    SALES_NOTIFICATION_EMAIL: str = ""  # Inbox for custom quote requests

    # Frontend URL for email links
    FRONTEND_URL: str = "http://localhost:3000"

    # Payment link service
    PAYMENT_LINK_API_URL: Optional[str] = None  # e.g. "https://pay.example.com/api/links"
    PAYMENT_LINK_API_KEY: str = ""
    PAYMENT_LINK_TIMEOUT_SECONDS: float = 5.0

    # Billing
    INVOICE_DUE_DAYS: int = 7
    DEFAULT_SETUP_FEE_EUR: float = 119.0
    OVERSPACE_RATE_EUR_PER_WEEK: float = 5.0

    # Background scheduler
    SCHEDULER_ENABLED: bool = True
    CAPACITY_RECALC_INTERVAL_MINUTES: int = 60
    SCHEDULER_TIMEZONE: str = "Europe/Warsaw"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
