"""
Environment configuration — single source of truth for all settings.

Uses pydantic-settings for type-safe config with .env file support.
All values have sensible defaults for local development.

Usage:
    from backend.app.core.config import settings
    print(settings.REPORT_TTL_SECONDS)
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings loaded from environment variables or .env file.

    Precedence: env var > .env file > default value
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ──
    APP_NAME: str = "Anonymous Safety Alerts"
    APP_VERSION: str = "1.1.0"
    ENVIRONMENT: str = "development"  # development | staging | production
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING | ERROR | CRITICAL

    # ── Server ──
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]
    CORS_ALLOW_ALL: bool = True  # False in production

    # ── Reports ──
    REPORT_TTL_SECONDS: int = 8 * 60 * 60
    TIMESTAMP_BUCKET_SECONDS: int = 15 * 60  # createdAt fuzzing quantum
    CLEANUP_INTERVAL_SECONDS: float = 60 * 60
    ZONE_QUERY_LIMIT: int = 20
    CATEGORY_QUERY_LIMIT: int = 50
    CONTENT_MAX_LENGTH: int = 500
    PUSH_BODY_MAX_LENGTH: int = 100

    # ── Zoning ──
    ZONE_PRECISION: int = 1000  # buckets per degree (~110 m cells)
    LOCATION_NOISE_DEGREES: float = 0.001  # ±100 m

    # ── Push notifications ──
    PUSH_PROVIDER: str = "fcm"  # fcm | simulation | disabled
    FIREBASE_SERVICE_ACCOUNT_KEY: str = "./firebase-service-account.json"
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    ANDROID_CHANNEL_ID: str = "safety_alerts"

    # ── Rate limiting ──
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


settings = get_settings()
