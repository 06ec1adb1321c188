"""
Application configuration using Pydantic Settings.

Supports loading from environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============ Application ============
    app_name: str = "FitLife Notifications"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # ============ Server ============
    host: str = "0.0.0.0"
    port: int = 8000

    # ============ Security ============
    secret_key: str = "change-me-in-production-use-a-long-random-string"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7

    # ============ CORS ============
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # ============ Database ============
    database_enabled: bool = True
    database_url: Optional[str] = None
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_echo: bool = False

    # ============ Redis ============
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10

    # ============ Google Gemini API ============
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_seconds: float = 30.0

    # ============ Email (SMTP) ============
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "FitLife <noreply@fitlife.app>"
    frontend_url: str = "http://localhost:3000"

    # ============ Scheduler ============
    scheduler_enabled: bool = True
    scheduler_timezone: str = "UTC"
    reminder_window_minutes: int = 2
    motivation_sample_size: int = 50
    dispatch_batch_size: int = 100

    # ============ Notifications ============
    notification_ttl_days: int = 30
    max_delivery_attempts: int = 5

    # ============ Logging ============
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ============ Rate Limiting ============
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100  # requests per window
    rate_limit_window: int = 900  # seconds
    rate_limit_trust_forwarded: bool = False  # honour X-Forwarded-For behind a proxy

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_database_configured(self) -> bool:
        """Check if a database connection is configured."""
        return bool(self.database_enabled and self.database_url)

    @property
    def is_gemini_configured(self) -> bool:
        """Check if the Gemini API key is present."""
        return bool(self.gemini_api_key)

    @property
    def is_smtp_configured(self) -> bool:
        """Check if SMTP delivery is properly configured."""
        return all([
            self.smtp_host,
            self.smtp_user,
            self.smtp_password,
        ])


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
