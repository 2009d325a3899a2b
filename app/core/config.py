"""
Application configuration using pydantic-settings.
All environment variables are loaded from .env file with sensible defaults.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    APP_NAME: str = "Rezo Backend API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Database (SQLite for local dev, swap to PostgreSQL for production)
    DATABASE_URL: str = "sqlite:///./rezo.db"

    # Redis (rate limiting)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_ENABLED: bool = False  # Disable by default for easy local dev

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:3001",
    ]

    # Frontend base URL used to build verification links
    FRONTEND_URL: str = "http://localhost:3000"

    # Session credentials (JWT)
    SESSION_SECRET_KEY: str = "change-this-secret-key-in-production"
    SESSION_ALGORITHM: str = "HS256"
    SESSION_EXPIRE_DAYS: int = 7

    # Magic links
    MAGIC_LINK_EXPIRE_MINUTES: int = 10
    RATE_LIMIT_ENABLED: bool = True
    MAGIC_LINK_RATE_LIMIT: int = 3  # requests per window per client
    MAGIC_LINK_RATE_WINDOW_SECONDS: int = 15 * 60

    # Email delivery: console, smtp, resend, sendgrid
    EMAIL_PROVIDER: str = "console"
    EMAIL_FROM: str = "Rezo <noreply@rezo.app>"
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    RESEND_API_KEY: str = ""
    SENDGRID_API_KEY: str = ""

    # Background sweep of expired magic-link tokens (0 disables the job)
    TOKEN_SWEEP_INTERVAL_MINUTES: int = 15

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance to avoid re-reading .env on every call."""
    return Settings()
