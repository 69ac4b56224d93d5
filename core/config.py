"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
Coach-editable values (check-in cycle length) are NOT settings: they live
in the system_config table and are read on every use.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite for local runs and tests).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="fitfast")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # JWT Authentication - REQUIRED for token signing
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # HTTP Rate Limiting (per user or IP, all endpoints)
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_PER_MINUTE: int = Field(default=60)

    # Check-in / plan generation gates
    CHECK_IN_SUBMISSIONS_PER_DAY: int = Field(default=3, ge=1)
    # Meal + workout plans combined, per coach-configured cycle.
    PLAN_GENERATIONS_PER_CYCLE: int = Field(default=2, ge=1)
    DEFAULT_CHECK_IN_FREQUENCY_DAYS: int = Field(default=14, ge=1)

    # AI text generation (Google GenAI)
    GOOGLE_API_KEY: Optional[str] = Field(default=None)
    PLAN_GENERATION_MODEL: str = Field(default="gemini-2.5-flash")
    PLAN_GENERATION_TEMPERATURE: float = Field(default=0.7)
    PLAN_GENERATION_MAX_TOKENS: int = Field(default=6000)
    PLAN_GENERATION_MAX_RETRIES: int = Field(default=3, ge=0)
    PLAN_GENERATION_RETRY_BACKOFF_S: float = Field(default=1.0)
    PLAN_GENERATION_TIMEOUT_S: int = Field(default=180, ge=1)
    PLAN_STREAM_TTL_S: int = Field(default=3600)

    # Work queue (caps simultaneous AI calls across all users)
    WORK_QUEUE_MAX_PARALLELISM: int = Field(default=5, ge=1)
    WORK_QUEUE_IDLE_POLL_S: float = Field(default=0.5)
    # Jobs left "running" longer than this are presumed lost and failed.
    WORK_QUEUE_STALE_JOB_S: int = Field(default=30 * 60)

    # Durable workflow
    WORKFLOW_POLL_INTERVAL_S: float = Field(default=2.0)
    # Give up waiting on a generation job after this long (run -> timed_out).
    WORKFLOW_POLL_TIMEOUT_S: int = Field(default=20 * 60)
    # Runs still "running" with no progress for this long are re-driven.
    WORKFLOW_STALLED_AFTER_S: int = Field(default=30 * 60)

    # External API Configuration
    EXTERNAL_API_TIMEOUT: int = Field(default=30)

    # Celery Configuration
    CELERY_BROKER_URL: str = Field(default="redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://redis:6379/0")

    # Push notifications (OneSignal)
    ONESIGNAL_APP_ID: Optional[str] = Field(default=None)
    ONESIGNAL_REST_API_KEY: Optional[str] = Field(default=None)
    ONESIGNAL_API_URL: str = Field(default="https://onesignal.com/api/v1/notifications")

    # Email Configuration
    EMAIL_ENABLED: bool = Field(default=False)
    SMTP_SERVER: str = Field(default="localhost")
    SMTP_PORT: int = Field(default=587)
    SMTP_USERNAME: Optional[str] = Field(default=None)
    SMTP_PASSWORD: Optional[str] = Field(default=None)
    FROM_EMAIL: str = Field(default="noreply@fitfast.app")
    FROM_NAME: str = Field(default="FitFast")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    # e.g., "https://app.fitfast.app,https://admin.fitfast.app"
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions


# Global settings instance
settings = Settings()
