"""
Application configuration management using Pydantic Settings.

This module provides a type-safe, centralized configuration system
that loads from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    Worker configuration loaded from environment variables.

    All settings can be overridden via .env file or environment variables.
    Settings are validated at startup using Pydantic.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===== Text Generation =====
    OPENAI_API_KEY: str | None = Field(
        default=None,
        description="OpenAI API key for story text and metadata extraction"
    )

    OPENAI_MODEL: str = Field(
        default="gpt-5-mini",
        description="Model used by both the generation and metadata stages"
    )

    # ===== Queue =====
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL backing the durable story queue"
    )

    STORY_QUEUE_NAME: str = Field(
        default="story-generation",
        description="Name of the story generation queue"
    )

    WORKER_PREFETCH: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Max unacknowledged deliveries (in-flight jobs) per consumer"
    )

    WORKER_POLL_TIMEOUT: int = Field(
        default=5,
        ge=1,
        le=60,
        description="Seconds a blocking receive waits before re-checking for shutdown"
    )

    WORKER_CONSUMER_NAME: str | None = Field(
        default=None,
        description="Stable consumer name owning the processing list (defaults to the hostname)"
    )

    FINGERPRINT_WINDOW: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of recent stories used to build the avoid list"
    )

    # ===== Supabase Configuration =====
    SUPABASE_URL: str | None = Field(
        default=None,
        description="Supabase project URL"
    )

    SUPABASE_SERVICE_KEY: str | None = Field(
        default=None,
        description="Supabase service role key (for server-side operations, bypasses RLS)"
    )

    # ===== Object Storage =====
    S3_ENDPOINT: str | None = Field(
        default=None,
        description="S3-compatible endpoint URL"
    )

    S3_ACCESS_KEY: str | None = Field(default=None)
    S3_SECRET_KEY: str | None = Field(default=None)

    S3_BUCKET: str | None = Field(
        default=None,
        description="Bucket holding story cover previews"
    )

    S3_REGION: str = Field(default="us-east-1")

    S3_FORCE_PATH_STYLE: bool = Field(
        default=True,
        description="Use path-style addressing (required by most self-hosted S3 servers)"
    )

    @field_validator('S3_FORCE_PATH_STYLE', mode='before')
    @classmethod
    def parse_bool_string(cls, v):
        """Parse boolean from string values (container env vars are strings)."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return False

    PUBLIC_ASSET_BASE_URL: str | None = Field(
        default=None,
        description="Public base URL for uploaded assets (falls back to S3_ENDPOINT)"
    )

    # ===== Credits =====
    PRICING_CACHE_TTL_SECONDS: float = Field(
        default=60.0,
        ge=0.0,
        description="How long credit pricing rows are cached"
    )

    # ===== Application Settings =====
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment mode: development or production"
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # ===== Computed Properties =====

    @property
    def supabase_configured(self) -> bool:
        """Check if Supabase is properly configured."""
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_KEY)

    @property
    def s3_configured(self) -> bool:
        """Check if object storage is properly configured."""
        return all([
            self.S3_ENDPOINT,
            self.S3_ACCESS_KEY,
            self.S3_SECRET_KEY,
            self.S3_BUCKET,
        ])


# Global configuration instance
# Import this in other modules: from bedtime.config import config
config = AppConfig()
