"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Body Perception API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    # The browser client posts to /api/submit and reads /api/stats
    API_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Assessment
    ASSESSMENT_ITEM_COUNT: int = Field(
        default=12,
        description="Number of images shown per session (N)",
    )
    SCORING_STRATEGY: Literal["weighted", "unweighted"] = "weighted"

    # Population statistics storage
    # "memory" for single-worker, "redis" or "database" for multi-worker deployments
    STATS_STORAGE: Literal["memory", "redis", "database"] = "memory"
    STATS_REDIS_URL: str = "redis://localhost:6379/0"
    DATABASE_URL: str = "sqlite:///./perception.db"
    STATS_KEY: str = "global:stats"
    STATS_MIN_SAMPLE_SIZE: int = Field(
        default=10,
        ge=0,
        description="Submissions required before percentiles use the population distribution",
    )
    STATS_MAX_RETRIES: int = Field(
        default=10,
        ge=1,
        description="Compare-and-swap attempts per ingest before giving up",
    )
    STATS_VARIANCE_METHOD: Literal["legacy", "welford"] = "legacy"
    SUBMISSION_TTL_SECONDS: int = 31536000  # 1 year

    # Local fallback estimator
    FALLBACK_REFERENCE_COUNT: int = Field(
        default=7,
        description="Images an average respondent marks as overweight",
    )

    # Assessment client
    CLIENT_API_URL: str = "http://localhost:8000/api"
    CLIENT_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_assessment_config(self) -> Self:
        """Validate item count and fallback reference count at startup."""
        if self.ASSESSMENT_ITEM_COUNT < 2:
            raise ValueError(
                f"ASSESSMENT_ITEM_COUNT must be at least 2, got {self.ASSESSMENT_ITEM_COUNT}"
            )
        if not 1 <= self.FALLBACK_REFERENCE_COUNT <= self.ASSESSMENT_ITEM_COUNT:
            raise ValueError(
                "FALLBACK_REFERENCE_COUNT must be between 1 and "
                f"ASSESSMENT_ITEM_COUNT ({self.ASSESSMENT_ITEM_COUNT}), "
                f"got {self.FALLBACK_REFERENCE_COUNT}"
            )
        return self


settings = Settings()
