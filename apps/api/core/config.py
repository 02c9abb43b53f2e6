"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from typing import Literal, Optional
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
    # DATABASE_URL wins over the POSTGRES_* parts when set (tests use SQLite).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="kpt_journal")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "text"] = Field(default="json")

    # Analytics request defaults
    # These shape request windows only; algorithm thresholds live in
    # core.analytics_constants and are not configurable.
    ANALYTICS_DEFAULT_DAYS: int = Field(default=30, ge=1)
    ANALYTICS_MAX_DAYS: int = Field(default=365, ge=1)
    ANALYTICS_MIN_TREND_DAYS: int = Field(default=7, ge=1)
    # First day of the week for week buckets (0=Monday ... 6=Sunday)
    ANALYTICS_WEEK_START: int = Field(default=0, ge=0, le=6)

    # Tag stored on every persisted insight
    INSIGHT_DATA_SOURCE: str = Field(default="kpt_journal", max_length=50)

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def check_analytics_windows(self) -> "Settings":
        if not self.ANALYTICS_MIN_TREND_DAYS <= self.ANALYTICS_DEFAULT_DAYS <= self.ANALYTICS_MAX_DAYS:
            raise ValueError(
                "ANALYTICS_DEFAULT_DAYS must lie between ANALYTICS_MIN_TREND_DAYS and ANALYTICS_MAX_DAYS"
            )
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:"
            f"{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:"
            f"{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


# Global settings instance
settings = Settings()
