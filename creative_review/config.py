"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# config.py lives in creative_review/, so the project root is one level up
_CONFIG_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _CONFIG_DIR.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Creative Review", description="Application name")
    app_env: str = Field(default="development", description="Application environment")
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed by the CORS middleware",
        alias="CORS_ORIGINS",
    )

    # Security
    secret_key: str = Field(
        ...,
        description="Secret key for JWT tokens",
        alias="SECRET_KEY",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    access_token_expire_minutes: int = Field(default=60 * 24, description="Access token expiration in minutes")

    # Database
    database_url: str = Field(
        ...,
        description="Database connection URL",
        alias="DATABASE_URL",
    )

    # Storage
    storage_path: str | None = Field(
        default=None,
        description="Directory for uploaded files. Defaults to 'uploads' in the project root",
        alias="STORAGE_PATH",
    )
    storage_base_url: str = Field(
        default="/files",
        description="URL prefix under which stored files are served",
        alias="STORAGE_BASE_URL",
    )

    # Review
    comment_max_length: int = Field(default=5000, description="Maximum length of a comment body")
    staged_media_ttl_hours: int = Field(
        default=24,
        description="How long staged comment images stay attachable",
        alias="STAGED_MEDIA_TTL_HOURS",
    )
    staged_media_max_size: int = Field(default=10 * 1024 * 1024, description="Maximum staged image size in bytes")
    max_upload_sizes: dict[str, int] = Field(
        default={
            "image": 50 * 1024 * 1024,
            "video": 500 * 1024 * 1024,
            "pdf": 50 * 1024 * 1024,
            "design": 100 * 1024 * 1024,
        },
        description="Maximum upload size in bytes per asset type",
    )

    # Notifications
    notification_delivery: str = Field(
        default="database",
        description="Delivery channel for notifications: 'database' (in-app inbox) or 'log'",
        alias="NOTIFICATION_DELIVERY",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str:
        """Validate and normalize database URL."""
        if v is None or v == "":
            raise ValueError("DATABASE_URL is required")
        return v.strip()

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, v: str) -> str:
        """Normalize app environment to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("notification_delivery", mode="before")
    @classmethod
    def validate_notification_delivery(cls, v: str) -> str:
        """Only known delivery channels are accepted."""
        if isinstance(v, str):
            v = v.lower().strip()
        if v not in ("database", "log"):
            raise ValueError("NOTIFICATION_DELIVERY must be 'database' or 'log'")
        return v


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings: Application settings instance

    Example:
        ```python
        from creative_review.config import get_settings

        settings = get_settings()
        print(settings.database_url)
        ```
    """
    return Settings()


# Global settings instance
settings = get_settings()
