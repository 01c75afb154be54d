"""reputest bot configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# === Path Configuration ===
PACKAGE_DIR = Path(__file__).parent.parent
PROJECT_DIR = PACKAGE_DIR.parent


class ReputestSettings(BaseSettings):
    """reputest settings"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(..., description="PostgreSQL database URL")

    # X API OAuth 2.0 client (needed for token refresh only)
    xapi_client_id: str = Field(default="", description="X API OAuth2 Client ID")
    xapi_client_secret: str = Field(default="", description="X API OAuth2 Client Secret")

    # Token storage
    token_encryption_key: str = Field(
        default="", description="64 hex chars; tokens are stored encrypted when set"
    )

    # Bot identity
    bot_handle: str = Field(default="reputest", description="Handle the bot answers to")
    vibes_hashtag: str = Field(default="#gmgv", description="Hashtag marking vibe declarations")

    # X API
    api_base_url: str = Field(default="https://api.x.com", description="X API base URL")
    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    # Polling
    poll_interval_seconds: float = Field(default=300.0, gt=0, description="Seconds between passes")
    vibes_window_hours: int = Field(default=6, gt=0, description="Hashtag search lookback")
    mentions_window_hours: int = Field(default=24, gt=0, description="Mention search lookback")
    search_max_pages: int = Field(default=10, gt=0, description="Page cap for searches")
    following_max_pages: int = Field(default=15, gt=0, description="Page cap for following lists")
    page_delay_seconds: float = Field(default=0.5, ge=0, description="Delay between pages")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL uses a postgres scheme"""
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must start with 'postgresql://' or 'postgres://'")
        return v

    @field_validator("bot_handle")
    @classmethod
    def strip_bot_handle(cls, v: str) -> str:
        return v.strip().lstrip("@")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper


@lru_cache
def get_settings() -> ReputestSettings:
    """Get cached settings instance"""
    return ReputestSettings()  # type: ignore[call-arg]
