from typing import Final

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_AUTOSAVE_DELAY_SECONDS, DEFAULT_PORT
from .domain.constants import MAX_HISTORY_SIZE


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Server configuration
    debug: bool = Field(default=True, description="Enable debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="Server port")

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./quotations.db", description="Database connection URL"
    )

    # Application configuration
    app_name: str = Field(default="Quotation History", description="Application name")
    version: str = Field(default="0.1.0", description="Application version")

    # Editing configuration
    max_history_size: int = Field(
        default=MAX_HISTORY_SIZE,
        ge=1,
        description="Number of undo snapshots kept per quotation",
    )
    autosave_delay_seconds: float = Field(
        default=DEFAULT_AUTOSAVE_DELAY_SECONDS,
        ge=0,
        description="Inactivity window before edits are written to storage "
        + "(0 writes immediately)",
    )
    currency_symbol: str = Field(
        default="Rs.", description="Currency symbol used in change summaries"
    )

    # Logging configuration
    log_to_file: bool = Field(
        default=False, description="Force logging to file even in debug mode"
    )

    # Pydantic Settings configuration
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global settings instance
settings: Final = Settings()
