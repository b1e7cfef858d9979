"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # MENU EXTRACTION (AI)
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key used for menu extraction"
    )
    extraction_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used to extract menu items from documents"
    )
    extraction_max_tokens: int = Field(
        default=8192,
        ge=1024,
        le=64000,
        description="Maximum tokens for an extraction response"
    )

    # ===================
    # UPLOAD / PREVIEW
    # ===================
    max_upload_size_mb: int = Field(
        default=15,
        ge=1,
        le=100,
        description="Maximum accepted menu document size in MB"
    )
    preview_ttl_minutes: int = Field(
        default=60,
        ge=5,
        le=24 * 60,
        description="How long an upload preview stays editable"
    )
    raw_text_preview_chars: int = Field(
        default=5000,
        ge=0,
        description="Characters of extracted text echoed back in a preview"
    )

    # ===================
    # IMPORT
    # ===================
    async_import_threshold: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Batches with more eligible items than this run as a background job"
    )
    max_item_description_length: int = Field(
        default=500,
        ge=1,
        description="Maximum characters in a menu item description"
    )
    max_ingredients: int = Field(
        default=50,
        ge=1,
        description="Maximum ingredients per menu item"
    )
    max_ingredient_length: int = Field(
        default=100,
        ge=1,
        description="Maximum characters per ingredient"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def extraction_configured(self) -> bool:
        """Check if AI menu extraction can be used."""
        return bool(self.anthropic_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
