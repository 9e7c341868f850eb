"""Application settings and configuration.

This module defines all configuration options for the Penne Stage service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Penne Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Hosted backend (Supabase project)
    supabase_url: str | None = Field(default=None, alias="SUPABASE_URL")
    supabase_anon_key: str | None = Field(default=None, alias="SUPABASE_ANON_KEY")
    # Server-side key; when set it authorises store calls instead of the anon key
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")
    remote_http_timeout_seconds: float = Field(
        default=10.0,
        alias="REMOTE_HTTP_TIMEOUT_SECONDS",
    )

    # Access tokens are issued by the hosted auth service and verified here
    supabase_jwt_secret: str = Field(
        default="super-secret-jwt-token-with-at-least-32-characters-long",
        alias="SUPABASE_JWT_SECRET",
    )
    supabase_jwt_audience: str = Field(default="authenticated", alias="SUPABASE_JWT_AUD")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Dish vote synchronisation
    vote_sync_policy: Literal["optimistic", "rollback"] = Field(
        default="rollback",
        alias="VOTE_SYNC_POLICY",
    )
    vote_serialize_writes: bool = Field(default=True, alias="VOTE_SERIALIZE_WRITES")

    # Avatar cache
    image_cache_max_entries: int = Field(default=128, ge=1, alias="IMAGE_CACHE_MAX_ENTRIES")
    image_cache_ttl_seconds: float | None = Field(
        default=3600.0,
        alias="IMAGE_CACHE_TTL_SECONDS",
    )

    # Feed
    feed_page_size: int = Field(default=50, ge=1, le=200, alias="FEED_PAGE_SIZE")

    # CORS configuration for the mobile/web client
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def remote_enabled(self) -> bool:
        """Return True when the hosted backend is configured.

        Returns:
            Whether both the project URL and the anon key are present
        """
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def rest_url(self) -> str:
        """Return the base URL of the hosted backend without a trailing slash."""
        return (self.supabase_url or "").rstrip("/")


settings = Settings()
