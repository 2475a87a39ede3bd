"""
Configuration module using Pydantic Settings.
Handles all environment variables and app configuration.
"""

from typing import List, Optional, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Values shipped in sample env files for providers that were never set up
OAUTH_PLACEHOLDERS = {
    "github": ("placeholder_github_client_id", "placeholder_github_secret"),
    "google": ("placeholder_google_client_id", "placeholder_google_secret"),
}


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # App settings
    app_name: str = Field(default="flux-backend", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # API
    api_prefix: str = Field(default="/api/v1", description="Versioned API path prefix")
    admin_prefix: str = Field(default="/api/admin", description="Admin API path prefix")
    cors_origins: str = Field(default="", description="CORS allowed origins (comma-separated)")

    # Admin
    admin_api_key: Optional[str] = Field(
        default=None,
        description="Key expected in X-API-Key for admin endpoints; admin endpoints are closed when unset"
    )

    # Database
    database_url: Optional[str] = Field(default=None, description="PostgreSQL connection URL")
    database_pool_min: int = Field(default=2, ge=0, description="Minimum pool connections")
    database_pool_max: int = Field(default=10, ge=1, description="Maximum pool connections")
    database_timeout: float = Field(default=30.0, gt=0, description="Connection/command timeout in seconds")

    # Identity provider (Supabase Auth / GoTrue)
    supabase_url: str = Field(default="http://127.0.0.1:54321", description="Supabase project URL")
    supabase_anon_key: Optional[str] = Field(default=None, description="Supabase anon (public) key")
    supabase_service_role_key: Optional[str] = Field(default=None, description="Supabase service role key")
    identity_timeout: float = Field(default=10.0, gt=0, description="Identity provider request timeout in seconds")

    # OAuth providers
    github_client_id: Optional[str] = Field(default=None, description="GitHub OAuth client ID")
    github_client_secret: Optional[str] = Field(default=None, description="GitHub OAuth client secret")
    google_client_id: Optional[str] = Field(default=None, description="Google OAuth client ID")
    google_client_secret: Optional[str] = Field(default=None, description="Google OAuth client secret")
    oauth_default_redirect: str = Field(default="/dashboard", description="Post-login redirect path")
    oauth_link_redirect: str = Field(default="/account/settings", description="Post-linking redirect path")

    # Monitoring and logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")

    def get_cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def oauth_credentials(self, provider: str) -> Tuple[Optional[str], Optional[str]]:
        """Return the (client_id, client_secret) pair configured for an OAuth provider."""
        return (
            getattr(self, f"{provider}_client_id", None),
            getattr(self, f"{provider}_client_secret", None),
        )

    def is_oauth_configured(self, provider: str) -> bool:
        """Check that a provider has real credentials, not empty or placeholder values."""
        client_id, client_secret = self.oauth_credentials(provider)
        if not client_id or not client_secret:
            return False
        placeholder_id, placeholder_secret = OAUTH_PLACEHOLDERS.get(provider, (None, None))
        return client_id != placeholder_id and client_secret != placeholder_secret

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment. Must be one of: {valid_envs}")
        return v.lower()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def docs_url(self) -> Optional[str]:
        """Get docs URL based on environment."""
        return "/docs" if self.debug or not self.is_production else None

    @property
    def openapi_url(self) -> Optional[str]:
        """Get OpenAPI URL based on environment."""
        return "/openapi.json" if self.debug or not self.is_production else None


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance. Useful for dependency injection."""
    return settings
