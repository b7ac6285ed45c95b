"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # AI gateway (OpenAI-compatible chat completions endpoint)
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1"
    ai_gateway_api_key: str = ""
    ai_request_timeout: float = 60.0  # seconds
    default_model_alias: str = "gemini"

    # Application settings
    environment: str = "development"
    log_level: str = "INFO"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./hirescore.db"
    auto_migrate: bool = True
    database_echo: bool = False

    # Authentication (HS256 shared secret or RS256 via JWKS)
    auth_jwt_secret: str = ""
    auth_jwks_url: str = ""
    auth_issuer: str = ""
    auth_audience: str = "authenticated"

    # Rate limits for AI endpoints (slowapi syntax)
    ai_rate_limit: str = "20/minute"
    billing_rate_limit: str = "5/minute"

    # CORS Configuration
    # Comma-separated list of allowed origins. In production, set to your domain.
    cors_origins: str = "http://localhost:5173"
    cors_allow_credentials: bool = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def auth_enabled(self) -> bool:
        return bool(self.auth_jwt_secret or self.auth_jwks_url)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
