"""AI provider integrations."""

from functools import lru_cache

from .base import AIProvider
from .gateway import GatewayProvider
from ..core.config import get_settings


@lru_cache
def get_provider() -> AIProvider:
    """Shared gateway provider built from settings (FastAPI dependency)."""
    settings = get_settings()
    return GatewayProvider(
        api_key=settings.ai_gateway_api_key,
        base_url=settings.ai_gateway_url,
        timeout=settings.ai_request_timeout,
        default_alias=settings.default_model_alias,
    )


__all__ = [
    "AIProvider",
    "GatewayProvider",
    "get_provider",
]
