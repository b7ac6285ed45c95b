"""Core quota and AI relay logic."""

from .config import get_settings

__all__ = [
    "get_settings",
]
