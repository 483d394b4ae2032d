"""
Application configuration using Pydantic settings.

Configuration comes from environment variables with sensible defaults.
Storage sets are discovered separately by the backend resolver.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]

