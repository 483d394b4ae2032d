"""
FastAPI dependency injection.

Dependencies provide the settings and the storage set registry to route
handlers. Both are built once by the application factory and kept on
`app.state`, so every request sees the same read-only objects and tests
can build an app around an in-memory registry.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings
from ..infrastructure.storage.registry import BackendRegistry


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


def get_registry(request: Request) -> BackendRegistry:
    """
    Provide the storage set registry.

    The registry (and the one client each set owns) is created at start-up
    and reused across requests; it is never rebuilt per request.
    """
    return request.app.state.registry


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
RegistryDep = Annotated[BackendRegistry, Depends(get_registry)]
