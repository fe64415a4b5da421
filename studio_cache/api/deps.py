"""
Dependency injection for FastAPI endpoints.
Provides the per-application settings and cache registry.
"""

from fastapi import Request

from studio_cache.core.config import Settings
from studio_cache.core.registry import CacheRegistry


def get_app_settings(request: Request) -> Settings:
    """
    Dependency that provides the settings the application was built with.

    Returns:
        Settings: Settings stored on the application state
    """
    return request.app.state.settings


def get_cache_registry(request: Request) -> CacheRegistry:
    """
    Dependency that provides the application's cache registry.

    The registry is created by ``create_app`` and lives on ``app.state``;
    handlers never reach for a module-level cache.

    Returns:
        CacheRegistry: Registry owned by the current application
    """
    registry = getattr(request.app.state, "cache_registry", None)
    if registry is None:
        raise RuntimeError("Cache registry not available - app.state.cache_registry is None")
    return registry
