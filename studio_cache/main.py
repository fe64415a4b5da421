# studio_cache/main.py
"""FastAPI application factory.

Builds the service with:
- A cache registry owned by the application instance
- CORS and GZip middleware
- Slow-request logging
- Cache diagnostics routes
- Logging setup using Loguru
- Health check endpoints
"""
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from studio_cache.api.caches import router as caches_router
from studio_cache.api.deps import get_app_settings, get_cache_registry
from studio_cache.core.config import Settings, get_settings
from studio_cache.core.logging import setup_logging
from studio_cache.core.registry import CacheRegistry, build_registry
from studio_cache.utils.performance import measure


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage FastAPI application lifespan.

    - Startup: Logs the configured caches
    - Shutdown: Drops every cached entry
    """
    settings: Settings = app.state.settings
    registry: CacheRegistry = app.state.cache_registry

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    if registry.enabled:
        logger.info(f"Caches: {', '.join(registry.names()) or 'none'}")
    else:
        logger.info("Caching disabled")

    yield

    registry.clear_all()
    logger.info(f"Shutting down {settings.app_name}")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a configured application.

    Args:
        settings: Settings to build with; defaults to ``get_settings()``.

    Returns:
        FastAPI: Application with its own cache registry on ``app.state``.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
        **settings.fastapi_kwargs,
    )
    app.state.settings = settings
    app.state.cache_registry = build_registry(
        settings.cache_names,
        settings.default_cache_options,
        enabled=settings.cache_enabled,
        coalesce=settings.memoize_coalesce,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def log_slow_requests(request: Request, call_next):
        return await measure(
            lambda: call_next(request),
            f"{request.method} {request.url.path}",
            threshold_ms=settings.perf_threshold_ms,
        )

    app.include_router(caches_router, prefix=settings.api_prefix)

    @app.get("/")
    async def root(settings: Settings = Depends(get_app_settings)):
        """Basic application information."""
        return {
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "status": "running",
        }

    @app.get("/health")
    async def health_check(
        settings: Settings = Depends(get_app_settings),
        registry: CacheRegistry = Depends(get_cache_registry),
    ):
        """Health check endpoint for monitoring application status.

        Returns:
            dict: Health status, environment and number of caches.
        """
        return {
            "status": "healthy",
            "environment": settings.environment,
            "caches": len(registry),
        }

    return app


# Module-level instance for `uvicorn studio_cache.main:app`
app = create_app()
