#!/usr/bin/env python3
"""
Server runner for the cache service.

Caches live in process memory. Every uvicorn worker is a separate process
that calls the ``create_app`` factory and builds its own cache registry, so
workers never see each other's entries, hit counts or clears. A DELETE on
``/api/v1/caches/{name}`` only empties the cache of the worker that served
it. Run a single worker when consistent diagnostics matter more than
throughput.

``studio_cache.main:app`` is the same application built at import time, for
``uvicorn studio_cache.main:app`` and other servers that need a module-level
instance. The factory is used here so reloads rebuild settings and logging.
"""

import uvicorn

from studio_cache.core.config import get_settings


def run_server():
    """Run the FastAPI server with environment-specific configuration."""
    settings = get_settings()

    config = {
        "app": "studio_cache.main:create_app",
        "factory": True,
        "host": "0.0.0.0",
        "port": 8000,
        "access_log": True,
        "log_level": settings.log_level.lower(),
    }

    if settings.environment == "development":
        # One process: the reloader restarts it, emptying every cache
        config.update({
            "reload": True,
            "reload_dirs": ["studio_cache"],
            "workers": 1,
        })
    else:
        # Four independent registries; each worker warms its own caches
        # and cache_max_size applies per worker, not in total
        config.update({
            "loop": "uvloop",
            "http": "httptools",
            "workers": 4,
            "reload": False,
            "access_log": False,
        })

    uvicorn.run(**config)


if __name__ == "__main__":
    run_server()
