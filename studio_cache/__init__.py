"""studio_cache

In-process caching for the studio booking service: a TTL/size-bounded cache,
memoization decorators, performance helpers and a FastAPI diagnostics app.
"""

from .core.cache import Cache, CacheOptions, CacheStats, create_cache
from .core.memoize import default_key, memoize, memoize_async
from .core.registry import CacheRegistry, build_registry

__all__ = [
    "Cache",
    "CacheOptions",
    "CacheStats",
    "CacheRegistry",
    "build_registry",
    "create_cache",
    "default_key",
    "memoize",
    "memoize_async",
]

__version__ = "0.1.0"
