"""Named caches owned by one application instance."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, TypeVar

from loguru import logger

from studio_cache.core.cache import Cache, CacheOptions, CacheStats
from studio_cache.core.memoize import KeyFn, memoize, memoize_async

R = TypeVar("R")


class CacheRegistry:
    """
    Holds the named caches of a single application instance.

    The registry is created by the application factory and handed to request
    handlers through dependency injection, so two apps never share caches.
    When ``enabled`` is false the registry creates nothing and its memoizers
    return the function unchanged.
    """

    def __init__(
        self,
        default_options: CacheOptions | None = None,
        *,
        enabled: bool = True,
        coalesce: bool = False,
    ) -> None:
        self._default_options = default_options or CacheOptions()
        self._caches: dict[str, Cache[Any]] = {}
        self.enabled = enabled
        self.coalesce = coalesce

    @property
    def default_options(self) -> CacheOptions:
        return self._default_options

    def get_or_create(self, name: str, options: CacheOptions | None = None) -> Cache[Any]:
        cache = self._caches.get(name)
        if cache is None:
            cache = Cache(options or self._default_options, name=name)
            self._caches[name] = cache
            logger.debug(f"Registered cache '{name}' with {cache.options}")
        return cache

    def register(self, cache: Cache[Any]) -> Cache[Any]:
        """Track an existing cache (for example a memoizer's) under its name."""
        if cache.name in self._caches and self._caches[cache.name] is not cache:
            raise ValueError(f"A different cache named '{cache.name}' is already registered")
        self._caches[cache.name] = cache
        return cache

    def _memo_options(self, ttl_ms: int | None, max_size: int | None) -> dict[str, Any]:
        return {
            "ttl_ms": ttl_ms if ttl_ms is not None else self._default_options.ttl_ms,
            "max_size": max_size if max_size is not None else self._default_options.max_size,
        }

    def memoize(
        self,
        fn: Callable[..., R] | None = None,
        *,
        name: str | None = None,
        ttl_ms: int | None = None,
        max_size: int | None = None,
        key_fn: KeyFn | None = None,
    ):
        """``memoize`` with this registry's defaults; the cache is registered.

        Options left as None fall back to the registry's default options.
        """

        def decorator(func: Callable[..., R]) -> Callable[..., R]:
            if not self.enabled:
                return func
            wrapped = memoize(func, key_fn=key_fn, name=name, **self._memo_options(ttl_ms, max_size))
            self.register(wrapped.cache)
            return wrapped

        if fn is not None:
            return decorator(fn)
        return decorator

    def memoize_async(
        self,
        fn: Callable[..., Awaitable[R]] | None = None,
        *,
        name: str | None = None,
        ttl_ms: int | None = None,
        max_size: int | None = None,
        key_fn: KeyFn | None = None,
        coalesce: bool | None = None,
    ):
        """``memoize_async`` with this registry's defaults; the cache is registered.

        ``coalesce`` defaults to the registry's own setting.
        """

        def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
            if not self.enabled:
                return func
            wrapped = memoize_async(
                func,
                key_fn=key_fn,
                name=name,
                coalesce=self.coalesce if coalesce is None else coalesce,
                **self._memo_options(ttl_ms, max_size),
            )
            self.register(wrapped.cache)
            return wrapped

        if fn is not None:
            return decorator(fn)
        return decorator

    def get(self, name: str) -> Cache[Any]:
        try:
            return self._caches[name]
        except KeyError:
            raise KeyError(f"Unknown cache: {name}") from None

    def names(self) -> list[str]:
        return list(self._caches)

    def stats(self) -> dict[str, CacheStats]:
        return {name: cache.get_stats() for name, cache in self._caches.items()}

    def clear(self, name: str) -> None:
        self.get(name).clear()
        logger.info(f"Cleared cache '{name}'")

    def clear_all(self) -> None:
        for cache in self._caches.values():
            cache.clear()
        logger.info(f"Cleared {len(self._caches)} caches")

    def __contains__(self, name: str) -> bool:
        return name in self._caches

    def __len__(self) -> int:
        return len(self._caches)


def build_registry(
    names: Iterable[str],
    default_options: CacheOptions | None = None,
    *,
    enabled: bool = True,
    coalesce: bool = False,
) -> CacheRegistry:
    """Create a registry with the given caches already in place.

    A disabled registry starts empty.
    """
    registry = CacheRegistry(default_options, enabled=enabled, coalesce=coalesce)
    if not enabled:
        logger.info("Caching disabled; no caches created")
        return registry
    for name in names:
        registry.get_or_create(name)
    return registry
