"""Memoization decorators backed by a private Cache per wrapped function.

The default cache key is the canonical JSON (orjson, sorted keys) of
``[args, kwargs]``: ``f(1, "a")`` is keyed ``[[1,"a"],{}]`` and ``f(1, b=2)``
is keyed ``[[1],{"b":2}]``, so positional and keyword calls never collide.
Arguments orjson cannot serialize (functions, arbitrary objects, cycles,
non-string dict keys) raise ``TypeError`` from the key function; supply a
``key_fn`` for those.
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, TypeVar

import orjson
from loguru import logger

from studio_cache.core.cache import _MISSING, Cache, CacheOptions, CacheStats

R = TypeVar("R")

KeyFn = Callable[..., str]


def default_key(*args: Any, **kwargs: Any) -> str:
    return orjson.dumps([args, kwargs], option=orjson.OPT_SORT_KEYS).decode()


def _cache_name(func: Callable[..., Any]) -> str:
    return getattr(func, "__qualname__", None) or repr(func)


def _attach_cache(wrapper: Any, cache: Cache) -> None:
    wrapper.cache = cache
    wrapper.cache_clear = cache.clear

    def cache_stats() -> CacheStats:
        return cache.get_stats()

    wrapper.cache_stats = cache_stats


def memoize(
    fn: Callable[..., R] | None = None,
    *,
    ttl_ms: int | None = None,
    max_size: int | None = None,
    key_fn: KeyFn | None = None,
    name: str | None = None,
):
    """Cache the return values of a synchronous function.

    Works as ``@memoize``, ``@memoize(ttl_ms=...)`` or ``memoize(fn, ...)``.
    Exceptions raised by the function propagate and nothing is cached for
    that call. ``None`` results are cached like any other value.

    Args:
        fn: Function to wrap.
        ttl_ms: Lifetime of each cached result in milliseconds.
        max_size: Maximum number of cached results (FIFO eviction).
        key_fn: Builds the cache key from the call arguments.
        name: Cache name; defaults to the function's qualified name.

    Returns:
        The wrapped function, with ``cache``, ``cache_stats()`` and
        ``cache_clear()`` attached.
    """

    def decorator(func: Callable[..., R]) -> Callable[..., R]:
        cache: Cache[R] = Cache(
            CacheOptions(ttl_ms=ttl_ms, max_size=max_size), name=name or _cache_name(func)
        )
        make_key = key_fn or default_key

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> R:
            key = make_key(*args, **kwargs)
            cached = cache.get(key, _MISSING)
            if cached is not _MISSING:
                return cached
            result = func(*args, **kwargs)
            cache.set(key, result)
            return result

        _attach_cache(wrapper, cache)
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator


def memoize_async(
    fn: Callable[..., Awaitable[R]] | None = None,
    *,
    ttl_ms: int | None = None,
    max_size: int | None = None,
    key_fn: KeyFn | None = None,
    coalesce: bool = False,
    name: str | None = None,
):
    """Cache the results of a coroutine function.

    Only successful results are stored. A raised exception propagates to the
    caller and leaves the key uncached, so the next call retries.

    Without ``coalesce``, overlapping calls for the same key each await the
    function. With ``coalesce=True`` they share a single in-flight task; if
    that task fails, every waiting caller receives the exception.

    Args:
        fn: Coroutine function to wrap.
        ttl_ms: Lifetime of each cached result in milliseconds.
        max_size: Maximum number of cached results (FIFO eviction).
        key_fn: Builds the cache key from the call arguments.
        coalesce: Share one in-flight call per key.
        name: Cache name; defaults to the function's qualified name.
    """

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        cache_name = name or _cache_name(func)
        cache: Cache[R] = Cache(CacheOptions(ttl_ms=ttl_ms, max_size=max_size), name=cache_name)
        make_key = key_fn or default_key
        in_flight: dict[str, asyncio.Future[R]] = {}

        async def run(key: str, args: tuple, kwargs: dict) -> R:
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.debug(f"Memoized call {cache_name} failed, result not cached: {e!r}")
                raise
            cache.set(key, result)
            return result

        def forget(key: str, task: asyncio.Future[R]) -> None:
            in_flight.pop(key, None)
            # Mark the failure retrieved even if every waiter was cancelled
            if not task.cancelled():
                task.exception()

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> R:
            key = make_key(*args, **kwargs)
            cached = cache.get(key, _MISSING)
            if cached is not _MISSING:
                return cached
            if not coalesce:
                return await run(key, args, kwargs)

            task = in_flight.get(key)
            if task is None:
                task = asyncio.ensure_future(run(key, args, kwargs))
                in_flight[key] = task
                task.add_done_callback(functools.partial(forget, key))
            return await asyncio.shield(task)

        _attach_cache(wrapper, cache)
        wrapper.in_flight = in_flight
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator
