from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from loguru import logger


V = TypeVar("V")

_MISSING = object()


@dataclass(frozen=True)
class CacheOptions:
    """Construction options for a Cache.

    Attributes:
        ttl_ms: Default time-to-live in milliseconds. None means entries never
            expire unless a TTL is passed to ``set``.
        max_size: Maximum number of entries. None means unbounded.
    """

    ttl_ms: int | None = None
    max_size: int | None = None

    def __post_init__(self) -> None:
        if self.max_size is not None and self.max_size < 1:
            raise ValueError("max_size must be positive")


@dataclass
class _CacheEntry(Generic[V]):
    value: V
    expires_at: float | None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of cache counters."""

    hits: int
    misses: int
    size: int
    max_size: int | None
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class Cache(Generic[V]):
    """
    In-memory key/value cache with optional TTL and a FIFO size bound.

    - Expired entries are swept lazily whenever the cache is touched
    - When full, the earliest inserted key is evicted (reads do not refresh it)
    - Overwriting an existing key never evicts
    - Zero or negative TTLs expire the entry on the next access
    """

    def __init__(self, options: CacheOptions | None = None, name: str | None = None) -> None:
        self._options = options or CacheOptions()
        self._store: dict[str, _CacheEntry[V]] = {}
        self.name = name or "cache"
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._log = logger.bind(cache=self.name)

    @property
    def options(self) -> CacheOptions:
        return self._options

    def _now(self) -> float:
        return time.monotonic()

    def _expires_at(self, ttl_ms: int | None) -> float | None:
        ttl = ttl_ms if ttl_ms is not None else self._options.ttl_ms
        if ttl is None:
            return None
        now = self._now()
        if ttl <= 0:
            return now
        return now + ttl / 1000.0

    def _purge_expired(self) -> None:
        now = self._now()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            self._expirations += len(expired)
            self._log.debug(f"Expired {len(expired)} entries from cache '{self.name}'")

    def set(self, key: str, value: V, ttl_ms: int | None = None) -> None:
        self._purge_expired()
        max_size = self._options.max_size
        if max_size is not None and key not in self._store and len(self._store) >= max_size:
            oldest = next(iter(self._store))
            del self._store[oldest]
            self._evictions += 1
            self._log.debug(f"Evicted '{oldest}' from cache '{self.name}' (max_size={max_size})")
        self._store[key] = _CacheEntry(value=value, expires_at=self._expires_at(ttl_ms))

    def get(self, key: str, default: V | None = None) -> V | None:
        """Return the cached value for ``key``, or ``default`` when absent.

        Counts a hit or a miss. Pass a sentinel ``default`` to tell a cached
        ``None`` apart from a miss.
        """
        self._purge_expired()
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return default
        if entry.is_expired(self._now()):
            del self._store[key]
            self._expirations += 1
            self._misses += 1
            return default
        self._hits += 1
        return entry.value

    def delete(self, key: str) -> bool:
        self._purge_expired()
        return self._store.pop(key, None) is not None

    def has(self, key: str) -> bool:
        self._purge_expired()
        return key in self._store

    def clear(self) -> None:
        self._store.clear()

    def get_or_set(self, key: str, factory: Callable[[], V], ttl_ms: int | None = None) -> V:
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        value = factory()
        self.set(key, value, ttl_ms=ttl_ms)
        return value

    def get_stats(self) -> CacheStats:
        self._purge_expired()
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._store),
            max_size=self._options.max_size,
            evictions=self._evictions,
            expirations=self._expirations,
        )

    def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._store)


def create_cache(
    options: CacheOptions | None = None,
    *,
    ttl_ms: int | None = None,
    max_size: int | None = None,
    name: str | None = None,
) -> Cache:
    """Build a Cache from an options object or from keyword options."""
    if options is not None and (ttl_ms is not None or max_size is not None):
        raise TypeError("Pass either an options object or ttl_ms/max_size, not both")
    if options is None:
        options = CacheOptions(ttl_ms=ttl_ms, max_size=max_size)
    return Cache(options, name=name)
