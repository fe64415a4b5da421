from pydantic import BaseModel

from studio_cache.core.cache import CacheStats


class CacheStatsResponse(BaseModel):
    """Statistics of one named cache"""

    name: str
    hits: int
    misses: int
    size: int
    max_size: int | None = None
    evictions: int = 0
    expirations: int = 0
    hit_ratio: float = 0.0

    @classmethod
    def from_stats(cls, name: str, stats: CacheStats) -> "CacheStatsResponse":
        return cls(
            name=name,
            hits=stats.hits,
            misses=stats.misses,
            size=stats.size,
            max_size=stats.max_size,
            evictions=stats.evictions,
            expirations=stats.expirations,
            hit_ratio=round(stats.hit_ratio, 4),
        )


class CacheListResponse(BaseModel):
    """Statistics of every cache in the registry"""

    caches: list[CacheStatsResponse]
    total_entries: int


class CacheClearResponse(BaseModel):
    """Result of clearing a cache"""

    name: str
    cleared: bool
    message: str
