"""Cache diagnostics API endpoints.

Lets operators inspect the named caches of a running service:
- List statistics for every cache
- Inspect a single cache
- Clear a single cache
"""
from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from studio_cache.api.deps import get_cache_registry
from studio_cache.core.registry import CacheRegistry
from studio_cache.schemas.cache import (
    CacheClearResponse,
    CacheListResponse,
    CacheStatsResponse,
)

router = APIRouter(prefix="/caches", tags=["caches"])


def _lookup(registry: CacheRegistry, name: str):
    if name not in registry:
        raise HTTPException(status_code=404, detail=f"Cache '{name}' not found")
    return registry.get(name)


@router.get(
    "",
    response_model=CacheListResponse,
    summary="List Caches",
    description="Returns hit/miss/size statistics for every registered cache",
)
async def list_caches(registry: CacheRegistry = Depends(get_cache_registry)):
    caches = [
        CacheStatsResponse.from_stats(name, stats)
        for name, stats in registry.stats().items()
    ]
    return CacheListResponse(
        caches=caches,
        total_entries=sum(cache.size for cache in caches),
    )


@router.get(
    "/{name}",
    response_model=CacheStatsResponse,
    summary="Get Cache Statistics",
)
async def get_cache(name: str, registry: CacheRegistry = Depends(get_cache_registry)):
    """Statistics for one cache.

    Raises:
        HTTPException: 404 if no cache with that name is registered.
    """
    cache = _lookup(registry, name)
    return CacheStatsResponse.from_stats(name, cache.get_stats())


@router.delete(
    "/{name}",
    response_model=CacheClearResponse,
    summary="Clear Cache",
    description="Removes every entry from the cache; hit/miss counters are kept",
)
async def clear_cache(name: str, registry: CacheRegistry = Depends(get_cache_registry)):
    cache = _lookup(registry, name)
    removed = len(cache)
    registry.clear(name)
    logger.info(f"Cache '{name}' cleared via API ({removed} entries)")
    return CacheClearResponse(
        name=name,
        cleared=True,
        message=f"Removed {removed} entries",
    )
