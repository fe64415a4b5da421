"""Pydantic schemas for API responses."""
from .cache import CacheClearResponse, CacheListResponse, CacheStatsResponse

__all__ = [
    "CacheClearResponse",
    "CacheListResponse",
    "CacheStatsResponse",
]
