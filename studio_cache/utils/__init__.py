"""Performance helpers: timing, debounce, throttle and batching."""

from .performance import (
    Batcher,
    PerformanceMetric,
    PerformanceMonitor,
    batch,
    debounce,
    measure,
    memoize_with_performance,
    throttle,
)

__all__ = [
    "Batcher",
    "PerformanceMetric",
    "PerformanceMonitor",
    "batch",
    "debounce",
    "measure",
    "memoize_with_performance",
    "throttle",
]
