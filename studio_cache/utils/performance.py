"""Timing, rate-limiting and batching helpers.

Provides:
- PerformanceMonitor for named start/end timings with a slow-call threshold
- measure() for timing a single sync or async call
- debounce / throttle decorators
- Batcher for coalescing single-item awaits into one bulk call
- memoize_with_performance, a bounded memoizer that records cache hit timings
"""
from __future__ import annotations

import asyncio
import functools
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

from studio_cache.core.cache import _MISSING, Cache, CacheOptions
from studio_cache.core.memoize import KeyFn, default_key

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class PerformanceMetric:
    """A single completed timing.

    Attributes:
        name: Label passed to ``start``/``end``.
        start_time: ``time.perf_counter()`` value at start, in seconds.
        end_time: ``time.perf_counter()`` value at end, in seconds.
        duration_ms: Elapsed time in milliseconds.
        metadata: Monitor-level metadata merged with per-call metadata.
    """

    name: str
    start_time: float
    end_time: float
    duration_ms: float
    metadata: dict[str, Any] = field(default_factory=dict)


ThresholdHandler = Callable[[PerformanceMetric], None]


def _log_slow_call(metric: PerformanceMetric) -> None:
    logger.warning(
        f"Performance threshold exceeded: {metric.name} took {metric.duration_ms:.1f}ms"
    )


class PerformanceMonitor:
    """Collects named timings and reports the ones over a threshold."""

    def __init__(
        self,
        threshold_ms: float = 1000.0,
        on_threshold_exceeded: ThresholdHandler | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.threshold_ms = threshold_ms
        self._on_threshold_exceeded = on_threshold_exceeded or _log_slow_call
        self._metadata = dict(metadata or {})
        self._metrics: list[PerformanceMetric] = []
        self._active: dict[str, float] = {}

    def start(self, name: str) -> None:
        self._active[name] = time.perf_counter()

    def end(self, name: str, metadata: dict[str, Any] | None = None) -> PerformanceMetric | None:
        start_time = self._active.pop(name, None)
        if start_time is None:
            logger.warning(f"No active metric found for: {name}")
            return None

        end_time = time.perf_counter()
        metric = PerformanceMetric(
            name=name,
            start_time=start_time,
            end_time=end_time,
            duration_ms=(end_time - start_time) * 1000.0,
            metadata={**self._metadata, **(metadata or {})},
        )
        self._metrics.append(metric)

        if metric.duration_ms > self.threshold_ms:
            self._on_threshold_exceeded(metric)
        return metric

    def get_metrics(self) -> list[PerformanceMetric]:
        return list(self._metrics)

    def get_average(self, name: str) -> float:
        durations = [m.duration_ms for m in self._metrics if m.name == name]
        if not durations:
            return 0.0
        return sum(durations) / len(durations)

    def clear(self) -> None:
        self._metrics.clear()
        self._active.clear()


async def measure(
    fn: Callable[[], Awaitable[T] | T],
    name: str,
    *,
    threshold_ms: float = 1000.0,
    on_threshold_exceeded: ThresholdHandler | None = None,
    metadata: dict[str, Any] | None = None,
) -> T:
    """Run ``fn`` (sync or async) and report it if slower than ``threshold_ms``.

    Exceptions are logged and re-raised unchanged.
    """
    start = time.perf_counter()
    try:
        result = fn()
        if inspect.isawaitable(result):
            result = await result
    except Exception as e:
        logger.error(f"Error in {name}: {e}")
        raise

    end = time.perf_counter()
    duration_ms = (end - start) * 1000.0
    if duration_ms > threshold_ms:
        metric = PerformanceMetric(
            name=name,
            start_time=start,
            end_time=end,
            duration_ms=duration_ms,
            metadata=dict(metadata or {}),
        )
        (on_threshold_exceeded or _log_slow_call)(metric)
    return result


def debounce(delay_ms: float) -> Callable[[Callable[..., Any]], Callable[..., None]]:
    """Delay calls until ``delay_ms`` has passed without another call.

    Each call cancels the pending one, so only the last call in a burst runs.
    Must be called from inside a running asyncio event loop. The wrapped
    function may be a coroutine function; it is then scheduled as a task and
    held in ``wrapper.tasks`` until it finishes. Failures have no caller to
    propagate to, so they are logged.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., None]:
        pending: asyncio.TimerHandle | None = None
        tasks: set[asyncio.Future] = set()
        name = getattr(func, "__qualname__", None) or repr(func)

        def collect(task: asyncio.Future) -> None:
            tasks.discard(task)
            if task.cancelled():
                return
            try:
                task.result()
            except Exception:
                logger.exception(f"Debounced call {name} failed")

        def invoke(args: tuple, kwargs: dict) -> None:
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.exception(f"Debounced call {name} failed")
                return
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                tasks.add(task)
                task.add_done_callback(collect)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> None:
            nonlocal pending
            if pending is not None:
                pending.cancel()
            loop = asyncio.get_running_loop()
            pending = loop.call_later(delay_ms / 1000.0, invoke, args, kwargs)

        def cancel() -> None:
            nonlocal pending
            if pending is not None:
                pending.cancel()
                pending = None

        wrapper.cancel = cancel
        wrapper.tasks = tasks
        return wrapper

    return decorator


def throttle(limit_ms: float) -> Callable[[Callable[..., R]], Callable[..., R | None]]:
    """Run at most one call per ``limit_ms`` window; extra calls return None."""

    def decorator(func: Callable[..., R]) -> Callable[..., R | None]:
        last_run: float | None = None

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> R | None:
            nonlocal last_run
            now = time.monotonic()
            if last_run is not None and (now - last_run) * 1000.0 < limit_ms:
                return None
            last_run = now
            return func(*args, **kwargs)

        return wrapper

    return decorator


class Batcher(Generic[T, R]):
    """
    Collect single items into one call to a bulk coroutine.

    ``fn`` receives the list of submitted items and must return one result
    per item, in order. A batch is sent as soon as ``max_size`` items are
    waiting, or ``max_delay_ms`` after the first item of the batch arrived.
    If ``fn`` raises, every caller in that batch receives the exception.
    """

    def __init__(
        self,
        fn: Callable[[list[T]], Awaitable[list[R]]],
        max_size: int = 100,
        max_delay_ms: float = 100.0,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._fn = fn
        self._max_size = max_size
        self._max_delay_ms = max_delay_ms
        self._pending: list[tuple[T, asyncio.Future[R]]] = []
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def submit(self, item: T) -> R:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[R] = loop.create_future()
        self._pending.append((item, future))

        if len(self._pending) >= self._max_size:
            self._dispatch()
        elif self._timer is None:
            self._timer = loop.call_later(self._max_delay_ms / 1000.0, self._dispatch)
        return await future

    async def flush(self) -> None:
        """Send any waiting items now and wait for in-progress batches."""
        self._dispatch()
        if self._tasks:
            await asyncio.gather(*self._tasks)

    def _dispatch(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        task = asyncio.ensure_future(self._run(batch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, batch: list[tuple[T, asyncio.Future[R]]]) -> None:
        items = [item for item, _ in batch]
        try:
            results = await self._fn(items)
            if len(results) != len(batch):
                raise ValueError(
                    f"Batch function returned {len(results)} results for {len(batch)} items"
                )
        except Exception as e:
            logger.warning(f"Batch of {len(batch)} items failed: {e}")
            for _, future in batch:
                if not future.done():
                    future.set_exception(e)
            return

        logger.debug(f"Processed batch of {len(batch)} items")
        for (_, future), result in zip(batch, results):
            if not future.done():
                future.set_result(result)


def batch(
    fn: Callable[[list[T]], Awaitable[list[R]]],
    max_size: int = 100,
    max_delay_ms: float = 100.0,
) -> Callable[[T], Awaitable[R]]:
    """Return a single-item coroutine function backed by a Batcher."""
    batcher = Batcher(fn, max_size=max_size, max_delay_ms=max_delay_ms)

    async def submit(item: T) -> R:
        return await batcher.submit(item)

    submit.batcher = batcher
    return submit


def memoize_with_performance(
    fn: Callable[..., R] | None = None,
    *,
    max_size: int = 1000,
    key_fn: KeyFn | None = None,
    threshold_ms: float = 1000.0,
    on_threshold_exceeded: ThresholdHandler | None = None,
    metadata: dict[str, Any] | None = None,
):
    """Memoize a function and time every call, cached or not.

    Each call records a metric named after the function, with
    ``{"cached": True}`` or ``{"cached": False}`` metadata. The monitor is
    exposed as ``wrapper.monitor``.
    """

    def decorator(func: Callable[..., R]) -> Callable[..., R]:
        name = getattr(func, "__name__", None) or repr(func)
        cache: Cache[R] = Cache(CacheOptions(max_size=max_size), name=name)
        monitor = PerformanceMonitor(
            threshold_ms=threshold_ms,
            on_threshold_exceeded=on_threshold_exceeded,
            metadata=metadata,
        )
        make_key = key_fn or default_key

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> R:
            key = make_key(*args, **kwargs)
            monitor.start(name)

            cached = cache.get(key, _MISSING)
            if cached is not _MISSING:
                monitor.end(name, {"cached": True})
                return cached

            try:
                result = func(*args, **kwargs)
            except Exception:
                monitor.end(name, {"cached": False, "failed": True})
                raise
            cache.set(key, result)
            monitor.end(name, {"cached": False})
            return result

        wrapper.cache = cache
        wrapper.monitor = monitor
        return wrapper

    if fn is not None:
        return decorator(fn)
    return decorator
