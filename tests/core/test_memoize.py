"""Tests for the memoize and memoize_async decorators.

Verifies call counting, key derivation, failure propagation and
optional in-flight coalescing.
"""
import asyncio
import gc
from unittest.mock import AsyncMock, Mock

import pytest

from studio_cache.core.memoize import default_key, memoize, memoize_async


def test_memoize_calls_function_once_per_arguments():
    fn = Mock(side_effect=lambda x, y: x + y)
    wrapped = memoize(fn)

    assert wrapped(1, 2) == 3
    assert wrapped(1, 2) == 3
    assert fn.call_count == 1

    assert wrapped(2, 2) == 4
    assert fn.call_count == 2


def test_memoize_as_bare_decorator_keeps_metadata():
    @memoize
    def room_rate(room: str) -> int:
        """Hourly rate for a room."""
        return len(room) * 10

    assert room_rate("live-room") == 90
    assert room_rate.__name__ == "room_rate"
    assert room_rate.__doc__ == "Hourly rate for a room."
    assert room_rate.cache_stats().misses == 1


def test_memoize_with_options_bounds_cache():
    calls = []

    @memoize(max_size=2)
    def square(x):
        calls.append(x)
        return x * x

    square(1)
    square(2)
    square(3)
    square(1)

    assert calls == [1, 2, 3, 1]
    assert square.cache_stats().evictions == 2


def test_memoize_ttl_expires_results(clock):
    calls = []

    @memoize(ttl_ms=100)
    def lookup(key):
        calls.append(key)
        return key.upper()

    lookup.cache._now = clock
    lookup("a")
    lookup("a")
    clock.advance_ms(150)
    lookup("a")

    assert calls == ["a", "a"]


def test_memoize_caches_none_results():
    fn = Mock(return_value=None)
    wrapped = memoize(fn)

    assert wrapped("k") is None
    assert wrapped("k") is None
    assert fn.call_count == 1


def test_memoize_exception_propagates_and_is_not_cached():
    fn = Mock(side_effect=[RuntimeError("db down"), "ok"])
    wrapped = memoize(fn)

    with pytest.raises(RuntimeError, match="db down"):
        wrapped("session-1")

    assert wrapped("session-1") == "ok"
    assert wrapped("session-1") == "ok"
    assert fn.call_count == 2


def test_memoize_custom_key_fn():
    fn = Mock(side_effect=lambda user, refresh=False: f"profile:{user['id']}")
    wrapped = memoize(fn, key_fn=lambda user, refresh=False: str(user["id"]))

    wrapped({"id": 7, "name": "Ana"})
    wrapped({"id": 7, "name": "Ana B."}, refresh=True)

    assert fn.call_count == 1


def test_memoize_positional_and_keyword_calls_are_distinct():
    fn = Mock(side_effect=lambda a, b=0: a + b)
    wrapped = memoize(fn)

    wrapped(1, 2)
    wrapped(1, b=2)

    assert fn.call_count == 2


def test_memoize_cache_clear():
    fn = Mock(return_value="v")
    wrapped = memoize(fn)

    wrapped("k")
    wrapped.cache_clear()
    wrapped("k")

    assert fn.call_count == 2


def test_default_key_is_canonical_json():
    assert default_key(1, "a") == '[[1,"a"],{}]'
    assert default_key(b=2, a=1) == '[[],{"a":1,"b":2}]'
    assert default_key({"z": 1, "a": 2}) == default_key({"a": 2, "z": 1})


def test_default_key_rejects_unserializable_arguments():
    with pytest.raises(TypeError):
        default_key(object())


@pytest.mark.asyncio
async def test_memoize_async_calls_function_once():
    fn = AsyncMock(return_value={"booking": 42})
    wrapped = memoize_async(fn)

    assert await wrapped(42) == {"booking": 42}
    assert await wrapped(42) == {"booking": 42}
    assert fn.await_count == 1

    await wrapped(43)
    assert fn.await_count == 2


@pytest.mark.asyncio
async def test_memoize_async_failure_then_success_retries_and_caches():
    """A rejected call is not cached; the retry's success is."""
    fn = AsyncMock(side_effect=[ConnectionError("timeout"), "equipment-list"])
    wrapped = memoize_async(fn)

    with pytest.raises(ConnectionError, match="timeout"):
        await wrapped("studio-b")
    assert wrapped.cache_stats().size == 0

    assert await wrapped("studio-b") == "equipment-list"
    assert await wrapped("studio-b") == "equipment-list"
    assert fn.await_count == 2


@pytest.mark.asyncio
async def test_memoize_async_without_coalesce_runs_overlapping_calls():
    calls = 0
    release = asyncio.Event()

    @memoize_async
    async def slow_fetch(key):
        nonlocal calls
        calls += 1
        await release.wait()
        return key

    first = asyncio.create_task(slow_fetch("k"))
    second = asyncio.create_task(slow_fetch("k"))
    await asyncio.sleep(0)
    release.set()

    assert await asyncio.gather(first, second) == ["k", "k"]
    assert calls == 2


@pytest.mark.asyncio
async def test_memoize_async_coalesce_shares_in_flight_call():
    calls = 0
    release = asyncio.Event()

    @memoize_async(coalesce=True)
    async def slow_fetch(key):
        nonlocal calls
        calls += 1
        await release.wait()
        return f"value:{key}"

    first = asyncio.create_task(slow_fetch("k"))
    second = asyncio.create_task(slow_fetch("k"))
    await asyncio.sleep(0)
    release.set()

    assert await asyncio.gather(first, second) == ["value:k", "value:k"]
    assert calls == 1
    await asyncio.sleep(0)
    assert slow_fetch.in_flight == {}
    assert await slow_fetch("k") == "value:k"
    assert calls == 1


@pytest.mark.asyncio
async def test_memoize_async_coalesce_failure_reaches_all_waiters():
    release = asyncio.Event()
    fn_calls = 0

    @memoize_async(coalesce=True)
    async def flaky(key):
        nonlocal fn_calls
        fn_calls += 1
        await release.wait()
        if fn_calls == 1:
            raise ValueError("bad upstream")
        return key

    first = asyncio.create_task(flaky("k"))
    second = asyncio.create_task(flaky("k"))
    await asyncio.sleep(0)
    release.set()

    results = await asyncio.gather(first, second, return_exceptions=True)
    assert all(isinstance(r, ValueError) for r in results)

    await asyncio.sleep(0)
    assert await flaky("k") == "k"
    assert fn_calls == 2


@pytest.mark.asyncio
async def test_memoize_async_coalesce_failure_after_waiters_cancelled_is_collected():
    """The shared call's failure is consumed even when nobody is left waiting."""
    loop = asyncio.get_running_loop()
    reported = []
    previous_handler = loop.get_exception_handler()
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    release = asyncio.Event()

    @memoize_async(coalesce=True)
    async def fetch_rooms(studio):
        await release.wait()
        raise ConnectionError("studio api unavailable")

    try:
        waiter = asyncio.create_task(fetch_rooms("studio-c"))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        release.set()
        for _ in range(3):
            await asyncio.sleep(0)
        assert fetch_rooms.in_flight == {}

        gc.collect()
        assert reported == []
        assert fetch_rooms.cache_stats().size == 0
    finally:
        loop.set_exception_handler(previous_handler)


def test_memoize_custom_cache_name():
    @memoize(name="equipment-catalog")
    def catalog():
        return ["mic", "console"]

    assert catalog.cache.name == "equipment-catalog"
