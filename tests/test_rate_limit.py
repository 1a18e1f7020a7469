# mypy: ignore-errors
# tests/test_rate_limit.py
"""Tests for the fixed-window rate limiter."""

from __future__ import annotations

import pytest
import redis

from billing_core.core.errors import BillingError, ErrorKind
from billing_core.services.rate_limit import RateLimiter, retry_after_seconds
from billing_core.services.store import MemoryCounterStore, RedisCounterStore
from tests.conftest import START_MS


def test_admits_up_to_limit_then_rejects(rate_limiter: RateLimiter) -> None:
    decisions = [rate_limiter.admit("k", 3, 1000) for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert {d.reset_at_ms for d in decisions} == {START_MS + 1000}
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


def test_new_window_after_reset(rate_limiter: RateLimiter, clock) -> None:
    for _ in range(4):
        rate_limiter.admit("k", 3, 1000)

    clock.advance(1000)
    decision = rate_limiter.admit("k", 3, 1000)

    assert decision.allowed is True
    assert decision.reset_at_ms == START_MS + 2000
    assert decision.remaining == 2


def test_rejection_holds_until_window_end(rate_limiter: RateLimiter, clock) -> None:
    rate_limiter.admit("k", 1, 1000)
    clock.advance(999)

    decision = rate_limiter.admit("k", 1, 1000)

    assert decision.allowed is False
    assert decision.reset_at_ms == START_MS + 1000


def test_keys_are_independent(rate_limiter: RateLimiter) -> None:
    assert rate_limiter.admit("guest:1.1.1.1", 1, 1000).allowed is True
    assert rate_limiter.admit("guest:1.1.1.1", 1, 1000).allowed is False
    assert rate_limiter.admit("guest:2.2.2.2", 1, 1000).allowed is True


def test_reset_clears_key(rate_limiter: RateLimiter) -> None:
    rate_limiter.admit("k", 1, 1000)
    rate_limiter.reset("k")

    assert rate_limiter.admit("k", 1, 1000).allowed is True


@pytest.mark.parametrize(
    ("key", "limit", "window_ms"),
    [("", 1, 1000), ("k", 0, 1000), ("k", 1, 0), ("k", 1, -5)],
)
def test_invalid_configuration_is_rejected(
    rate_limiter: RateLimiter, key: str, limit: int, window_ms: int
) -> None:
    with pytest.raises(ValueError):
        rate_limiter.admit(key, limit, window_ms)


@pytest.mark.parametrize(
    ("delta_ms", "expected"),
    [(2500, 3), (1000, 1), (1001, 2), (1, 1), (0, 1), (-200, 1)],
)
def test_retry_after_rounds_up_with_floor_of_one(delta_ms: int, expected: int) -> None:
    assert retry_after_seconds(START_MS + delta_ms, START_MS) == expected


def test_enforce_raises_rate_limited_with_retry_after(rate_limiter: RateLimiter, clock) -> None:
    rate_limiter.enforce("presence:u", 1, 60_000, scope="presence")
    clock.advance(57_500)

    with pytest.raises(BillingError) as excinfo:
        rate_limiter.enforce("presence:u", 1, 60_000, scope="presence", message="Slow down.")

    error = excinfo.value
    assert error.kind is ErrorKind.RATE_LIMITED
    assert error.code == "rate_limited:presence"
    assert error.message == "Slow down."
    assert error.retry_after == 3
    assert error.headers() == {"Retry-After": "3"}


def test_memory_store_prunes_expired_windows(clock) -> None:
    store = MemoryCounterStore()
    store.increment("a", 1000, clock.now_ms())
    store.increment("b", 5000, clock.now_ms())

    removed = store.prune(clock.now_ms() + 1000)

    assert removed == 1
    assert len(store) == 1
    assert store.get("a", clock.now_ms() + 1000) is None
    assert store.get("b", clock.now_ms() + 1000).count == 1


def test_redis_store_derives_window_from_ttl(mocker) -> None:
    client = mocker.MagicMock()
    script = mocker.MagicMock(return_value=[2, 400])
    client.register_script.return_value = script
    store = RedisCounterStore(client)

    window = store.increment("guest:1.1.1.1", 1000, START_MS)

    script.assert_called_once_with(keys=["ratelimit:guest:1.1.1.1"], args=[1000])
    assert window.count == 2
    assert window.reset_at_ms == START_MS + 400


def test_redis_store_first_hit_uses_full_window(mocker) -> None:
    client = mocker.MagicMock()
    client.register_script.return_value = mocker.MagicMock(return_value=[1, -1])
    limiter = RateLimiter(RedisCounterStore(client))
    limiter.clock = mocker.MagicMock(now_ms=mocker.MagicMock(return_value=START_MS))

    decision = limiter.admit("k", 5, 1000)

    assert decision.allowed is True
    assert decision.reset_at_ms == START_MS + 1000
    assert decision.remaining == 4


def test_admission_sweeps_expired_windows(clock) -> None:
    store = MemoryCounterStore()
    limiter = RateLimiter(store, clock)
    for octet in range(1000):
        limiter.admit(f"guest:10.0.{octet // 256}.{octet % 256}", 10, 1000)
    assert len(store) == 1000

    clock.advance(10_000_000)
    limiter.admit("guest:192.0.2.1", 10, 1000)

    assert len(store) == 1


def test_sweeps_are_spaced_by_interval(clock, mocker) -> None:
    store = MemoryCounterStore()
    prune = mocker.spy(store, "prune")
    limiter = RateLimiter(store, clock, prune_interval_ms=1000)

    for _ in range(5):
        limiter.admit("k", 100, 60_000)
    clock.advance(1000)
    limiter.admit("k", 100, 60_000)

    assert prune.call_count == 2


def test_redis_outage_falls_back_to_process_counters(mocker, clock) -> None:
    client = mocker.MagicMock()
    client.register_script.return_value = mocker.MagicMock(
        side_effect=redis.ConnectionError("down")
    )
    limiter = RateLimiter(RedisCounterStore(client), clock)

    decisions = [limiter.admit("guest:1.2.3.4", 2, 1000) for _ in range(3)]

    assert [d.allowed for d in decisions] == [True, True, False]
    assert decisions[0].reset_at_ms == START_MS + 1000


def test_redis_outage_still_raises_structured_rate_limit(mocker, clock) -> None:
    client = mocker.MagicMock()
    client.register_script.return_value = mocker.MagicMock(
        side_effect=redis.TimeoutError("slow")
    )
    limiter = RateLimiter(RedisCounterStore(client), clock)
    limiter.enforce("presence:u", 1, 60_000, scope="presence")

    with pytest.raises(BillingError) as excinfo:
        limiter.enforce("presence:u", 1, 60_000, scope="presence")

    assert excinfo.value.kind is ErrorKind.RATE_LIMITED
