"""Counter and token stores backing the rate limiter and replay guard.

Both come in an in-process flavour (a dict guarded by a lock) and a Redis
flavour for deployments that share state between workers. Callers receive a
store instance explicitly; nothing here is reached through module globals.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, Any, Protocol

import redis

if TYPE_CHECKING:
    from billing_core.core.settings import Settings

logger = logging.getLogger(__name__)

# INCR and the first PEXPIRE run as one script so the window start is set once.
_INCREMENT_SCRIPT = """
local current = redis.call("INCR", KEYS[1])
if current == 1 then
  redis.call("PEXPIRE", KEYS[1], ARGV[1])
end
local ttl = redis.call("PTTL", KEYS[1])
return {current, ttl}
"""


@dataclass(frozen=True)
class CounterWindow:
    """Count observed inside a fixed window that started at ``window_start_ms``."""

    count: int
    window_start_ms: int
    window_ms: int

    @property
    def reset_at_ms(self) -> int:
        return self.window_start_ms + self.window_ms

    def expired(self, now_ms: int) -> bool:
        return now_ms - self.window_start_ms >= self.window_ms


class CounterStore(Protocol):
    """Fixed-window counters keyed by an opaque string."""

    def get(self, key: str, now_ms: int) -> CounterWindow | None: ...

    def increment(self, key: str, window_ms: int, now_ms: int) -> CounterWindow: ...

    def prune(self, now_ms: int) -> int: ...

    def reset(self, key: str) -> None: ...


class TokenStore(Protocol):
    """Map from single-use tokens to when they were first seen and what was issued."""

    def first_seen(self, token: str) -> int | None: ...

    def result(self, token: str) -> str | None: ...

    def put_if_absent(
        self, token: str, now_ms: int, ttl_ms: int, result: str | None = None
    ) -> bool: ...

    def prune(self, now_ms: int, ttl_ms: int) -> int: ...


class MemoryCounterStore:
    """In-process counter store; each call is a single locked mutation."""

    def __init__(self) -> None:
        self._windows: dict[str, CounterWindow] = {}
        self._lock = Lock()

    def get(self, key: str, now_ms: int) -> CounterWindow | None:
        with self._lock:
            window = self._windows.get(key)
        if window is None or window.expired(now_ms):
            return None
        return window

    def increment(self, key: str, window_ms: int, now_ms: int) -> CounterWindow:
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.expired(now_ms):
                window = CounterWindow(count=1, window_start_ms=now_ms, window_ms=window_ms)
            else:
                window = CounterWindow(
                    count=window.count + 1,
                    window_start_ms=window.window_start_ms,
                    window_ms=window.window_ms,
                )
            self._windows[key] = window
            return window

    def prune(self, now_ms: int) -> int:
        with self._lock:
            stale = [key for key, window in self._windows.items() if window.expired(now_ms)]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)


class RedisCounterStore:
    """Counter store using an atomic INCR/PEXPIRE script.

    When Redis is unreachable the counters fall back to an in-process store,
    so limits keep applying per worker until Redis answers again.
    """

    def __init__(self, client: redis.Redis, *, prefix: str = "ratelimit:") -> None:
        self._redis = client
        self._prefix = prefix
        self._increment = client.register_script(_INCREMENT_SCRIPT)
        self._fallback = MemoryCounterStore()

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str, now_ms: int) -> CounterWindow | None:
        try:
            pipe = self._redis.pipeline()
            pipe.get(self._key(key))
            pipe.pttl(self._key(key))
            raw_count, ttl = pipe.execute()
        except redis.RedisError as exc:
            logger.warning("Redis counter read failed, using in-process counters: %s", exc)
            return self._fallback.get(key, now_ms)
        if raw_count is None or ttl is None or int(ttl) <= 0:
            return None
        # The original window length is not stored; report the remaining span.
        return CounterWindow(count=int(raw_count), window_start_ms=now_ms, window_ms=int(ttl))

    def increment(self, key: str, window_ms: int, now_ms: int) -> CounterWindow:
        try:
            count, ttl = self._increment(keys=[self._key(key)], args=[int(window_ms)])
        except redis.RedisError as exc:
            logger.warning("Redis counter update failed, using in-process counters: %s", exc)
            return self._fallback.increment(key, window_ms, now_ms)
        ttl = int(ttl)
        remaining = ttl if ttl > 0 else window_ms
        return CounterWindow(
            count=int(count),
            window_start_ms=now_ms + remaining - window_ms,
            window_ms=window_ms,
        )

    def prune(self, now_ms: int) -> int:
        # Redis expires its own keys; only the fallback needs sweeping.
        return self._fallback.prune(now_ms)

    def reset(self, key: str) -> None:
        self._fallback.reset(key)
        try:
            self._redis.delete(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Redis counter reset failed for %s: %s", key, exc)



class MemoryTokenStore:
    """In-process token map pruned on access."""

    def __init__(self) -> None:
        self._seen: dict[str, tuple[int, str | None]] = {}
        self._lock = Lock()

    def first_seen(self, token: str) -> int | None:
        with self._lock:
            entry = self._seen.get(token)
        return entry[0] if entry is not None else None

    def result(self, token: str) -> str | None:
        with self._lock:
            entry = self._seen.get(token)
        return entry[1] if entry is not None else None

    def put_if_absent(
        self, token: str, now_ms: int, ttl_ms: int, result: str | None = None
    ) -> bool:
        with self._lock:
            if token in self._seen:
                return False
            self._seen[token] = (now_ms, result)
            return True

    def prune(self, now_ms: int, ttl_ms: int) -> int:
        cutoff = now_ms - ttl_ms
        with self._lock:
            stale = [token for token, (seen_at, _) in self._seen.items() if seen_at <= cutoff]
            for token in stale:
                del self._seen[token]
        return len(stale)

    def __len__(self) -> int:
        return len(self._seen)


class RedisTokenStore:
    """Token map stored as ``SET NX PX`` keys so the first writer wins.

    Tokens recorded while Redis is unreachable go to an in-process map, which is
    consulted whenever Redis has no entry.
    """

    def __init__(self, client: redis.Redis, *, prefix: str = "replay:") -> None:
        self._redis = client
        self._prefix = prefix
        self._fallback = MemoryTokenStore()

    def _load(self, token: str) -> dict[str, Any] | None:
        try:
            raw = self._redis.get(f"{self._prefix}{token}")
        except redis.RedisError as exc:
            logger.warning("Redis replay lookup failed, using in-process map: %s", exc)
            raw = None
        if raw is None:
            return None
        return json.loads(raw)

    def first_seen(self, token: str) -> int | None:
        entry = self._load(token)
        if entry is None:
            return self._fallback.first_seen(token)
        return int(entry["seen_at"])

    def result(self, token: str) -> str | None:
        entry = self._load(token)
        if entry is None:
            return self._fallback.result(token)
        return entry.get("result")

    def put_if_absent(
        self, token: str, now_ms: int, ttl_ms: int, result: str | None = None
    ) -> bool:
        value = json.dumps({"seen_at": int(now_ms), "result": result})
        try:
            created = self._redis.set(f"{self._prefix}{token}", value, nx=True, px=int(ttl_ms))
        except redis.RedisError as exc:
            logger.warning("Redis replay write failed, using in-process map: %s", exc)
            return self._fallback.put_if_absent(token, now_ms, ttl_ms, result)
        return bool(created)

    def prune(self, now_ms: int, ttl_ms: int) -> int:
        # Redis expires its own keys; only the fallback needs sweeping.
        return self._fallback.prune(now_ms, ttl_ms)



def _redis_client(config: Settings) -> redis.Redis:
    logger.info("Using Redis at %s for shared counters", config.redis_url)
    return redis.Redis.from_url(config.redis_url)


def build_counter_store(config: Settings) -> CounterStore:
    """Return the counter store selected by ``RATE_LIMIT_BACKEND``."""
    if config.rate_limit_backend == "redis":
        return RedisCounterStore(_redis_client(config))
    return MemoryCounterStore()


def build_token_store(config: Settings) -> TokenStore:
    """Return the token store selected by ``REPLAY_BACKEND``."""
    if config.replay_backend == "redis":
        return RedisTokenStore(_redis_client(config))
    return MemoryTokenStore()
