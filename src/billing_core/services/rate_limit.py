"""Fixed-window rate limiting with a retry-after contract."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache

from billing_core.core.clock import Clock, wall_clock
from billing_core.core.errors import BillingError, ErrorKind
from billing_core.core.settings import settings
from billing_core.services.store import CounterStore, build_counter_store

logger = logging.getLogger(__name__)

MIN_RETRY_AFTER_SECONDS = 1
DEFAULT_PRUNE_INTERVAL_MS = 1000


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check."""

    allowed: bool
    reset_at_ms: int
    remaining: int
    limit: int


def retry_after_seconds(reset_at_ms: int, now_ms: int) -> int:
    """Return ``ceil((reset_at - now) / 1000)`` clamped to at least one second."""
    return max(math.ceil((reset_at_ms - now_ms) / 1000), MIN_RETRY_AFTER_SECONDS)


class RateLimiter:
    """Admit or reject requests per key using fixed windows.

    Expired windows are swept from the store at most once per
    ``prune_interval_ms`` as part of admission, so keys that stop arriving do
    not accumulate.

    Args:
        store: Counter store owning the windows.
        clock: Time source; defaults to wall time.
        prune_interval_ms: Minimum time between sweeps; 0 sweeps on every call.
    """

    def __init__(
        self,
        store: CounterStore,
        clock: Clock | None = None,
        *,
        prune_interval_ms: int = DEFAULT_PRUNE_INTERVAL_MS,
    ) -> None:
        self.store = store
        self.clock = clock or wall_clock
        self.prune_interval_ms = prune_interval_ms
        self._last_prune_ms: int | None = None

    def _maybe_prune(self, now_ms: int) -> None:
        last = self._last_prune_ms
        if last is not None and now_ms - last < self.prune_interval_ms:
            return
        self._last_prune_ms = now_ms
        removed = self.store.prune(now_ms)
        if removed:
            logger.debug("Pruned %d expired rate limit windows", removed)

    def admit(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        """Count one request against ``key`` and decide whether it is admitted.

        Raises:
            ValueError: If the key is empty or the limit/window are not positive.
        """
        if not key:
            raise ValueError("Rate limit key must be a non-empty string")
        if limit < 1:
            raise ValueError(f"Rate limit must be at least 1, got {limit}")
        if window_ms <= 0:
            raise ValueError(f"Rate limit window must be positive, got {window_ms}")

        now = self.clock.now_ms()
        self._maybe_prune(now)
        window = self.store.increment(key, window_ms, now)
        return RateLimitDecision(
            allowed=window.count <= limit,
            reset_at_ms=window.reset_at_ms,
            remaining=max(limit - window.count, 0),
            limit=limit,
        )

    def enforce(
        self, key: str, limit: int, window_ms: int, *, scope: str = "api", message: str | None = None
    ) -> RateLimitDecision:
        """Admit the request or raise a ``rate_limited`` error carrying Retry-After."""
        decision = self.admit(key, limit, window_ms)
        if not decision.allowed:
            retry_after = retry_after_seconds(decision.reset_at_ms, self.clock.now_ms())
            logger.warning("Rate limit exceeded for %s (retry in %ss)", key, retry_after)
            raise BillingError(
                ErrorKind.RATE_LIMITED,
                message,
                retry_after=retry_after,
                scope=scope,
            )
        return decision

    def reset(self, key: str) -> None:
        self.store.reset(key)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Return the process rate limiter built from configuration."""
    return RateLimiter(build_counter_store(settings))
