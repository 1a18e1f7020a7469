"""Replay protection for externally delivered, single-use callback tokens."""

from __future__ import annotations

import logging
from functools import lru_cache

from billing_core.core.clock import Clock, wall_clock
from billing_core.core.settings import settings
from billing_core.services.store import TokenStore, build_token_store

logger = logging.getLogger(__name__)

DEFAULT_REPLAY_TTL_MS = 60_000


class ReplayGuard:
    """Deduplicate callback tokens seen within a TTL window.

    Every access prunes expired entries first so the map stays bounded. Empty
    tokens are not replayable events: ``seen`` reports False and ``record``
    ignores them.
    """

    def __init__(
        self,
        store: TokenStore,
        *,
        ttl_ms: int = DEFAULT_REPLAY_TTL_MS,
        clock: Clock | None = None,
    ) -> None:
        if ttl_ms <= 0:
            raise ValueError(f"Replay TTL must be positive, got {ttl_ms}")
        self.store = store
        self.ttl_ms = ttl_ms
        self.clock = clock or wall_clock

    def prune(self, now_ms: int | None = None) -> int:
        """Drop entries older than the TTL and return how many were removed."""
        now = self.clock.now_ms() if now_ms is None else now_ms
        return self.store.prune(now, self.ttl_ms)

    def seen(self, token: str | None, now_ms: int | None = None) -> bool:
        """Return True if ``token`` was recorded less than one TTL ago."""
        if not token:
            return False
        now = self.clock.now_ms() if now_ms is None else now_ms
        self.prune(now)
        first_seen = self.store.first_seen(token)
        return first_seen is not None and now - first_seen < self.ttl_ms

    def previous_result(self, token: str | None, now_ms: int | None = None) -> str | None:
        """Return what was issued for ``token`` while it is still inside the TTL."""
        if not self.seen(token, now_ms):
            return None
        return self.store.result(token)

    def record(
        self,
        token: str | None,
        now_ms: int | None = None,
        *,
        result: str | None = None,
    ) -> None:
        """Remember ``token`` as processed; the first write within the window wins.

        ``result`` is the response issued for it (a redirect target, for example)
        so that a replay can be answered with the same outcome.
        """
        if not token:
            return
        now = self.clock.now_ms() if now_ms is None else now_ms
        self.prune(now)
        if not self.store.put_if_absent(token, now, self.ttl_ms, result):
            logger.debug("Replay token already recorded")


@lru_cache(maxsize=1)
def get_replay_guard() -> ReplayGuard:
    """Return the process replay guard built from configuration."""
    return ReplayGuard(build_token_store(settings), ttl_ms=settings.replay_ttl_ms)
