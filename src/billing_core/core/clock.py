"""Clock abstractions returning epoch milliseconds."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int: ...


class WallClock:
    """Clock backed by the system wall time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """Clock that only moves when told to; used by maintenance dry runs and tests."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> None:
        self._now += int(ms)

    def set(self, ms: int) -> None:
        self._now = int(ms)


wall_clock = WallClock()
