"""High-precision clocks reporting epoch milliseconds."""

from __future__ import annotations

import time
from typing import Protocol

NS_PER_MS = 1_000_000


class Clock(Protocol):
    def now_ms(self) -> float: ...


class MonotonicClock:
    """Epoch-anchored clock that advances on ``perf_counter_ns``.

    The wall clock is sampled once when the clock is created; every reading
    after that adds the monotonic delta, so later system clock adjustments do
    not skew a running countdown.
    """

    def __init__(self) -> None:
        self._origin_ms = time.time_ns() / NS_PER_MS
        self._origin_ns = time.perf_counter_ns()

    def now_ms(self) -> float:
        return self._origin_ms + (time.perf_counter_ns() - self._origin_ns) / NS_PER_MS


class WallClock:
    """Plain wall-clock milliseconds."""

    def now_ms(self) -> float:
        return time.time_ns() / NS_PER_MS


def make_clock(kind: str = "monotonic") -> Clock:
    if kind == "wall" or not hasattr(time, "perf_counter_ns"):
        return WallClock()
    return MonotonicClock()


def now_ts_ms() -> int:
    """Return the current wall-clock timestamp in milliseconds."""

    return time.time_ns() // NS_PER_MS


__all__ = ["Clock", "MonotonicClock", "WallClock", "make_clock", "now_ts_ms", "NS_PER_MS"]
