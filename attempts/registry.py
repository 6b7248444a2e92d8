"""Server-side authoritative clocks for running attempts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

from core.clock import now_ts_ms


@dataclass(frozen=True)
class AttemptClock:
    test_id: str
    duration_seconds: int
    started_ms: int

    @property
    def ends_ms(self) -> int:
        return self.started_ms + self.duration_seconds * 1000

    def remaining(self, now_ms: int) -> int:
        return max(0, self.duration_seconds - math.floor((now_ms - self.started_ms) / 1000))


class AttemptRegistry:
    """In-memory map of test id to :class:`AttemptClock`.

    ``sync_payload`` produces exactly what a SYNC_TIMER message carries.
    """

    def __init__(self, now: Callable[[], int] = now_ts_ms) -> None:
        self._now = now
        self._clocks: Dict[str, AttemptClock] = {}
        self._lock = Lock()

    def begin(self, test_id: str, duration_seconds: int, started_ms: Optional[int] = None) -> AttemptClock:
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        clock = AttemptClock(
            test_id=test_id,
            duration_seconds=duration_seconds,
            started_ms=self._now() if started_ms is None else started_ms,
        )
        with self._lock:
            self._clocks[test_id] = clock
        return clock

    def get(self, test_id: str) -> AttemptClock:
        with self._lock:
            return self._clocks[test_id]

    def sync_payload(self, test_id: str) -> Dict[str, int]:
        clock = self.get(test_id)
        now = self._now()
        return {"remainingSeconds": clock.remaining(now), "serverTime": now}

    def end(self, test_id: str) -> AttemptClock:
        with self._lock:
            return self._clocks.pop(test_id)

    def __contains__(self, test_id: object) -> bool:
        with self._lock:
            return test_id in self._clocks

    def __len__(self) -> int:
        with self._lock:
            return len(self._clocks)


__all__ = ["AttemptClock", "AttemptRegistry"]
