"""Countdown for one in-progress exam attempt.

Remaining time is always computed from absolute timestamps
(``now - start_time + drift_correction_ms``), never by counting ticks, so a
throttled or late loop can only delay an update, not skew it.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Dict, Optional

from config.settings import TimerSettings, get_settings
from core.clock import Clock, make_clock
from core.events import TIMER_FINISHED, TIMER_SYNCED, TIMER_UPDATE
from core.timing.scheduling import Scheduler, pick_scheduler

log = logging.getLogger(__name__)

MS_PER_S = 1000

Emit = Callable[[str, Dict[str, Any]], None]
SchedulerFactory = Callable[[], Scheduler]


@dataclass
class TimerSession:
    """State of one attempt's countdown. Times are epoch milliseconds."""

    test_id: Optional[str]
    duration_seconds: float
    start_time: float
    end_time: float
    paused: bool = False
    drift_correction_ms: float = 0.0
    last_sync: float = 0.0
    finished: bool = False
    stopped: bool = False

    def elapsed_ms(self, now: float) -> float:
        return now - self.start_time + self.drift_correction_ms

    def elapsed_seconds(self, now: float) -> int:
        return math.floor(self.elapsed_ms(now) / MS_PER_S)

    def remaining(self, now: float) -> float:
        return max(0, self.duration_seconds - self.elapsed_seconds(now))

    @property
    def deadline(self) -> float:
        """Moment ``tick`` reaches zero: the start plus the duration, less the correction."""
        return self.start_time + self.duration_seconds * MS_PER_S - self.drift_correction_ms

    def expected_remaining(self, now: float) -> int:
        return max(0, math.ceil((self.deadline - now) / MS_PER_S))


def _whole(value: float) -> float:
    """Return integral floats as ``int`` so whole seconds stay whole on the wire."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _plausible(value: Any, allow_none: bool = False) -> bool:
    if value is None:
        return allow_none
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value) and value >= 0


class ExamTimer:
    """Pausable, drift-corrected countdown for a single attempt.

    ``emit`` receives ``(event_type, payload)`` for TIMER_UPDATE,
    TIMER_FINISHED and TIMER_SYNCED.  It is called from whichever thread the
    scheduler ticks on, with the session lock held.
    """

    def __init__(
        self,
        emit: Emit,
        *,
        settings: Optional[TimerSettings] = None,
        clock: Optional[Clock] = None,
        scheduler_factory: Optional[SchedulerFactory] = None,
    ) -> None:
        self._emit = emit
        self.settings = settings or get_settings()
        self.clock = clock or make_clock(self.settings.clock)
        self._scheduler_factory = scheduler_factory or (lambda: pick_scheduler(self.settings))
        self._scheduler: Optional[Scheduler] = None
        self._generation = 0
        self._lock = threading.RLock()
        self.session: Optional[TimerSession] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(
        self,
        duration: float,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
        test_id: Optional[str] = None,
    ) -> TimerSession:
        for name, value in (("duration", duration), ("start_time", start_time), ("end_time", end_time)):
            if value is not None and not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value!r}")
        duration = _whole(duration)
        with self._lock:
            self._cancel_loop()
            now = self.clock.now_ms()
            start = now if start_time is None else start_time
            end = start + duration * MS_PER_S if end_time is None else end_time
            self.session = TimerSession(
                test_id=test_id,
                duration_seconds=duration,
                start_time=start,
                end_time=end,
                last_sync=now,
            )
            if duration <= 0:
                log.info("timer for %s started with non-positive duration %s", test_id, duration)
                self.session.finished = True
                self._emit(TIMER_FINISHED, {"testId": test_id})
                return self.session
            self._start_loop()
            log.debug("timer for %s started: %ss", test_id, duration)
            return self.session

    def pause(self) -> None:
        with self._lock:
            if self.session is None:
                return
            self.session.paused = True
            self._cancel_loop()

    def resume(self) -> None:
        with self._lock:
            session = self.session
            if session is None or session.finished or session.stopped:
                return
            if not session.paused and self.running:
                return
            # start_time is kept: time spent paused is not given back.
            session.paused = False
            self._start_loop()

    def stop(self) -> None:
        with self._lock:
            if self.session is None:
                return
            self.session.paused = True
            self.session.stopped = True
            self._cancel_loop()

    @property
    def running(self) -> bool:
        with self._lock:
            return self._scheduler is not None and self._scheduler.active

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------
    def tick(self) -> bool:
        """Emit one update; returns ``False`` once the loop should halt."""
        with self._lock:
            session = self.session
            if session is None or session.paused or session.finished:
                return False
            now = self.clock.now_ms()
            remaining = session.remaining(now)
            self._emit(
                TIMER_UPDATE,
                {
                    "timeRemaining": remaining,
                    "elapsed": session.elapsed_seconds(now),
                    "testId": session.test_id,
                },
            )
            if remaining > 0:
                return True
            session.finished = True
            self._scheduler = None
            self._emit(TIMER_FINISHED, {"testId": session.test_id})
            return False

    def _tick_generation(self, generation: int) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            return self.tick()

    def _start_loop(self) -> None:
        self._generation += 1
        generation = self._generation
        self._scheduler = self._scheduler_factory()
        self._scheduler.start(lambda: self._tick_generation(generation))

    def _cancel_loop(self) -> None:
        self._generation += 1
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None

    # ------------------------------------------------------------------
    # Drift correction
    # ------------------------------------------------------------------
    def sync(self, remaining_seconds: Any, server_time: Any = None) -> Optional[float]:
        """Reconcile against the server's remaining time.

        Returns the applied drift in seconds, or ``None`` when nothing was
        corrected.
        """
        with self._lock:
            session = self.session
            if session is None:
                log.debug("sync before start ignored")
                return None
            if not _plausible(remaining_seconds) or not _plausible(server_time, allow_none=True):
                log.warning(
                    "ignoring implausible sync for %s: remaining=%r server_time=%r",
                    session.test_id,
                    remaining_seconds,
                    server_time,
                )
                return None
            now = self.clock.now_ms()
            remaining_seconds = _whole(remaining_seconds)
            drift = _whole(session.expected_remaining(now) - remaining_seconds)
            if abs(drift) <= self.settings.sync_threshold_s:
                return None
            # end_time == start_time + duration * 1000 + drift_correction_ms
            session.drift_correction_ms += drift * MS_PER_S
            session.end_time += drift * MS_PER_S
            session.last_sync = now
            log.info("timer for %s corrected by %ss", session.test_id, drift)
            self._emit(
                TIMER_SYNCED,
                {"drift": drift, "correctedTime": remaining_seconds, "syncTime": now},
            )
            return drift

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    def status(self) -> Dict[str, Any]:
        with self._lock:
            session = self.session
            if session is None:
                return {"timeRemaining": 0, "elapsed": 0, "paused": True, "drift": 0.0}
            now = self.clock.now_ms()
            return {
                "timeRemaining": session.remaining(now),
                "elapsed": session.elapsed_seconds(now),
                "paused": session.paused,
                "drift": session.drift_correction_ms,
            }


__all__ = ["ExamTimer", "TimerSession", "Emit"]
