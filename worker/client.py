"""Host-side handle on a timer worker.

Keeps the last state reported by the worker so that UIs and test flows can
read it synchronously, and fans events out to optional callbacks.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from core.events import (
    ERROR,
    GET_STATUS,
    PAUSE_TIMER,
    RESUME_TIMER,
    START_TIMER,
    STOP_TIMER,
    SYNC_TIMER,
    TIMER_FINISHED,
    TIMER_STATUS,
    TIMER_SYNCED,
    TIMER_UPDATE,
    WORKER_READY,
    TimerEvent,
)
from worker.timer_worker import TimerWorker

log = logging.getLogger(__name__)

Callback = Callable[[Dict[str, Any]], None]


class TimerClient:
    def __init__(self, test_id: Optional[str] = None, **worker_kwargs: Any) -> None:
        self.test_id = test_id
        self.time_remaining = 0
        self.elapsed = 0
        self.is_running = False
        self.is_paused = False
        self.drift = 0.0
        self.last_sync = 0.0
        self.ready = False

        self._on_update: Optional[Callback] = None
        self._on_finished: Optional[Callback] = None
        self._on_sync: Optional[Callback] = None

        self.worker = TimerWorker(self.receive, **worker_kwargs)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------
    def start(
        self,
        duration: float = 0,
        start_time: Optional[float] = None,
        end_time: Optional[float] = None,
    ) -> None:
        data: Dict[str, Any] = {
            "duration": duration,
            "startTime": start_time if start_time is not None else self.worker.timer.clock.now_ms(),
            "testId": self.test_id,
        }
        if end_time is not None:
            data["endTime"] = end_time
        self.is_running = True
        self.is_paused = False
        self.worker.handle({"type": START_TIMER, "data": data})

    def pause(self) -> None:
        self.is_paused = True
        self.worker.handle({"type": PAUSE_TIMER})

    def resume(self) -> None:
        self.is_paused = False
        self.worker.handle({"type": RESUME_TIMER})

    def stop(self) -> None:
        self.is_running = False
        self.is_paused = False
        self.worker.handle({"type": STOP_TIMER})

    def sync(self, remaining_seconds: float, server_time: Optional[float] = None) -> None:
        self.worker.handle(
            {"type": SYNC_TIMER, "data": {"remainingSeconds": remaining_seconds, "serverTime": server_time}}
        )

    def sync_from(self, payload: Dict[str, Any]) -> None:
        """Apply a ``{remainingSeconds, serverTime}`` payload as returned by the API."""
        self.worker.handle({"type": SYNC_TIMER, "data": dict(payload)})

    def get_status(self) -> None:
        self.worker.handle({"type": GET_STATUS})

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def on_update(self, callback: Callback) -> None:
        self._on_update = callback

    def on_finished(self, callback: Callback) -> None:
        self._on_finished = callback

    def on_sync(self, callback: Callback) -> None:
        self._on_sync = callback

    # ------------------------------------------------------------------
    # Inbound events from the worker
    # ------------------------------------------------------------------
    def receive(self, event: TimerEvent) -> None:
        data = event.data
        if event.type == WORKER_READY:
            self.ready = True
            log.debug(data.get("message"))
        elif event.type == TIMER_UPDATE:
            self.time_remaining = data["timeRemaining"]
            self.elapsed = data["elapsed"]
            if self._on_update:
                self._on_update(data)
        elif event.type == TIMER_FINISHED:
            self.time_remaining = 0
            self.is_running = False
            if self._on_finished:
                self._on_finished(data)
        elif event.type == TIMER_SYNCED:
            self.drift = data["drift"]
            self.last_sync = data["syncTime"]
            if self._on_sync:
                self._on_sync(data)
        elif event.type == TIMER_STATUS:
            self.time_remaining = data["timeRemaining"]
            self.elapsed = data["elapsed"]
            self.is_paused = data["paused"]
            self.drift = data["drift"]
        elif event.type == ERROR:
            log.error("timer worker error: %s", data.get("message"))


__all__ = ["TimerClient"]
