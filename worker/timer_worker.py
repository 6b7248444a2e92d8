"""Message dispatcher between a host and its exam timer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from config.settings import TimerSettings, get_settings
from core.clock import Clock
from core.events import (
    ERROR,
    GET_STATUS,
    PAUSE_TIMER,
    RESUME_TIMER,
    START_TIMER,
    STOP_TIMER,
    SYNC_TIMER,
    TIMER_STATUS,
    WORKER_READY,
    InboundMessage,
    StartTimerPayload,
    SyncTimerPayload,
    TimerEvent,
)
from core.timing.exam_timer import ExamTimer, SchedulerFactory

log = logging.getLogger(__name__)

Post = Callable[[TimerEvent], None]
READY_MESSAGE = "Timer worker initialized successfully"


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "message"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


class TimerWorker:
    """Handles inbound ``{type, data}`` messages and posts outbound events.

    One worker owns one :class:`ExamTimer`; a new START_TIMER replaces the
    session and cancels the previous loop.  WORKER_READY is posted on
    construction.
    """

    def __init__(
        self,
        post: Post,
        *,
        settings: Optional[TimerSettings] = None,
        clock: Optional[Clock] = None,
        scheduler_factory: Optional[SchedulerFactory] = None,
    ) -> None:
        self._post = post
        self.settings = settings or get_settings()
        self.timer = ExamTimer(
            self.post_message,
            settings=self.settings,
            clock=clock,
            scheduler_factory=scheduler_factory,
        )
        self._handlers: Dict[str, Callable[[Dict[str, Any]], None]] = {
            START_TIMER: self._on_start,
            PAUSE_TIMER: lambda _data: self.timer.pause(),
            RESUME_TIMER: lambda _data: self.timer.resume(),
            SYNC_TIMER: self._on_sync,
            STOP_TIMER: lambda _data: self.timer.stop(),
            GET_STATUS: lambda _data: self.post_message(TIMER_STATUS, self.timer.status()),
        }
        self.post_message(WORKER_READY, {"message": READY_MESSAGE})

    def post_message(self, type_: str, data: Dict[str, Any]) -> None:
        self._post(TimerEvent(type=type_, data=data))

    def handle(self, message: Mapping[str, Any]) -> None:
        try:
            inbound = InboundMessage.model_validate(message)
        except ValidationError as exc:
            self._error(f"Invalid message: {_describe(exc)}")
            return
        handler = self._handlers.get(inbound.type)
        if handler is None:
            self._error(f"Unknown message type: {inbound.type}")
            return
        try:
            handler(inbound.data or {})
        except ValidationError as exc:
            self._error(f"Invalid {inbound.type} payload: {_describe(exc)}")

    def close(self) -> None:
        self.timer.stop()

    def _on_start(self, data: Dict[str, Any]) -> None:
        payload = StartTimerPayload.model_validate(data)
        self.timer.start(
            payload.duration,
            start_time=payload.start_time,
            end_time=payload.end_time,
            test_id=payload.test_id,
        )

    def _on_sync(self, data: Dict[str, Any]) -> None:
        payload = SyncTimerPayload.model_validate(data)
        self.timer.sync(payload.remaining_seconds, payload.server_time)

    def _error(self, message: str) -> None:
        log.warning("timer worker error: %s", message)
        self.post_message(ERROR, {"message": message})


__all__ = ["TimerWorker", "Post", "READY_MESSAGE"]
