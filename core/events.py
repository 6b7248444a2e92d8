"""Message models for the timer protocol shared by workers and hosts."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional

import ulid
from pydantic import BaseModel, ConfigDict, Field

from core.clock import now_ts_ms

# Inbound message types
START_TIMER = "START_TIMER"
PAUSE_TIMER = "PAUSE_TIMER"
RESUME_TIMER = "RESUME_TIMER"
SYNC_TIMER = "SYNC_TIMER"
STOP_TIMER = "STOP_TIMER"
GET_STATUS = "GET_STATUS"

# Outbound event types
TIMER_UPDATE = "TIMER_UPDATE"
TIMER_FINISHED = "TIMER_FINISHED"
TIMER_SYNCED = "TIMER_SYNCED"
TIMER_STATUS = "TIMER_STATUS"
WORKER_READY = "WORKER_READY"
ERROR = "ERROR"

OutboundType = Literal[
    "TIMER_UPDATE",
    "TIMER_FINISHED",
    "TIMER_SYNCED",
    "TIMER_STATUS",
    "WORKER_READY",
    "ERROR",
]


FiniteFloat = Annotated[float, Field(allow_inf_nan=False)]


def new_event_id() -> str:
    """Generate a ULID based identifier for events."""

    return str(ulid.new())


class TimerEvent(BaseModel):
    """Outbound event posted by a timer worker to its host."""

    id: str = Field(default_factory=new_event_id)
    ts_ms: int = Field(default_factory=now_ts_ms)
    type: OutboundType
    data: Dict[str, Any] = Field(default_factory=dict)


class InboundMessage(BaseModel):
    """Envelope of a message sent by the host to a timer worker."""

    type: str
    data: Optional[Dict[str, Any]] = None


class StartTimerPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    duration: FiniteFloat = 0
    start_time: Optional[FiniteFloat] = Field(default=None, alias="startTime")
    end_time: Optional[FiniteFloat] = Field(default=None, alias="endTime")
    test_id: Optional[str] = Field(default=None, alias="testId")


class SyncTimerPayload(BaseModel):
    """Server-authoritative remaining time.

    Values are kept loose here; ``ExamTimer.sync`` decides what is plausible.
    """

    model_config = ConfigDict(populate_by_name=True)

    remaining_seconds: Optional[float] = Field(default=None, alias="remainingSeconds")
    server_time: Optional[float] = Field(default=None, alias="serverTime")


def event_dump(event: TimerEvent) -> Dict[str, Any]:
    """Return a JSON-ready ``dict`` for ``event``."""

    return event.model_dump(mode="json")


__all__ = [
    "TimerEvent",
    "InboundMessage",
    "StartTimerPayload",
    "SyncTimerPayload",
    "event_dump",
    "new_event_id",
    "START_TIMER",
    "PAUSE_TIMER",
    "RESUME_TIMER",
    "SYNC_TIMER",
    "STOP_TIMER",
    "GET_STATUS",
    "TIMER_UPDATE",
    "TIMER_FINISHED",
    "TIMER_SYNCED",
    "TIMER_STATUS",
    "WORKER_READY",
    "ERROR",
]
