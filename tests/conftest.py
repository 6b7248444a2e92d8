"""Shared fixtures: a hand-driven clock and scheduler for deterministic timers."""

from typing import Callable, List, Optional

import pytest

from config.settings import TimerSettings
from core.events import TimerEvent


class ManualClock:
    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def now_ms(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds * 1000


class ManualScheduler:
    """Scheduler that only ticks when a test calls fire()."""

    name = "manual"

    def __init__(self, registry: List["ManualScheduler"]):
        self.interval = 0.0
        self.callback: Optional[Callable[[], bool]] = None
        self.cancelled = False
        self.done = False
        registry.append(self)

    def start(self, callback):
        self.callback = callback

    def cancel(self):
        self.cancelled = True

    @property
    def active(self):
        return self.callback is not None and not self.cancelled and not self.done

    def fire(self) -> bool:
        assert self.callback is not None
        keep_going = self.callback()
        if not keep_going:
            self.done = True
        return keep_going


class Recorder:
    """Collects (type, data) pairs from ExamTimer or TimerEvent posts."""

    def __init__(self):
        self.items = []

    def __call__(self, type_or_event, data=None):
        if isinstance(type_or_event, TimerEvent):
            self.items.append((type_or_event.type, type_or_event.data))
        else:
            self.items.append((type_or_event, data))

    def types(self):
        return [t for t, _ in self.items]

    def of(self, type_):
        return [d for t, d in self.items if t == type_]


@pytest.fixture
def settings(tmp_path):
    return TimerSettings(
        frame_interval_s=0.01,
        fallback_interval_s=0.01,
        sync_threshold_s=2,
        scheduler="auto",
        clock="monotonic",
        logs_root=tmp_path / "logs",
    )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def schedulers():
    return []


@pytest.fixture
def scheduler_factory(schedulers):
    return lambda: ManualScheduler(schedulers)


@pytest.fixture
def recorder():
    return Recorder()
