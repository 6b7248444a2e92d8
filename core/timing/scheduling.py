"""Loop drivers for the exam timer.

Two strategies drive ``ExamTimer`` ticks:

* :class:`FrameScheduler` runs on an asyncio event loop at display frame rate
  (~16 ms).  It is preferred whenever the host already runs a loop, e.g. the
  websocket API.
* :class:`IntervalScheduler` runs a daemon thread that ticks every 100 ms.
  It is the fallback for hosts without an event loop such as the CLI.

Both call a ``tick`` callback until it returns ``False`` or the scheduler is
cancelled.  Neither counts ticks; the timer derives remaining time from
absolute timestamps, so the two strategies only differ in update cadence.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from config.settings import TimerSettings

log = logging.getLogger(__name__)

TickCallback = Callable[[], bool]


class Scheduler:
    """Internal protocol for loop drivers."""

    name: str = ""

    def __init__(self, interval: float) -> None:
        self.interval = interval

    def start(self, callback: TickCallback) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError

    @property
    def active(self) -> bool:
        raise NotImplementedError


class FrameScheduler(Scheduler):
    """Frame-synchronised ticks on an asyncio event loop.

    The first tick runs on the next loop iteration, later ticks every
    ``interval`` seconds.
    """

    name = "frame"

    def __init__(self, interval: float = 1 / 60, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__(interval)
        self._loop = loop
        self._handle: Optional[asyncio.Handle] = None
        self._callback: Optional[TickCallback] = None
        self._cancelled = False

    def start(self, callback: TickCallback) -> None:
        if self._loop is None:
            # Raises RuntimeError outside a running loop.
            self._loop = asyncio.get_running_loop()
        self._callback = callback
        self._cancelled = False
        self._handle = self._loop.call_soon_threadsafe(self._frame)

    def _frame(self) -> None:
        self._handle = None
        if self._cancelled or self._callback is None:
            return
        if self._callback() and not self._cancelled:
            self._handle = self._loop.call_later(self.interval, self._frame)

    def cancel(self) -> None:
        self._cancelled = True
        handle, self._handle = self._handle, None
        if handle is None or self._loop is None:
            return
        if _running_loop() is self._loop:
            handle.cancel()
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(handle.cancel)

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled


class IntervalScheduler(Scheduler):
    """Fixed-interval ticks on a daemon thread (first tick after one interval)."""

    name = "interval"

    def __init__(self, interval: float = 0.1) -> None:
        super().__init__(interval)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, callback: TickCallback) -> None:
        # A fresh event per run so a cancelled thread never sees a later start.
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(callback, self._stop),
            name="exam-timer",
            daemon=True,
        )
        self._thread.start()

    def _run(self, callback: TickCallback, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            if not callback():
                break
        stop.set()

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def pick_scheduler(settings: TimerSettings, loop: Optional[asyncio.AbstractEventLoop] = None) -> Scheduler:
    """Return the scheduler for the calling context.

    ``auto`` prefers frame ticks when an event loop is running in this thread.
    """
    if settings.scheduler == "interval":
        return IntervalScheduler(settings.fallback_interval_s)
    loop = loop or _running_loop()
    if loop is None:
        if settings.scheduler == "frame":
            raise RuntimeError("frame scheduling requires a running asyncio event loop")
        log.debug("no running event loop, falling back to %.3fs interval ticks", settings.fallback_interval_s)
        return IntervalScheduler(settings.fallback_interval_s)
    return FrameScheduler(settings.frame_interval_s, loop=loop)


__all__ = ["Scheduler", "FrameScheduler", "IntervalScheduler", "pick_scheduler", "TickCallback"]
