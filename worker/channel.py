from __future__ import annotations

import asyncio
from typing import Callable, Optional

from core.events import TimerEvent

Post = Callable[[TimerEvent], None]


class QueueChannel:
    """
    One-directional delivery of outbound events into an asyncio queue.
    Safe to post from the loop thread and from interval-scheduler threads.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self.queue: "asyncio.Queue[TimerEvent]" = asyncio.Queue()

    def post(self, event: TimerEvent) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def get(self) -> TimerEvent:
        return await self.queue.get()


def tee(*posts: Post) -> Post:
    """Fan one outbound stream out to several sinks, in order."""

    def _post(event: TimerEvent) -> None:
        for post in posts:
            post(event)

    return _post


__all__ = ["QueueChannel", "tee"]
