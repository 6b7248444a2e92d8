from __future__ import annotations
import json
from pathlib import Path
from typing import IO, Optional
from threading import Lock

from core.events import TIMER_FINISHED, TIMER_UPDATE, TimerEvent, event_dump


class JsonlWriter:
    """
    Minimal, robust JSONL writer with periodic flush.
    Not thread-safe across processes, but thread-safe within a process.
    """
    def __init__(self, out_path: Path, flush_every: int = 50):
        ensure_dir(out_path.parent)
        self._f: IO[str] = out_path.open("a", encoding="utf-8")
        self._n = 0
        self._flush_every = flush_every
        self._lock = Lock()

    def write(self, obj) -> None:
        line = json.dumps(obj, ensure_ascii=False)
        with self._lock:
            if self._f.closed:
                return
            self._f.write(line + "\n")
            self._n += 1
            if self._n % self._flush_every == 0:
                self._f.flush()

    def flush(self) -> None:
        with self._lock:
            if not self._f.closed:
                self._f.flush()

    def close(self):
        with self._lock:
            if self._f.closed:
                return
            try:
                self._f.flush()
            finally:
                self._f.close()


class AttemptLog:
    """
    Outbound-event sink recording one attempt's timer events.
    Frame-rate updates are collapsed: a TIMER_UPDATE is written only when
    the whole-second remaining time changes.
    """
    def __init__(self, path: Path, flush_every: int = 10):
        self.path = path
        self._writer = JsonlWriter(path, flush_every=flush_every)
        self._last_remaining: Optional[int] = None

    def __call__(self, event: TimerEvent) -> None:
        if event.type == TIMER_UPDATE:
            remaining = event.data.get("timeRemaining")
            if remaining == self._last_remaining:
                return
            self._last_remaining = remaining
        self._writer.write(event_dump(event))
        if event.type == TIMER_FINISHED:
            self._writer.flush()

    def close(self) -> None:
        self._writer.close()


def last_remaining(path: Path) -> Optional[int]:
    """
    Return the last remaining time recorded in an attempt log,
    0 once the attempt finished, None when nothing usable is logged.
    """
    if not path.exists():
        return None
    remaining: Optional[int] = None
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                # a crash can leave a partial last line
                continue
            if record.get("type") == TIMER_UPDATE:
                remaining = record.get("data", {}).get("timeRemaining", remaining)
            elif record.get("type") == TIMER_FINISHED:
                remaining = 0
    return remaining


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)
