from __future__ import annotations

import signal
import threading
from typing import Any, Dict, Optional

import typer

from attempts.event_log import AttemptLog, last_remaining
from config.log import setup_logging
from config.settings import get_settings
from core.display import format_remaining, warning_state
from core.events import START_TIMER, TIMER_FINISHED, TIMER_UPDATE, TimerEvent
from core.timing.scheduling import IntervalScheduler
from worker.channel import tee
from worker.timer_worker import TimerWorker


app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.command()
def run(
    duration: int = typer.Option(..., "--duration", "-d", help="Countdown length in seconds"),
    test_id: str = typer.Option("local", "--test-id", "-t", help="Attempt identifier, e.g. midterm-42"),
    log: bool = typer.Option(True, help="Record timer events to the attempt log"),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Continue from the last remaining time in the attempt log",
    ),
) -> None:
    """Run a countdown in the terminal until it finishes or Ctrl+C."""

    settings = get_settings()
    setup_logging(settings)
    events_path = settings.attempt_events_path(test_id)

    if resume:
        previous = last_remaining(events_path)
        if previous is None:
            typer.echo(f"[examtimer] nothing to resume for '{test_id}'", err=True)
            raise typer.Exit(code=1)
        if previous == 0:
            typer.echo(f"[examtimer] attempt '{test_id}' already finished")
            raise typer.Exit(code=0)
        duration = previous

    finished = threading.Event()
    shown: Dict[str, Any] = {"remaining": None}

    def _print(event: TimerEvent) -> None:
        if event.type == TIMER_UPDATE:
            remaining = event.data["timeRemaining"]
            if remaining == shown["remaining"]:
                return
            shown["remaining"] = remaining
            state = warning_state(remaining, settings.warning_threshold_s, settings.critical_threshold_s)
            suffix = "" if state == "normal" else f"  [{state}]"
            typer.echo(f"{format_remaining(remaining)}{suffix}")
        elif event.type == TIMER_FINISHED:
            typer.echo("[examtimer] time is up")
            finished.set()

    attempt_log: Optional[AttemptLog] = AttemptLog(events_path) if log else None
    post = tee(_print, attempt_log) if attempt_log else _print
    worker = TimerWorker(
        post,
        settings=settings,
        scheduler_factory=lambda: IntervalScheduler(settings.fallback_interval_s),
    )

    stopped = threading.Event()

    def _stop(*_object: object) -> None:
        stopped.set()
        worker.close()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    typer.echo(f"[examtimer] attempt '{test_id}': {format_remaining(duration)}")
    worker.handle({"type": START_TIMER, "data": {"duration": duration, "testId": test_id}})

    try:
        while not finished.is_set() and not stopped.is_set():
            finished.wait(0.25)
    finally:
        worker.close()
        if attempt_log:
            attempt_log.close()

    if stopped.is_set() and not finished.is_set():
        typer.echo("[examtimer] stopped", err=True)
        raise typer.Exit(code=130)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
) -> None:
    """Serve the timer websocket and attempt clock API."""

    import uvicorn

    setup_logging()
    uvicorn.run("apps.ui_api.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
