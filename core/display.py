"""Formatting helpers for showing a countdown to a candidate."""

from __future__ import annotations

from typing import Literal

WarningState = Literal["normal", "warning", "critical", "expired"]


def format_remaining(seconds: int) -> str:
    """Render ``seconds`` as ``H:MM:SS`` (an hour or more) or ``M:SS``."""

    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def warning_state(
    seconds: int,
    warning: int = 300,
    critical: int = 60,
    show_warning: bool = True,
) -> WarningState:
    if seconds <= 0:
        return "expired"
    if seconds <= critical:
        return "critical"
    if seconds <= warning and show_warning:
        return "warning"
    return "normal"


__all__ = ["format_remaining", "warning_state", "WarningState"]
