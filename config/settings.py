# config/settings.py
"""
Centralized runtime settings for the exam timer.

Design goals
- Single source of truth for loop periods, drift tolerance, display
  thresholds and where attempt logs are written
- Honors EXAMTIMER_* env vars (a local .env file is loaded first)
- Sensible OS defaults when env vars are not provided
- Cached access via get_settings()
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------- OS defaults (used only if env vars not set) ----------

def _platform_default_base() -> Path:
    """
    Returns an OS-specific base directory for user data:
    - Windows: %LOCALAPPDATA%/ExamTimer
    - macOS:   ~/Library/Application Support/ExamTimer
    - Linux:   ~/.local/share/examtimer
    """
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "ExamTimer"
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "ExamTimer"
    else:
        return Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")) / "examtimer"


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


# ---------- Settings model ----------

class TimerSettings(BaseModel):
    """
    Runtime knobs for timers, their hosts and the display helpers.

    Most callers should obtain the cached instance via get_settings().
    """
    model_config = ConfigDict(validate_default=True)

    frame_interval_s: float = Field(default_factory=lambda: _env_float("EXAMTIMER_FRAME_INTERVAL", 1 / 60))
    fallback_interval_s: float = Field(default_factory=lambda: _env_float("EXAMTIMER_FALLBACK_INTERVAL", 0.1))
    sync_threshold_s: float = Field(default_factory=lambda: _env_float("EXAMTIMER_SYNC_THRESHOLD", 2))
    warning_threshold_s: int = Field(default_factory=lambda: _env_int("EXAMTIMER_WARNING_THRESHOLD", 300))
    critical_threshold_s: int = Field(default_factory=lambda: _env_int("EXAMTIMER_CRITICAL_THRESHOLD", 60))
    scheduler: Literal["auto", "frame", "interval"] = Field(
        default_factory=lambda: os.getenv("EXAMTIMER_SCHEDULER", "auto")
    )
    clock: Literal["monotonic", "wall"] = Field(default_factory=lambda: os.getenv("EXAMTIMER_CLOCK", "monotonic"))
    logs_root: Path = Field(
        default_factory=lambda: Path(os.getenv("EXAMTIMER_LOGS_ROOT", _platform_default_base() / "logs"))
    )
    log_level: str = Field(default_factory=lambda: os.getenv("EXAMTIMER_LOG_LEVEL", "INFO").upper())

    @field_validator("frame_interval_s", "fallback_interval_s")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("loop intervals must be positive")
        return v

    @field_validator("sync_threshold_s", "warning_threshold_s", "critical_threshold_s")
    @classmethod
    def _non_negative(cls, v):
        if v < 0:
            raise ValueError("thresholds must not be negative")
        return v

    @model_validator(mode="after")
    def _critical_below_warning(self) -> "TimerSettings":
        if self.critical_threshold_s > self.warning_threshold_s:
            raise ValueError("critical threshold must not exceed warning threshold")
        return self

    # ----- layout helpers -----

    @property
    def attempts_root(self) -> Path:
        return self.logs_root / "attempts"

    def attempt_dir(self, test_id: str) -> Path:
        """Return the directory holding the logs of one attempt."""
        return self.attempts_root / test_id

    def attempt_events_path(self, test_id: str) -> Path:
        return self.attempt_dir(test_id) / "timer_events.jsonl"

    def ensure_all(self) -> None:
        self.attempts_root.mkdir(parents=True, exist_ok=True)


# ---------- Singleton access ----------

_settings_singleton: Optional[TimerSettings] = None


def get_settings(force_refresh: bool = False) -> TimerSettings:
    """
    Return a cached TimerSettings instance built from the environment.
    """
    global _settings_singleton
    if force_refresh or _settings_singleton is None:
        load_dotenv()
        _settings_singleton = TimerSettings()
    return _settings_singleton


if __name__ == "__main__":
    s = get_settings(force_refresh=True)
    print("Frame interval (s):   ", s.frame_interval_s)
    print("Fallback interval (s):", s.fallback_interval_s)
    print("Sync threshold (s):   ", s.sync_threshold_s)
    print("Scheduler:            ", s.scheduler)
    print("Clock:                ", s.clock)
    print("Attempt logs:         ", s.attempts_root)
