from __future__ import annotations

import logging
from typing import Optional

from config.settings import TimerSettings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(settings: Optional[TimerSettings] = None) -> None:
    """Configure root logging for the CLI and API entry points."""

    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
