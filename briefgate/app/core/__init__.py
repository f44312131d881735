"""Core utilities for the briefgate application."""

from briefgate.app.core.config import settings
from briefgate.app.core.logging import get_log_context, get_logger, setup_logging
from briefgate.app.core.utils import Clock, SystemClock, seconds_until_next_utc_day, utc_date_key

__all__ = [
    "Clock",
    "SystemClock",
    "settings",
    "get_log_context",
    "get_logger",
    "setup_logging",
    "seconds_until_next_utc_day",
    "utc_date_key",
]
