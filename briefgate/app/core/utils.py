"""Utility functions for the service."""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Source of the current time. Must return timezone-aware datetimes."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def utc_date_key(moment: Optional[datetime] = None) -> str:
    """Return the UTC calendar day of ``moment`` as ``YYYY-MM-DD``.

    Naive datetimes are assumed to already be in UTC.

    Examples:
        >>> utc_date_key(datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc))
        '2026-03-01'
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d")


def seconds_until_next_utc_day(moment: Optional[datetime] = None) -> int:
    """Whole seconds from ``moment`` until the next UTC midnight (at least 1)."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    else:
        moment = moment.replace(tzinfo=timezone.utc)
    midnight = (moment + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1, math.ceil((midnight - moment).total_seconds()))
