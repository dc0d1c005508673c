"""Human-readable rendering of durations and timestamps."""

from __future__ import annotations

from datetime import datetime, timezone

from .parsing import TIMESTAMP_FMT

SECOND = 1000
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY


def format_duration(milliseconds: int) -> str:
    """Render a duration with the coarsest unit first, down to seconds.

    Milliseconds are only shown for durations under one second.
    """
    if milliseconds < SECOND:
        return f"{milliseconds}ms"

    weeks, remainder = divmod(milliseconds, WEEK)
    days, remainder = divmod(remainder, DAY)
    hours, remainder = divmod(remainder, HOUR)
    minutes, remainder = divmod(remainder, MINUTE)
    seconds = remainder // SECOND

    if milliseconds < MINUTE:
        return f"{seconds}s"
    if milliseconds < HOUR:
        return f"{minutes}m{seconds}s"
    if milliseconds < DAY:
        return f"{hours}h{minutes}m{seconds}s"
    if milliseconds < WEEK:
        return f"{days}d, {hours}h{minutes}m{seconds}s"
    return f"{weeks}w, {days}d, {hours}h{minutes}m{seconds}s"


def format_timestamp(milliseconds: int) -> str:
    moment = datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc)
    return moment.strftime(TIMESTAMP_FMT)
