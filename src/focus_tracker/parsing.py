"""Parsers for command-line and API arguments."""

from __future__ import annotations

import re
from datetime import datetime, timezone

from .errors import ArgumentError

TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"

_DURATION_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d|w)$")
_UNIT_MILLISECONDS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
}


def parse_duration(literal: str) -> int:
    """Convert a literal such as ``90s`` or ``2h`` into milliseconds."""
    match = _DURATION_PATTERN.match(literal.strip())
    if not match:
        raise ArgumentError(
            f"Invalid duration {literal!r}; expected an integer followed by one of "
            "ms, s, m, h, d, w (e.g. 90s, 2h, 1d)."
        )
    amount, unit = match.groups()
    return int(amount) * _UNIT_MILLISECONDS[unit]


def parse_timestamp(text: str) -> int:
    """Parse a ``YYYY-MM-DD HH:MM:SS`` UTC timestamp into epoch milliseconds."""
    try:
        parsed = datetime.strptime(text.strip(), TIMESTAMP_FMT)
    except ValueError as exc:
        raise ArgumentError(
            f"Invalid timestamp {text!r}; expected YYYY-MM-DD HH:MM:SS (UTC)."
        ) from exc
    return int(parsed.replace(tzinfo=timezone.utc).timestamp()) * 1000


def parse_time_range(begin: str, end: str) -> tuple[int, int]:
    range_start = parse_timestamp(begin)
    range_end = parse_timestamp(end)
    if range_start > range_end:
        raise ArgumentError(f"Range start {begin!r} is after range end {end!r}.")
    return range_start, range_end
