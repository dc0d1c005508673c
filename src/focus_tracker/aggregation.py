"""Time-range aggregation of the session log."""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from .errors import ArgumentError
from .formatting import format_duration
from .models import SessionRecord, now_ms


class GroupBy(str, Enum):
    """Grouping key: ``c`` buckets by application class, ``n`` by class and title."""

    CLASS = "c"
    TITLE = "n"

    @classmethod
    def parse(cls, value: str) -> "GroupBy":
        try:
            return cls(value)
        except ValueError as exc:
            raise ArgumentError(
                f"Unknown grouping {value!r}; use 'c' (class) or 'n' (window name)."
            ) from exc


@dataclass(slots=True, frozen=True)
class UsageEntry:
    app_class: str
    title: Optional[str]
    duration_ms: int

    @property
    def label(self) -> str:
        if self.title is None:
            return self.app_class
        return f"{self.title or '(untitled)'} [{self.app_class}]"

    @property
    def pretty_duration(self) -> str:
        return format_duration(self.duration_ms)


GroupKey = Union[str, tuple[str, str]]


def overlap(
    record: SessionRecord, range_start: int, range_end: int, now: Optional[int] = None
) -> int:
    """Milliseconds that ``record`` shares with ``[range_start, range_end]``.

    An open record is treated as ending at ``now``.
    """
    end = record.end
    if end is None:
        end = now if now is not None else now_ms()
    if end < range_start or record.start > range_end:
        return 0
    return max(min(end, range_end) - max(record.start, range_start), 0)


def compile_pattern(pattern: Optional[str]) -> Optional[re.Pattern[str]]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ArgumentError(f"Invalid pattern {pattern!r}: {exc}") from exc


def aggregate_span(
    records: Iterable[SessionRecord],
    range_start: int,
    range_end: int,
    group_by: GroupBy,
    pattern: Optional[str] = None,
    now: Optional[int] = None,
) -> list[UsageEntry]:
    """Sum per-key overlap with the range, longest first.

    Keys with no time in the range are dropped. Equal totals are ordered by
    class, then title.
    """
    if range_start > range_end:
        raise ArgumentError("Range start must not be after range end.")
    matcher = compile_pattern(pattern)
    now = now if now is not None else now_ms()

    totals: defaultdict[GroupKey, int] = defaultdict(int)
    for record in records:
        duration = overlap(record, range_start, range_end, now)
        if duration == 0:
            continue
        key: GroupKey
        if group_by is GroupBy.CLASS:
            key = record.app_class
            subject = record.app_class
        else:
            key = (record.app_class, record.title)
            subject = record.title
        if matcher is not None and not matcher.search(subject):
            continue
        totals[key] += duration

    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    if group_by is GroupBy.CLASS:
        return [UsageEntry(app_class, None, total) for app_class, total in ordered]
    return [
        UsageEntry(app_class, title, total) for (app_class, title), total in ordered
    ]


def aggregate_last(
    records: Iterable[SessionRecord],
    duration_ms: int,
    group_by: GroupBy,
    pattern: Optional[str] = None,
    now: Optional[int] = None,
) -> list[UsageEntry]:
    """Aggregate over ``[now - duration_ms, now]``."""
    now = now if now is not None else now_ms()
    return aggregate_span(records, now - duration_ms, now, group_by, pattern, now)
