"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from typing import Iterable, Optional

from .aggregation import UsageEntry
from .formatting import format_duration, format_timestamp
from .models import SessionRecord, now_ms


def render_usage(entries: list[UsageEntry]) -> list[str]:
    """One ``label: duration`` line per entry, labels padded to a common width."""
    if not entries:
        return []
    padding = max(len(entry.label) for entry in entries) + 1
    return [f"{entry.label:<{padding}}: {entry.pretty_duration}" for entry in entries]


def print_usage(entries: list[UsageEntry]) -> None:
    lines = render_usage(entries)
    if not lines:
        print("No activity recorded for the selected range.")
        return
    for line in lines:
        print(line)


def print_recent(records: Iterable[SessionRecord], now: Optional[int] = None) -> None:
    now = now if now is not None else now_ms()
    printed = False
    for record in records:
        end = "(open)" if record.end is None else format_timestamp(record.end)
        title = record.title or "(untitled)"
        print(
            f"{format_timestamp(record.start)}  {end:<19}  "
            f"{format_duration(record.duration_ms(now)):>12}  "
            f"{record.app_class:<20} {title[:60]}"
        )
        printed = True
    if not printed:
        print("No sessions recorded yet.")
