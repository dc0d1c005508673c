"""Domain models for recorded focus sessions."""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import NamedTuple, Optional


def now_ms() -> int:
    """Current time in milliseconds since the epoch, UTC."""
    return time.time_ns() // 1_000_000


class WindowIdentity(NamedTuple):
    """The (application class, window title) pair that identifies a session."""

    app_class: str
    title: str


@dataclass(slots=True, frozen=True)
class SessionRecord:
    """Represents a contiguous block of time during which one window had focus."""

    app_class: str
    title: str
    start: int
    end: Optional[int] = None

    @property
    def identity(self) -> WindowIdentity:
        return WindowIdentity(self.app_class, self.title)

    @property
    def is_open(self) -> bool:
        return self.end is None

    def duration_ms(self, now: Optional[int] = None) -> int:
        end = self.end if self.end is not None else now
        if end is None:
            return 0
        return max(end - self.start, 0)

    def with_end(self, end: int) -> "SessionRecord":
        return replace(self, end=end)

    @classmethod
    def opened(cls, identity: WindowIdentity, start: int) -> "SessionRecord":
        return cls(app_class=identity.app_class, title=identity.title, start=start)
