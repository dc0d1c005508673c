from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Iterable, Optional, Union

import pytest

from focus_tracker.config import TrackerSettings
from focus_tracker.errors import AlreadyRunningError, ObservationError
from focus_tracker.models import SessionRecord, WindowIdentity
from focus_tracker.store import SessionStore

Step = Union[WindowIdentity, tuple[str, str], None]


class ScriptedSource:
    """Returns scripted observations; ``None`` entries fail."""

    def __init__(self, steps: Iterable[Step]) -> None:
        self._steps = list(steps)
        self.calls = 0

    def observe(self) -> WindowIdentity:
        self.calls += 1
        step = self._steps.pop(0) if self._steps else None
        if step is None:
            raise ObservationError("no focused window")
        return WindowIdentity(*step)


class ScriptedIdle:
    def __init__(self, steps: Iterable[bool] = ()) -> None:
        self._steps = list(steps)
        self.thresholds: list[int] = []

    def is_idle(self, threshold_ms: int) -> bool:
        self.thresholds.append(threshold_ms)
        return self._steps.pop(0) if self._steps else False


class Clock:
    def __init__(self, start: int = 1_000, step: int = 100) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current


class FakeGuard:
    def __init__(self, refuse: bool = False) -> None:
        self.refuse = refuse
        self.acquired = False
        self.released = threading.Event()

    def acquire(self) -> None:
        if self.refuse:
            raise AlreadyRunningError("Another tracker is already running.")
        self.acquired = True

    def release(self) -> None:
        self.released.set()


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "sessions.tsv"


@pytest.fixture
def store(store_path: Path) -> SessionStore:
    return SessionStore(store_path)


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings.from_intervals(
        poll_ms=10, idle_minutes=1, startup_attempts=3, startup_backoff_ms=1
    )


def write_records(store: SessionStore, records: Iterable[SessionRecord]) -> None:
    for record in records:
        store.append(SessionRecord(record.app_class, record.title, record.start))
        if record.end is not None:
            store.patch_last_end(record.end)


def record(app_class: str, title: str, start: int, end: Optional[int]) -> SessionRecord:
    return SessionRecord(app_class=app_class, title=title, start=start, end=end)
