"""Polling state machine that turns window observations into session records."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .config import TrackerSettings
from .errors import ObservationError
from .models import SessionRecord, WindowIdentity, now_ms
from .normalization import normalize_identity
from .probes import IdleDetector, ObservationSource
from .store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AppendRecord:
    record: SessionRecord


@dataclass(slots=True, frozen=True)
class PatchEnd:
    timestamp: int


StoreAction = Union[AppendRecord, PatchEnd]


@dataclass(slots=True, frozen=True)
class TrackerState:
    """Tracker state between two ticks.

    ``current`` is the most recently opened record. It only counts as open
    while ``pending_reopen`` is false; an idle tick or a failed observation
    closes it and forces a new record on the next valid observation.
    """

    current: Optional[SessionRecord] = None
    pending_reopen: bool = False

    @property
    def has_open_session(self) -> bool:
        return self.current is not None and not self.pending_reopen


def advance(
    state: TrackerState,
    observation: Optional[WindowIdentity],
    is_idle: bool,
    now: int,
) -> tuple[TrackerState, list[StoreAction]]:
    """Compute the next state and the store writes for one tick.

    ``observation`` is None when the focused window could not be determined.
    """
    current = state.current if state.has_open_session else None
    if is_idle or observation is None:
        if current is None:
            return TrackerState(state.current, pending_reopen=True), []
        return TrackerState(current.with_end(now), pending_reopen=True), [PatchEnd(now)]

    if current is not None and current.identity == observation:
        return TrackerState(current.with_end(now)), [PatchEnd(now)]

    actions: list[StoreAction] = []
    if current is not None:
        actions.append(PatchEnd(now))
    record = SessionRecord.opened(observation, now)
    actions.append(AppendRecord(record))
    actions.append(PatchEnd(now))
    return TrackerState(record.with_end(now)), actions


class SessionTracker:
    """Samples the focused window at a fixed interval and writes the session log."""

    def __init__(
        self,
        store: SessionStore,
        source: ObservationSource,
        idle_detector: IdleDetector,
        settings: TrackerSettings,
        *,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.settings = settings
        self._source = source
        self._idle_detector = idle_detector
        self._clock = clock
        self._sleep = sleep
        self.state = TrackerState()

    def start(self) -> None:
        """Close any record left open by a crash, then open the first session."""
        self._close_dangling_session()
        identity = self._first_observation()
        self._apply(*advance(TrackerState(), identity, False, self._clock()))
        logger.info("Tracking started with %s", identity)

    def tick(self) -> list[StoreAction]:
        idle = self._idle_detector.is_idle(self.settings.idle_threshold_ms)
        observation: Optional[WindowIdentity] = None
        if not idle:
            try:
                observation = self._observe()
            except ObservationError as exc:
                logger.debug("Observation failed: %s", exc)
        new_state, actions = advance(self.state, observation, idle, self._clock())
        if new_state.pending_reopen and not self.state.pending_reopen:
            logger.debug("Session closed (%s).", "idle" if idle else "no focused window")
        self._apply(new_state, actions)
        return actions

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self.run_until_stopped(stop_event)
        except KeyboardInterrupt:
            logger.info("Tracker interrupted.")

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the tracker until the provided event is set."""
        logger.info("Starting tracker; writing to %s", self.store.path)
        self.start()
        interval = self.settings.poll_interval.total_seconds()
        try:
            while not stop_event.wait(interval):
                self.tick()
        finally:
            logger.info("Tracker stopped.")

    def _apply(self, state: TrackerState, actions: list[StoreAction]) -> None:
        for action in actions:
            if isinstance(action, AppendRecord):
                self.store.append(action.record)
                logger.debug(
                    "Session opened: class=%s title=%s",
                    action.record.app_class,
                    action.record.title,
                )
            else:
                self.store.patch_last_end(action.timestamp)
        self.state = state

    def _observe(self) -> WindowIdentity:
        identity = normalize_identity(self._source.observe())
        if not identity.app_class:
            raise ObservationError("Focused window has no application class.")
        return identity

    def _first_observation(self) -> WindowIdentity:
        attempts = self.settings.startup_attempts
        backoff = self.settings.startup_backoff.total_seconds()
        for attempt in range(1, attempts + 1):
            try:
                return self._observe()
            except ObservationError as exc:
                logger.warning(
                    "Initial observation failed (attempt %d/%d): %s", attempt, attempts, exc
                )
            if attempt < attempts:
                self._sleep(backoff)
        raise ObservationError(f"No focused window observed after {attempts} attempts.")

    def _close_dangling_session(self) -> None:
        last = self.store.last_record()
        if last is not None and last.is_open:
            logger.info(
                "Closing session left open by a previous run: %s", last.identity
            )
            self.store.patch_last_end(last.start)
