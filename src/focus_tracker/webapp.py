"""FastAPI application that exposes the usage queries over HTTP."""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Iterator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import __version__
from .aggregation import GroupBy, UsageEntry, aggregate_last, aggregate_span
from .config import TrackerSettings
from .errors import AlreadyRunningError, ArgumentError, FocusTrackerError
from .models import SessionRecord, now_ms
from .parsing import parse_duration, parse_time_range
from .paths import get_pid_path, get_store_path
from .probes import (
    IdleDetector,
    InstanceGuard,
    ObservationSource,
    PidFileInstanceGuard,
    XdotoolWindowProbe,
    XprintidleDetector,
)
from .store import SessionStore
from .tracker import SessionTracker

logger = logging.getLogger(__name__)


class TrackerRunner:
    """Manage the session tracker in a background thread.

    A fatal tracker error (store I/O, exhausted startup retries) is kept in
    ``failure`` and handed to ``on_failure`` so the hosting server can exit.
    """

    def __init__(
        self,
        store_path: Path,
        settings: TrackerSettings,
        *,
        guard: InstanceGuard,
        source: Optional[ObservationSource] = None,
        idle_detector: Optional[IdleDetector] = None,
        on_failure: Optional[Callable[[FocusTrackerError], None]] = None,
    ) -> None:
        self._store_path = Path(store_path)
        self._settings = settings
        self._guard = guard
        self._source = source or XdotoolWindowProbe()
        self._idle_detector = idle_detector or XprintidleDetector(
            settings.playback_keeps_active
        )
        self._on_failure = on_failure
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self.failure: Optional[FocusTrackerError] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            try:
                self._guard.acquire()
            except AlreadyRunningError:
                logger.error("Tracker already running elsewhere; serving read-only.")
                return
            tracker = SessionTracker(
                store=SessionStore(self._store_path),
                source=self._source,
                idle_detector=self._idle_detector,
                settings=self._settings,
            )
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_tracker,
                args=(tracker, stop_event),
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.info("Tracker background thread started.")

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread:
            thread.join(timeout=10)
            logger.info("Tracker background thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def _run_tracker(self, tracker: SessionTracker, stop_event: threading.Event) -> None:
        try:
            tracker.run_until_stopped(stop_event)
        except FocusTrackerError as exc:
            logger.exception("Tracker stopped on a fatal error; shutting down.")
            self.failure = exc
            if self._on_failure is not None:
                self._on_failure(exc)
        finally:
            self._guard.release()


class UsageEntryPayload(BaseModel):
    app_class: str
    title: Optional[str] = None
    duration_ms: int
    duration: str


class UsageResponse(BaseModel):
    range_start: int
    range_end: int
    group: str
    entries: list[UsageEntryPayload]


class SessionPayload(BaseModel):
    app_class: str
    title: str
    start: int
    end: Optional[int] = None
    duration_ms: int


class RecentResponse(BaseModel):
    sessions: list[SessionPayload]


def create_app(
    *,
    store_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    run_tracker: bool = False,
    guard: Optional[InstanceGuard] = None,
    source: Optional[ObservationSource] = None,
    idle_detector: Optional[IdleDetector] = None,
    on_tracker_failure: Optional[Callable[[FocusTrackerError], None]] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_store_path = Path(store_path or get_store_path())
    resolved_settings = settings or TrackerSettings()
    runner = TrackerRunner(
        resolved_store_path,
        resolved_settings,
        guard=guard or PidFileInstanceGuard(get_pid_path()),
        source=source,
        idle_detector=idle_detector,
        on_failure=on_tracker_failure,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if run_tracker:
            runner.start()
        try:
            yield
        finally:
            runner.stop()

    app = FastAPI(title="Focus Tracker", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.store = SessionStore(resolved_store_path)
    app.state.tracker_runner = runner

    @app.get("/api/status")
    def status(request: Request) -> dict:
        return {
            "tracker_running": request.app.state.tracker_runner.is_running(),
            "tracker_error": _failure_message(request.app.state.tracker_runner),
            "store_path": str(request.app.state.store.path),
            "poll_interval_ms": int(resolved_settings.poll_interval.total_seconds() * 1000),
            "idle_threshold_ms": resolved_settings.idle_threshold_ms,
        }

    @app.get("/api/usage/last", response_model=UsageResponse)
    def usage_last(
        request: Request,
        duration: str = Query(..., description="Look-back window, e.g. 90s, 2h, 1d."),
        group: str = Query("c", description="'c' for class, 'n' for window name."),
        pattern: Optional[str] = Query(None, description="Regular expression filter."),
    ) -> UsageResponse:
        now = now_ms()
        with _http_errors():
            group_by = GroupBy.parse(group)
            duration_ms = parse_duration(duration)
            entries = aggregate_last(
                request.app.state.store.read_all(), duration_ms, group_by, pattern, now
            )
        return _usage_response(now - duration_ms, now, group_by, entries)

    @app.get("/api/usage/span", response_model=UsageResponse)
    def usage_span(
        request: Request,
        begin: str = Query(..., description="Range start, YYYY-MM-DD HH:MM:SS (UTC)."),
        end: str = Query(..., description="Range end, YYYY-MM-DD HH:MM:SS (UTC)."),
        group: str = Query("c", description="'c' for class, 'n' for window name."),
        pattern: Optional[str] = Query(None, description="Regular expression filter."),
    ) -> UsageResponse:
        with _http_errors():
            group_by = GroupBy.parse(group)
            range_start, range_end = parse_time_range(begin, end)
            entries = aggregate_span(
                request.app.state.store.read_all(), range_start, range_end, group_by, pattern
            )
        return _usage_response(range_start, range_end, group_by, entries)

    @app.get("/api/sessions/recent", response_model=RecentResponse)
    def recent_sessions(
        request: Request,
        limit: int = Query(10, ge=1, le=1000, description="Number of sessions."),
    ) -> RecentResponse:
        now = now_ms()
        with _http_errors():
            records = list(request.app.state.store.read_tail(limit))
        return RecentResponse(sessions=[_session_payload(record, now) for record in records])

    return app


def _failure_message(runner: TrackerRunner) -> Optional[str]:
    return str(runner.failure) if runner.failure is not None else None


@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate domain errors into HTTP responses."""
    try:
        yield
    except ArgumentError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except FocusTrackerError as exc:
        logger.error("Failed to read session log: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _usage_response(
    range_start: int, range_end: int, group_by: GroupBy, entries: list[UsageEntry]
) -> UsageResponse:
    return UsageResponse(
        range_start=range_start,
        range_end=range_end,
        group=group_by.value,
        entries=[
            UsageEntryPayload(
                app_class=entry.app_class,
                title=entry.title,
                duration_ms=entry.duration_ms,
                duration=entry.pretty_duration,
            )
            for entry in entries
        ],
    )


def _session_payload(record: SessionRecord, now: int) -> SessionPayload:
    return SessionPayload(
        app_class=record.app_class,
        title=record.title,
        start=record.start,
        end=record.end,
        duration_ms=record.duration_ms(now),
    )
