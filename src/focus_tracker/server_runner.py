"""Helpers to launch the local usage API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .errors import FocusTrackerError
from .paths import get_store_path
from .probes import InstanceGuard
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_api(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    store_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    run_tracker: bool = False,
    guard: Optional[InstanceGuard] = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI application, optionally with the background tracker.

    A fatal tracker error stops the server and is re-raised once it has exited.
    """
    server: Optional[uvicorn.Server] = None

    def _shutdown(exc: FocusTrackerError) -> None:
        logger.error("Stopping the API after a tracker failure: %s", exc)
        if server is not None:
            server.should_exit = True

    app = create_app(
        store_path=store_path or get_store_path(),
        settings=settings or TrackerSettings(),
        run_tracker=run_tracker,
        guard=guard,
        on_tracker_failure=_shutdown,
    )
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))
    server.run()

    failure = app.state.tracker_runner.failure
    if failure is not None:
        raise failure
