"""Command-line interface for the focus tracker."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from .aggregation import GroupBy, aggregate_last, aggregate_span, compile_pattern
from .config import TrackerSettings, load_settings, write_default_config
from .errors import ArgumentError, FocusTrackerError
from .parsing import parse_duration, parse_time_range
from .paths import get_config_path, get_log_path, get_pid_path, get_store_path
from .store import SessionStore

app = typer.Typer(help="Record focused windows and summarize where the time went.")
usage_app = typer.Typer(help="Time spent per application or window.", no_args_is_help=True)
app.add_typer(usage_app, name="usage")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

StoreOption = typer.Option(
    None, "--store", path_type=Path, help="Location of the session log file."
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Report domain errors on stderr and exit with their category's code."""
    try:
        yield
    except FocusTrackerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=exc.exit_code) from exc


def _open_store(store_path: Optional[Path]) -> SessionStore:
    return SessionStore(store_path or get_store_path())


@app.command()
def track(
    store_path: Optional[Path] = StoreOption,
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Tracker configuration file (TOML)."
    ),
    pid_path: Optional[Path] = typer.Option(
        None, "--pid-file", path_type=Path, help="Single-instance lock file."
    ),
) -> None:
    """Run the tracker until interrupted."""
    from .probes import (
        InstanceGuard,
        PidFileInstanceGuard,
        XdotoolWindowProbe,
        XprintidleDetector,
    )
    from .tracker import SessionTracker

    with _exit_on_error():
        settings = load_settings(config_path or get_config_path())
        _attach_log_file(get_log_path())
        guard: InstanceGuard = PidFileInstanceGuard(pid_path or get_pid_path())
        guard.acquire()
        try:
            tracker = SessionTracker(
                store=_open_store(store_path),
                source=XdotoolWindowProbe(),
                idle_detector=XprintidleDetector(settings.playback_keeps_active),
                settings=settings,
            )
            tracker.run_forever()
        finally:
            guard.release()


@app.command()
def init(
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Where to write the configuration."
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a default configuration file."""
    with _exit_on_error():
        path = write_default_config(config_path or get_config_path(), overwrite=force)
    typer.echo(f"Wrote {path}")


@usage_app.command("last")
def usage_last(
    group: str = typer.Argument(..., help="'c' to group by class, 'n' by window name."),
    duration: str = typer.Argument(..., help="How far back to look, e.g. 90s, 2h, 1d."),
    pattern: Optional[str] = typer.Argument(None, help="Only keep matching keys (regex)."),
    store_path: Optional[Path] = StoreOption,
) -> None:
    """Summarize usage over the last DURATION."""
    from .reporting import print_usage

    try:
        group_by = GroupBy.parse(group)
        duration_ms = parse_duration(duration)
        compile_pattern(pattern)
    except ArgumentError as exc:
        raise typer.BadParameter(str(exc)) from exc

    with _exit_on_error():
        records = _open_store(store_path).read_all()
        print_usage(aggregate_last(records, duration_ms, group_by, pattern))


@usage_app.command("span")
def usage_span(
    group: str = typer.Argument(..., help="'c' to group by class, 'n' by window name."),
    begin: str = typer.Argument(..., help="Range start, 'YYYY-MM-DD HH:MM:SS' (UTC)."),
    end: str = typer.Argument(..., help="Range end, 'YYYY-MM-DD HH:MM:SS' (UTC)."),
    pattern: Optional[str] = typer.Argument(None, help="Only keep matching keys (regex)."),
    store_path: Optional[Path] = StoreOption,
) -> None:
    """Summarize usage between two UTC instants."""
    from .reporting import print_usage

    try:
        group_by = GroupBy.parse(group)
        range_start, range_end = parse_time_range(begin, end)
        compile_pattern(pattern)
    except ArgumentError as exc:
        raise typer.BadParameter(str(exc)) from exc

    with _exit_on_error():
        records = _open_store(store_path).read_all()
        print_usage(aggregate_span(records, range_start, range_end, group_by, pattern))


@app.command()
def recent(
    count: int = typer.Option(10, "--count", "-n", min=1, help="Number of sessions."),
    store_path: Optional[Path] = StoreOption,
) -> None:
    """List the most recent sessions."""
    from .reporting import print_recent

    with _exit_on_error():
        print_recent(list(_open_store(store_path).read_tail(count)))


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    store_path: Optional[Path] = StoreOption,
    config_path: Optional[Path] = typer.Option(
        None, "--config", path_type=Path, help="Tracker configuration file (TOML)."
    ),
    run_tracker: bool = typer.Option(
        False,
        "--track/--no-track",
        help="Also run the tracker in the background.",
    ),
    pid_path: Optional[Path] = typer.Option(
        None, "--pid-file", path_type=Path, help="Single-instance lock file."
    ),
) -> None:
    """Serve the usage API over HTTP."""
    from .probes import PidFileInstanceGuard
    from .server_runner import run_api

    with _exit_on_error():
        settings = (
            load_settings(config_path or get_config_path())
            if run_tracker
            else TrackerSettings()
        )
        run_api(
            host=host,
            port=port,
            store_path=store_path or get_store_path(),
            settings=settings,
            run_tracker=run_tracker,
            guard=PidFileInstanceGuard(pid_path or get_pid_path()),
        )


def _attach_log_file(path: Path) -> None:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    logger.debug("Logging to %s", path)
