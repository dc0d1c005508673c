"""Configuration models and helpers for the focus tracker."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from .errors import ArgumentError, ConfigError
from .parsing import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """\
[tracker]
# Time without keyboard or mouse input before the current session is closed.
idle_threshold = "5m"
# Delay between two observations of the focused window.
poll_interval = "200ms"
# Attempts and delay used while waiting for the first focused window.
startup_attempts = 50
startup_backoff = "200ms"
# Keep counting time while media is playing, even without input.
playback_keeps_active = true
"""

_KNOWN_KEYS = {
    "idle_threshold",
    "poll_interval",
    "startup_attempts",
    "startup_backoff",
    "playback_keeps_active",
}


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the session tracker."""

    poll_interval: timedelta = timedelta(milliseconds=200)
    idle_threshold: timedelta = timedelta(minutes=5)
    startup_attempts: int = 50
    startup_backoff: timedelta = timedelta(milliseconds=200)
    playback_keeps_active: bool = True

    @property
    def idle_threshold_ms(self) -> int:
        return int(self.idle_threshold.total_seconds() * 1000)

    @classmethod
    def from_intervals(
        cls,
        poll_ms: float,
        idle_minutes: float,
        startup_attempts: int | None = None,
        startup_backoff_ms: float | None = None,
        playback_keeps_active: bool = True,
    ) -> "TrackerSettings":
        backoff = startup_backoff_ms if startup_backoff_ms is not None else poll_ms
        return cls(
            poll_interval=timedelta(milliseconds=poll_ms),
            idle_threshold=timedelta(minutes=idle_minutes),
            startup_attempts=startup_attempts if startup_attempts is not None else 50,
            startup_backoff=timedelta(milliseconds=backoff),
            playback_keeps_active=playback_keeps_active,
        )


def load_settings(path: Path) -> TrackerSettings:
    """Read tracker settings from the ``[tracker]`` table of a TOML file."""
    path = Path(path)
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"Configuration file {path} not found; run `focus-tracker init` to create it."
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed configuration in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration {path}: {exc}") from exc

    table = document.get("tracker")
    if not isinstance(table, dict):
        raise ConfigError(f"{path} has no [tracker] table.")
    if "idle_threshold" not in table:
        raise ConfigError(f"{path} does not define tracker.idle_threshold.")
    for key in sorted(set(table) - _KNOWN_KEYS):
        logger.warning("Ignoring unknown configuration key tracker.%s", key)

    defaults = TrackerSettings()
    attempts = table.get("startup_attempts", defaults.startup_attempts)
    if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 1:
        raise ConfigError("tracker.startup_attempts must be a positive integer.")
    playback = table.get("playback_keeps_active", defaults.playback_keeps_active)
    if not isinstance(playback, bool):
        raise ConfigError("tracker.playback_keeps_active must be true or false.")

    return TrackerSettings(
        poll_interval=_duration(table, "poll_interval", defaults.poll_interval),
        idle_threshold=_duration(table, "idle_threshold", defaults.idle_threshold),
        startup_attempts=attempts,
        startup_backoff=_duration(table, "startup_backoff", defaults.startup_backoff),
        playback_keeps_active=playback,
    )


def write_default_config(path: Path, *, overwrite: bool = False) -> Path:
    path = Path(path)
    if path.exists() and not overwrite:
        raise ConfigError(f"{path} already exists; pass --force to overwrite it.")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot write configuration {path}: {exc}") from exc
    return path


def _duration(table: dict[str, Any], key: str, default: timedelta) -> timedelta:
    value = table.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"tracker.{key} must be a duration string such as \"5m\".")
    try:
        milliseconds = parse_duration(value)
    except ArgumentError as exc:
        raise ConfigError(f"tracker.{key}: {exc}") from exc
    if milliseconds <= 0:
        raise ConfigError(f"tracker.{key} must be greater than zero.")
    return timedelta(milliseconds=milliseconds)
