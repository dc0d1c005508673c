"""Exception hierarchy shared by the tracker, the store and the CLI."""

from __future__ import annotations

from typing import Optional


class FocusTrackerError(Exception):
    """Base class for every error surfaced at the process boundary."""

    exit_code = 1


class ObservationError(FocusTrackerError):
    """The focused window could not be determined for this tick."""

    exit_code = 7


class StoreIOError(FocusTrackerError):
    """The session file could not be written or read."""

    exit_code = 5


class StoreCorruptError(FocusTrackerError):
    """The session file does not have the expected layout."""

    exit_code = 6

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)
        self.line_number = line_number


class ParseError(StoreCorruptError):
    """A single line of the session file could not be parsed."""


class ArgumentError(FocusTrackerError):
    exit_code = 2


class ConfigError(FocusTrackerError):
    exit_code = 3


class AlreadyRunningError(FocusTrackerError):
    exit_code = 4
