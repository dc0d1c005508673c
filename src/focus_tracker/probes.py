"""Capability interfaces for observing the desktop, with X11 implementations."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

import psutil

from .errors import AlreadyRunningError, ObservationError, StoreIOError
from .models import WindowIdentity

logger = logging.getLogger(__name__)


class ObservationSource(Protocol):
    def observe(self) -> WindowIdentity:
        """Return the focused window or raise ObservationError."""


class IdleDetector(Protocol):
    def is_idle(self, threshold_ms: int) -> bool:
        """Whether the user has been inactive for at least ``threshold_ms``."""


class InstanceGuard(Protocol):
    def acquire(self) -> None: ...

    def release(self) -> None: ...


class XdotoolWindowProbe:
    """Retrieves the focused window class and title through ``xdotool``."""

    command = ("xdotool", "getwindowfocus", "getwindowclassname", "getwindowname")

    def observe(self) -> WindowIdentity:
        try:
            completed = subprocess.run(
                self.command,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                check=True,
            )
        except FileNotFoundError as exc:
            raise ObservationError("xdotool is not installed.") from exc
        except subprocess.CalledProcessError as exc:
            raise ObservationError(
                f"xdotool exited with status {exc.returncode}: {(exc.stderr or '').strip()}"
            ) from exc

        lines = completed.stdout.strip().split("\n")
        if len(lines) < 2 or not lines[0].strip():
            raise ObservationError(
                f"Failed to get window class or name. Got: {lines!r}"
            )
        return WindowIdentity(lines[0].strip(), " ".join(lines[1:]).strip())


class XprintidleDetector:
    """Detects idle state with ``xprintidle``, honoring media playback."""

    def __init__(self, playback_keeps_active: bool = True) -> None:
        self.playback_keeps_active = playback_keeps_active

    def milliseconds_since_input(self) -> int:
        completed = subprocess.run(
            ("xprintidle",),
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
        return int(completed.stdout.strip())

    def media_playing(self) -> bool:
        try:
            completed = subprocess.run(
                ("playerctl", "--all-players", "status"),
                capture_output=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError:
            return False
        if completed.returncode != 0:
            return False
        return any(line.strip() == "Playing" for line in completed.stdout.splitlines())

    def is_idle(self, threshold_ms: int) -> bool:
        try:
            idle_ms = self.milliseconds_since_input()
        except (OSError, subprocess.SubprocessError, ValueError):
            logger.exception("Failed to query idle state; assuming not idle.")
            return False
        if idle_ms < threshold_ms:
            return False
        if self.playback_keeps_active and self.media_playing():
            logger.debug("Idle for %d ms but media is playing; staying active.", idle_ms)
            return False
        return True


class PidFileInstanceGuard:
    """Allows a single tracker per host by owning a pid file."""

    def __init__(
        self,
        pid_path: Path,
        *,
        settle_attempts: int = 5,
        settle_delay: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.pid_path = Path(pid_path)
        self._settle_attempts = settle_attempts
        self._settle_delay = settle_delay
        self._sleep = sleep
        self._held = False

    def acquire(self) -> None:
        try:
            self.pid_path.parent.mkdir(parents=True, exist_ok=True)
            for _ in range(2):
                try:
                    fd = os.open(self.pid_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
                except FileExistsError:
                    self._remove_stale()
                    continue
                with os.fdopen(fd, "w") as handle:
                    handle.write(f"{os.getpid()}\n")
                self._held = True
                logger.debug("Acquired instance lock %s", self.pid_path)
                return
        except OSError as exc:
            raise StoreIOError(f"Cannot write pid file {self.pid_path}: {exc}") from exc
        raise AlreadyRunningError(f"Could not acquire {self.pid_path}.")

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.pid_path.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self) -> "PidFileInstanceGuard":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def _read_pid(self) -> Optional[int]:
        """Pid in the lock file; 0 while its owner has not written it yet."""
        try:
            text = self.pid_path.read_text().strip()
        except FileNotFoundError:
            return None
        try:
            return int(text) if text else 0
        except ValueError:
            return 0

    def _remove_stale(self) -> None:
        pid = self._read_pid()
        for _ in range(self._settle_attempts):
            if pid != 0:
                break
            self._sleep(self._settle_delay)
            pid = self._read_pid()
        if pid is None:
            return
        if pid and psutil.pid_exists(pid):
            raise AlreadyRunningError(
                f"Another tracker is already running (pid {pid}, {self.pid_path})."
            )
        logger.info("Removing stale pid file %s (pid %s).", self.pid_path, pid)
        try:
            self.pid_path.unlink()
        except FileNotFoundError:
            pass
