"""Tab-separated session log.

The log is an append-only UTF-8 text file with a fixed header. Each line is one
session record: ``class``, ``title``, ``start`` and ``end`` (milliseconds since
the epoch, UTC). The ``end`` column is written last and padded to a fixed
width, blank while a session is open, so it can be patched in place with a
single write of the same length.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, TextIO

from .errors import ParseError, StoreCorruptError, StoreIOError
from .models import SessionRecord

logger = logging.getLogger(__name__)

HEADER = "class\ttitle\tstart\tend"
COLUMNS = 4
END_WIDTH = 13

_TAIL_BLOCK_SIZE = 8192


def format_line(record: SessionRecord) -> str:
    end = "" if record.end is None else str(record.end)
    return "\t".join(
        (record.app_class, record.title, str(record.start), end.ljust(END_WIDTH))
    )


def parse_line(line: str, line_number: Optional[int] = None) -> SessionRecord:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) != COLUMNS:
        raise ParseError(
            f"Expected {COLUMNS} columns but found {len(fields)}", line_number
        )
    app_class, title, start_raw, end_raw = fields
    if not app_class:
        raise ParseError("Missing application class", line_number)
    end_raw = end_raw.strip()
    try:
        start = int(start_raw)
        end = int(end_raw) if end_raw else None
    except ValueError as exc:
        raise ParseError(f"Invalid timestamp in {line.strip()!r}", line_number) from exc
    if end is not None and end < start:
        raise ParseError(f"Session ends before it starts ({start} > {end})", line_number)
    return SessionRecord(app_class=app_class, title=title, start=start, end=end)


class SessionLog:
    """Restartable view over every record in the session file.

    Each iteration re-opens the file and streams it from the top. A malformed
    final line is skipped with a warning because the writer may be in the
    middle of updating it; a malformed line anywhere else raises ParseError.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def __iter__(self) -> Iterator[SessionRecord]:
        try:
            handle = self.path.open("r", encoding="utf-8", newline="")
        except FileNotFoundError:
            logger.debug("Session file %s does not exist yet.", self.path)
            return
        except OSError as exc:
            raise StoreIOError(f"Cannot read {self.path}: {exc}") from exc

        with handle:
            try:
                yield from self._parse(handle)
            except UnicodeDecodeError as exc:
                raise StoreCorruptError(f"{self.path} is not valid UTF-8: {exc}") from exc

    def _parse(self, handle: TextIO) -> Iterator[SessionRecord]:
        header = handle.readline()
        if not header:
            return
        if header.rstrip("\r\n") != HEADER:
            raise StoreCorruptError(f"Unexpected header in {self.path}", 1)

        pending_error: Optional[ParseError] = None
        for line_number, line in enumerate(handle, start=2):
            if not line.strip():
                continue
            if pending_error is not None:
                raise pending_error
            try:
                yield parse_line(line, line_number)
            except ParseError as exc:
                pending_error = exc
        if pending_error is not None:
            logger.warning("Skipping malformed trailing line: %s", pending_error)


class SessionStore:
    """Owns the session file: appends records and patches the last ``end``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._last_line_offset: Optional[int] = None

    def append(self, record: SessionRecord) -> None:
        payload = (format_line(record) + "\n").encode("utf-8")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("ab") as handle:
                if handle.tell() == 0:
                    handle.write((HEADER + "\n").encode("utf-8"))
                offset = handle.tell()
                handle.write(payload)
                handle.flush()
        except OSError as exc:
            raise StoreIOError(f"Cannot append to {self.path}: {exc}") from exc
        self._last_line_offset = offset

    def patch_last_end(self, timestamp: int) -> None:
        """Rewrite the ``end`` column of the last record, leaving other bytes intact."""
        try:
            with self.path.open("r+b") as handle:
                self._patch(handle, timestamp)
        except OSError as exc:
            raise StoreIOError(f"Cannot update {self.path}: {exc}") from exc

    def _patch(self, handle: BinaryIO, timestamp: int) -> None:
        offset = self._last_line_offset
        if offset is None:
            offset = _last_line_offset(handle)
        handle.seek(offset)
        raw = handle.read().rstrip(b"\r\n")
        line = raw.decode("utf-8", errors="replace")
        if offset == 0 or line == HEADER:
            raise StoreCorruptError(f"{self.path} has no session record to update")
        columns = line.count("\t") + 1
        if columns != COLUMNS:
            raise StoreCorruptError(
                f"Last record of {self.path} has {columns} columns, expected {COLUMNS}"
            )

        end_offset = raw.rindex(b"\t") + 1
        old_end = raw[end_offset:]
        new_end = str(timestamp).ljust(END_WIDTH).encode("ascii")
        handle.seek(offset + end_offset)
        if len(new_end) == len(old_end):
            handle.write(new_end)
        else:
            # Narrower column from another writer: rewrite the tail of this line only.
            logger.debug("Rewriting end column of last record (width %d).", len(old_end))
            handle.write(new_end + b"\n")
            handle.truncate()
        handle.flush()
        self._last_line_offset = offset

    def read_all(self) -> SessionLog:
        return SessionLog(self.path)

    def read_tail(self, count: int) -> Iterator[SessionRecord]:
        """Yield the last ``count`` records in file order.

        The file is read backwards in blocks, so only the tail is touched.
        """
        if count <= 0:
            return
        try:
            handle = self.path.open("rb")
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StoreIOError(f"Cannot read {self.path}: {exc}") from exc

        collected: list[SessionRecord] = []
        with handle:
            for index, (offset, raw) in enumerate(_reversed_lines(handle)):
                line = raw.decode("utf-8", errors="replace").rstrip("\r")
                if offset == 0 and line == HEADER:
                    break
                try:
                    collected.append(parse_line(line))
                except ParseError as exc:
                    if index != 0:
                        raise
                    logger.warning("Skipping malformed trailing line: %s", exc)
                    continue
                if len(collected) == count:
                    break
        yield from reversed(collected)

    def last_record(self) -> Optional[SessionRecord]:
        return next(iter(self.read_tail(1)), None)


def _reversed_lines(
    handle: BinaryIO, block_size: int = _TAIL_BLOCK_SIZE
) -> Iterator[tuple[int, bytes]]:
    """Yield ``(offset, line)`` pairs from the end of a binary file, skipping blanks."""
    handle.seek(0, os.SEEK_END)
    position = handle.tell()
    buffer = b""
    while position > 0:
        read_size = min(block_size, position)
        position -= read_size
        handle.seek(position)
        buffer = handle.read(read_size) + buffer
        pieces = buffer.split(b"\n")
        buffer = pieces[0]
        offset = position + len(buffer) + 1
        complete: list[tuple[int, bytes]] = []
        for piece in pieces[1:]:
            if piece.strip():
                complete.append((offset, piece))
            offset += len(piece) + 1
        yield from reversed(complete)
    if buffer.strip():
        yield 0, buffer


def _last_line_offset(handle: BinaryIO) -> int:
    for offset, _ in _reversed_lines(handle):
        return offset
    return 0
