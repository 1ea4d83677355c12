"""
recorder.py

Event sinks for connection events.
The JSONL recorder appends one JSON object per line and rotates files by
line count and by age.
"""

import json
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, List, Optional, Protocol

from parser.events import ConnectionEvent
from utils import app_logger, config


class EventRecorder(Protocol):
    """
    Anything listeners can hand connection events to.

    record() must return quickly and must be safe to call from many
    threads at once.
    """

    def record(self, event: ConnectionEvent) -> None:
        ...


class JsonlEventRecorder:
    """
    Thread-safe JSON-lines writer with line-count and time based rotation.
    """

    def __init__(
        self,
        log_dir: Optional[str] = None,
        filename_prefix: Optional[str] = None,
        max_lines: Optional[int] = None,
        rotation_time: Optional[float] = None,
    ) -> None:
        self.log_dir = Path(log_dir or config.get("recorder.log_dir", "./logs"))
        self.filename_prefix = filename_prefix or config.get(
            "recorder.filename_prefix", "sinkholeserver"
        )
        if max_lines is None:
            max_lines = config.get("recorder.max_lines", 100000)
        # rotation_time is in minutes
        if rotation_time is None:
            rotation_time = config.get("recorder.rotation_time", 60)
        self.max_lines = int(max_lines)
        self.rotation_seconds = float(rotation_time) * 60

        if self.max_lines <= 0:
            raise ValueError("max_lines must be positive")
        if self.rotation_seconds <= 0:
            raise ValueError("rotation_time must be positive")

        self.logger = app_logger
        self._lock = threading.Lock()
        self._file: Optional[IO[str]] = None
        self._path: Optional[Path] = None
        self._lines = 0
        self._opened_at = 0.0
        self._sequence = 0

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Recording events to {self.log_dir} (prefix={self.filename_prefix})")

    @property
    def current_path(self) -> Optional[Path]:
        """Path of the file currently being written, if any."""
        return self._path

    def _next_path(self) -> Path:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        path = self.log_dir / f"{self.filename_prefix}_{stamp}.jsonl"
        # Several rotations inside one second must not reuse a file
        while path.exists():
            self._sequence += 1
            path = self.log_dir / f"{self.filename_prefix}_{stamp}_{self._sequence}.jsonl"
        return path

    def _needs_rotation(self) -> bool:
        if self._file is None:
            return True
        if self._lines >= self.max_lines:
            return True
        return time.monotonic() - self._opened_at >= self.rotation_seconds

    def _rotate(self) -> None:
        if self._file is not None:
            self._file.close()
            self.logger.debug(f"Rotated event log {self._path} after {self._lines} lines")

        self._path = self._next_path()
        self._file = open(self._path, "a", encoding="utf-8")
        self._lines = 0
        self._opened_at = time.monotonic()

    def record(self, event: ConnectionEvent) -> None:
        """
        Append one event. Write failures are logged here and never raised,
        so a broken disk cannot take a listener down.
        """
        line = json.dumps(event.to_record(), separators=(",", ":"))

        with self._lock:
            try:
                if self._needs_rotation():
                    self._rotate()
                self._file.write(line + "\n")
                self._file.flush()
                self._lines += 1
            except (OSError, ValueError) as e:
                self.logger.error(f"Failed to record event {line}: {e}")
                # Force a fresh file on the next write
                self._close_file()

    def _close_file(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                self.logger.warning(f"Error closing event log {self._path}: {e}")
        self._file = None

    def close(self) -> None:
        """Flush and close the current file."""
        with self._lock:
            self._close_file()

    def __enter__(self) -> "JsonlEventRecorder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class MemoryEventRecorder:
    """
    Keeps events in memory. Mostly useful in tests.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[ConnectionEvent] = []

    def record(self, event: ConnectionEvent) -> None:
        with self._lock:
            self.events.append(event)
