"""
Session log — append-only run log with size-triggered rotation.

One file (``/var/log/mfgi-setup.log`` by default) accumulates a frame
per run:

    === mfgi v18.0.0 - Session started at 2025-01-01 12:00:00 ===
    PID: 4242, User: root, Args: --scope user
    =================================
    ... log records ...
    === Session completed at 2025-01-01 12:03:10 ===
    Exit status: success
    =====================================

Before the header is written the log is rotated when it is larger
than ``max_size``: ``.N-1`` moves to ``.N`` (the generation beyond
``keep`` is overwritten), the current log becomes ``.1`` and a fresh
empty log replaces it. Rotation runs under a non-blocking ``flock``
on ``<log>.lock``; a second invocation that loses the race skips
rotation instead of waiting.

The log path must never be a symlink: opening fails closed.
"""

from __future__ import annotations

import fcntl
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from mfgi.core.errors import SessionLogError

logger = logging.getLogger(__name__)

_LOG_MODE = 0o600
_RULE_OPEN = "=" * 33
_RULE_CLOSE = "=" * 37
_RULE_ERROR = "=" * 42


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class SessionMetadata:
    """Identifies one run inside the log."""

    program: str
    version: str
    pid: int = field(default_factory=os.getpid)
    user: str = field(default_factory=lambda: os.environ.get("USER", "unknown"))
    args: list[str] = field(default_factory=list)


class SessionLog:
    """Handle on an open session frame. Appends only."""

    def __init__(self, path: Path):
        self._path = path
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, *lines: str) -> None:
        """Append raw lines to the log."""
        _refuse_symlink(self._path)
        with self._path.open("a", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")

    def close(self, status: str = "success") -> None:
        """Append the normal-exit trailer. Later calls are no-ops."""
        if self._closed:
            return
        self.write(
            f"=== Session completed at {_timestamp()} ===",
            f"Exit status: {status}",
            _RULE_CLOSE,
        )
        self._closed = True

    def close_error(self, reason: str, location: str = "unknown") -> None:
        """Append the abnormal-exit trailer. Later calls are no-ops."""
        if self._closed:
            return
        self.write(
            f"=== Session terminated with error at {_timestamp()} ===",
            "Exit status: error",
            f"Reason: {reason}",
            f"Location: {location}",
            _RULE_ERROR,
        )
        self._closed = True


class LogManager:
    """Owns the session log file, its rotated siblings and the lock."""

    def __init__(self, path: Path, max_size: int, keep: int):
        if keep < 1:
            raise ValueError("keep must be at least 1")
        self._path = path
        self._max_size = max_size
        self._keep = keep

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    def rotated_path(self, generation: int) -> Path:
        return self._path.with_name(f"{self._path.name}.{generation}")

    def open(self, metadata: SessionMetadata) -> SessionLog:
        """Prepare the log (rotating if needed) and write the session header.

        Raises:
            SessionLogError: The log is a symlink or cannot be created.
        """
        _refuse_symlink(self._path)

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._ensure_file()
        except OSError as e:
            raise SessionLogError(f"Cannot create log file {self._path}: {e}") from e

        self.rotate_if_needed()

        session = SessionLog(self._path)
        args = " ".join(metadata.args) if metadata.args else "none"
        try:
            session.write(
                "",
                f"=== {metadata.program} v{metadata.version} - Session started at {_timestamp()} ===",
                f"PID: {metadata.pid}, User: {metadata.user}, Args: {args}",
                _RULE_OPEN,
            )
        except OSError as e:
            raise SessionLogError(f"Cannot write to log file {self._path}: {e}") from e
        return session

    def rotate_if_needed(self) -> bool:
        """Rotate under the lock when the log exceeds ``max_size``.

        Returns:
            True if a rotation happened. False when the log is small
            enough or another process holds the lock.
        """
        try:
            lock_fd = os.open(self.lock_path, os.O_WRONLY | os.O_CREAT, _LOG_MODE)
        except OSError as e:
            logger.warning("Cannot open log lock %s: %s", self.lock_path, e)
            return False

        try:
            try:
                fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError:
                logger.debug("Log rotation lock held by another process, skipping")
                return False

            try:
                # Measured under the lock: a concurrent winner may already have rotated.
                if not self._path.is_file() or self._path.stat().st_size <= self._max_size:
                    return False
                self._rotate()
                return True
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
                self.lock_path.unlink(missing_ok=True)
        finally:
            os.close(lock_fd)

    def _rotate(self) -> None:
        for generation in range(self._keep, 1, -1):
            older = self.rotated_path(generation - 1)
            if older.is_file():
                older.replace(self.rotated_path(generation))

        fresh = self._path.with_name(f"{self._path.name}.tmp.{os.getpid()}")
        fd = os.open(fresh, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _LOG_MODE)
        os.close(fd)
        os.chmod(fresh, _LOG_MODE)

        try:
            self._path.replace(self.rotated_path(1))
            fresh.replace(self._path)
        except OSError:
            if not self._path.exists() and self.rotated_path(1).is_file():
                self.rotated_path(1).replace(self._path)
            fresh.unlink(missing_ok=True)
            raise

        logger.info("Log file rotated (previous logs kept: %d)", self._keep)

    def _ensure_file(self) -> None:
        if self._path.exists():
            return
        try:
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, _LOG_MODE)
        except FileExistsError:
            return
        os.close(fd)


def _refuse_symlink(path: Path) -> None:
    if path.is_symlink():
        raise SessionLogError(f"Refusing to write to symlinked log file: {path}")
