"""
Safe file editing — backup, edit, restore on failure.

Every edit of a system configuration file goes through
``SafeFileMutator.edit``. The original is copied into the private
temporary area first (owner-only permissions regardless of the source
mode); when the edit function reports failure or raises, the copy is
put back so the file is byte-identical to what it was before. A file
that did not exist before the edit is removed again.

Edit functions are called as ``edit_fn(path, *args, **kwargs)`` and
must be idempotent: check before writing, update a key when present,
append it when absent.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mfgi.core.errors import TempAreaError

logger = logging.getLogger(__name__)

EditFunction = Callable[..., bool]


class TempArea:
    """Private (0700) scratch directory removed at process exit."""

    def __init__(self, parent: Path | None = None):
        try:
            self._path = Path(tempfile.mkdtemp(prefix="mfgi.", dir=parent))
            os.chmod(self._path, 0o700)
        except OSError as e:
            raise TempAreaError(f"Could not create secure temporary directory: {e}") from e

    @property
    def path(self) -> Path:
        return self._path

    def cleanup(self) -> None:
        shutil.rmtree(self._path, ignore_errors=True)
        logger.debug("Removed temporary area %s", self._path)


@dataclass(frozen=True)
class BackupRecord:
    """A copy of ``original``; ``backup`` is None when it did not exist."""

    original: Path
    backup: Path | None

    def restore(self) -> None:
        if self.backup is None:
            self.original.unlink(missing_ok=True)
        else:
            shutil.copy2(self.backup, self.original)


class SafeFileMutator:
    """Applies idempotent edit functions with rollback-on-failure."""

    def __init__(self, temp_area: TempArea, dry_run: bool = False):
        self._temp_area = temp_area
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def backup(self, path: Path) -> BackupRecord:
        """Copy ``path`` to a uniquely named owner-only file in the temp area."""
        if not path.exists():
            logger.debug("No backup of %s; it does not exist yet", path)
            return BackupRecord(original=path, backup=None)
        fd, name = tempfile.mkstemp(prefix=f"{path.name}.bak.", dir=self._temp_area.path)
        os.close(fd)
        backup = Path(name)
        shutil.copy2(path, backup)
        # copy2 carries the source mode over; the backup must stay private.
        os.chmod(backup, 0o600)
        logger.debug("Backup of %s at %s", path, backup)
        return BackupRecord(original=path, backup=backup)

    def edit(self, path: Path, edit_fn: EditFunction, *args: Any, **kwargs: Any) -> bool:
        """Run ``edit_fn(path, *args, **kwargs)`` under backup protection.

        Returns:
            The edit function's verdict. On a falsy verdict the original
            content has been restored.

        Raises:
            Whatever ``edit_fn`` raises, after the original is restored.
        """
        if self._dry_run:
            logger.info("DRY-RUN: would edit file: %s", path)
            return True

        if not callable(edit_fn):
            logger.error("safe edit: %r is not callable", edit_fn)
            return False

        record = self.backup(path)

        try:
            ok = bool(edit_fn(path, *args, **kwargs))
        except Exception:
            logger.warning("Edit raised for %s; restoring original", path)
            self._restore(record)
            raise

        if not ok:
            logger.warning("Edit failed for %s; restoring original", path)
            self._restore(record)
        return ok

    def _restore(self, record: BackupRecord) -> None:
        try:
            record.restore()
        except OSError as e:
            logger.error("Restore failed; backup at %s: %s", record.backup, e)


# ── Idempotent edit helpers ─────────────────────────────────────────


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"^[ \t]*#*[ \t]*{re.escape(key)}=.*$", re.MULTILINE)


def update_or_add(path: Path, key: str, value: str) -> bool:
    """Set ``KEY=value`` in a shell-style defaults file.

    The first commented or uncommented line for the key is rewritten in
    place (dropping the comment marker) and later ones are removed;
    otherwise the line is appended.
    """
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    line = f"{key}={value}"
    pattern = _key_pattern(key)

    if pattern.search(text):
        kept: list[str] = []
        written = False
        for existing in text.splitlines(keepends=True):
            if not pattern.match(existing):
                kept.append(existing)
            elif not written:
                kept.append(line + "\n")
                written = True
        updated = "".join(kept)
    else:
        if text and not text.endswith("\n"):
            text += "\n"
        updated = f"{text}\n{line}\n" if text else f"{line}\n"

    if updated != text:
        path.write_text(updated, encoding="utf-8")
    return True


def apply_settings(path: Path, settings: Mapping[str, str]) -> bool:
    """Apply several ``update_or_add`` calls; stops at the first failure."""
    for key, value in settings.items():
        if not update_or_add(path, key, value):
            return False
    return True


def settings_present(path: Path, settings: Mapping[str, str]) -> bool:
    """True when every key is already set (uncommented) to its value."""
    if not path.is_file():
        return False
    lines = {line.strip() for line in path.read_text(encoding="utf-8").splitlines()}
    return all(f"{key}={value}" in lines for key, value in settings.items())


def ensure_line(path: Path, line: str) -> bool:
    """Append ``line`` unless an identical line is already present."""
    text = path.read_text(encoding="utf-8") if path.exists() else ""
    if line in (existing.strip() for existing in text.splitlines()):
        return True
    if text and not text.endswith("\n"):
        text += "\n"
    path.write_text(f"{text}{line}\n", encoding="utf-8")
    return True
