"""
Result ledger — what changed, what was skipped, what failed.

One ledger object is created per run and handed to every step. It
only ever grows: ``record`` appends to one of three ordered sequences
and reports the line immediately; ``summarize`` renders whatever has
accumulated so far, so the abnormal-exit path can print it too.

Step failures never change control flow. They only change the
ledger's content, and through it the final message.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from mfgi.core.models.result import RESULT_STATUSES, ResultEntry

logger = logging.getLogger(__name__)

Reporter = Callable[[ResultEntry], None]

SECTION_TITLES: dict[str, str] = {
    "changed": "Changed:",
    "skipped": "Already set/skipped:",
    "failed": "Failed:",
}


def _log_reporter(entry: ResultEntry) -> None:
    level = logging.WARNING if entry.status == "failed" else logging.INFO
    logger.log(level, "[%s] %s", entry.status, entry.message)


class ResultLedger:
    """Append-only record of operation outcomes for one run."""

    def __init__(self, reporter: Reporter | None = None):
        self._reporter = reporter or _log_reporter
        self._entries: dict[str, list[ResultEntry]] = {s: [] for s in RESULT_STATUSES}
        self._current_step = ""

    # ── Recording ───────────────────────────────────────────────

    def set_step(self, name: str) -> None:
        """Tag subsequent entries with the running step's name."""
        self._current_step = name

    def record(self, status: str, message: str) -> ResultEntry:
        """Append an entry and report it.

        Raises:
            ValueError: Unknown status.
        """
        if status not in self._entries:
            raise ValueError(f"Invalid result status: {status}")
        entry = ResultEntry(status=status, message=message, step=self._current_step)
        self._entries[status].append(entry)
        self._reporter(entry)
        return entry

    def changed(self, message: str) -> ResultEntry:
        return self.record("changed", message)

    def skipped(self, message: str) -> ResultEntry:
        return self.record("skipped", message)

    def failed(self, message: str) -> ResultEntry:
        return self.record("failed", message)

    # ── Reading ─────────────────────────────────────────────────

    def entries(self, status: str) -> tuple[ResultEntry, ...]:
        return tuple(self._entries[status])

    def messages(self, status: str) -> list[str]:
        return [e.message for e in self._entries[status]]

    def count_for_step(self, step: str) -> int:
        return sum(1 for entries in self._entries.values() for e in entries if e.step == step)

    @property
    def failure_count(self) -> int:
        return len(self._entries["failed"])

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0

    @property
    def total(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def summarize(self) -> list[tuple[str, list[str]]]:
        """Sections in fixed order (changed, skipped, failed), empty ones omitted."""
        return [
            (SECTION_TITLES[status], self.messages(status))
            for status in RESULT_STATUSES
            if self._entries[status]
        ]

    def final_message(self, program: str = "mfgi v18") -> str:
        if self.has_failures:
            return f"{program} installation completed with {self.failure_count} failure(s)."
        return f"{program} installation completed!"

    def to_dict(self) -> dict:
        return {
            status: [e.model_dump(mode="json") for e in self._entries[status]]
            for status in RESULT_STATUSES
        }
