"""
Result entries — the outcome of one attempted operation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ResultStatus = Literal["changed", "skipped", "failed"]

RESULT_STATUSES: tuple[str, ...] = ("changed", "skipped", "failed")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ResultEntry(BaseModel):
    """A single ledger line."""

    model_config = ConfigDict(frozen=True)

    status: ResultStatus
    message: str
    step: str = ""
    timestamp: str = Field(default_factory=_now_iso)
