"""
Command result — the execution contract between steps and runners.

Steps hand an argument vector to a runner and get a CommandResult
back. Never an exception: a non-zero exit, a missing executable and a
suppressed dry-run command are all expressed here.
"""

from __future__ import annotations

import shlex
from typing import Any

from pydantic import BaseModel, Field


class CommandResult(BaseModel):
    """Outcome of one external command."""

    argv: list[str] = Field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def failed(self) -> bool:
        return self.returncode != 0

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines, stripped."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]

    @property
    def error(self) -> str:
        """Best short description of a failure."""
        if self.ok:
            return ""
        tail = (self.stderr or self.stdout).strip().splitlines()
        detail = tail[-1] if tail else ""
        return f"exit {self.returncode}" + (f": {detail}" if detail else "")

    @classmethod
    def success(cls, argv: list[str], stdout: str = "", **kwargs: Any) -> CommandResult:
        return cls(argv=list(argv), returncode=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(
        cls,
        argv: list[str],
        returncode: int = 1,
        stderr: str = "",
        **kwargs: Any,
    ) -> CommandResult:
        return cls(argv=list(argv), returncode=returncode, stderr=stderr, **kwargs)
