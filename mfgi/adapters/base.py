"""
Runner base — the contract between steps and external commands.

Steps never call ``subprocess`` themselves. They hand an argument
vector to a Runner and get a CommandResult back. The base class owns
the parts every runner shares: dry-run suppression of mutating
commands and logging. Subclasses only implement ``execute``.
"""

from __future__ import annotations

import logging
import shlex
import shutil
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence

from mfgi.core.models.command import CommandResult

logger = logging.getLogger(__name__)


class Runner(ABC):
    """Abstract base class for command runners.

    Runners NEVER raise for a failing command; failures are captured
    in the CommandResult.
    """

    def __init__(self, dry_run: bool = False):
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        argv: Sequence[str],
        *,
        mutating: bool = True,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> CommandResult:
        """Execute ``argv`` unless it mutates the host during a dry run.

        Args:
            argv: Fixed argument vector; never passed through a shell.
            mutating: False for read-only queries, which also run in dry-run.
            env: Extra environment variables for the child.
            input: Text piped to stdin.
        """
        argv = list(argv)
        if mutating and self._dry_run:
            logger.info("DRY-RUN: would execute: %s", shlex.join(argv))
            return CommandResult.success(argv, dry_run=True)

        logger.debug("Executing: %s", shlex.join(argv))
        result = self.execute(argv, env=env, input=input)
        if result.failed:
            logger.debug("Command failed (%s): %s", result.error, result.command)
        return result

    def query(self, argv: Sequence[str], **kwargs) -> CommandResult:
        """Run a read-only command (never suppressed by dry-run)."""
        return self.run(argv, mutating=False, **kwargs)

    def which(self, name: str) -> str | None:
        """Locate an executable on PATH."""
        return shutil.which(name)

    def has(self, name: str) -> bool:
        return self.which(name) is not None

    @abstractmethod
    def execute(
        self,
        argv: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> CommandResult:
        """Execute the command and return its result. MUST never raise."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} dry_run={self._dry_run!r}>"
