"""
Shell command runner — the single place ``subprocess.run`` is called.

Commands are always argument vectors, never shell strings. There is
no timeout: long package transactions simply block the (only) thread.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping

from mfgi.adapters.base import Runner
from mfgi.core.models.command import CommandResult

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 4000


class CommandRunner(Runner):
    """Execute commands with ``subprocess.run`` and capture their output."""

    def execute(
        self,
        argv: list[str],
        *,
        env: Mapping[str, str] | None = None,
        input: str | None = None,
    ) -> CommandResult:
        child_env = None
        if env:
            child_env = os.environ.copy()
            child_env.update(env)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                input=input,
                env=child_env,
            )
        except FileNotFoundError:
            return CommandResult.failure(argv, returncode=127, stderr=f"{argv[0]}: command not found")
        except OSError as e:
            return CommandResult.failure(argv, returncode=126, stderr=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = proc.stdout[-_OUTPUT_TAIL:] if proc.stdout else ""
        stderr = proc.stderr[-_OUTPUT_TAIL:] if proc.stderr else ""
        if stdout:
            logger.debug("stdout: %s", stdout.rstrip())

        return CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=elapsed_ms,
        )
