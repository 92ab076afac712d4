"""
Package operations — dnf and rpm through a Runner.

Queries (``rpm -q``) always execute, also in dry-run; anything that
changes the RPM database is a mutating command and is suppressed by
the runner during a dry run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from mfgi.adapters.base import Runner
from mfgi.core.models.command import CommandResult

logger = logging.getLogger(__name__)

_DNF = ["dnf", "-y"]
_NO_WEAK_DEPS = "--setopt=install_weak_deps=False"


# ── Queries ─────────────────────────────────────────────────────


def is_installed(runner: Runner, package: str) -> bool:
    return runner.query(["rpm", "-q", package]).ok


def missing_packages(runner: Runner, packages: Iterable[str]) -> list[str]:
    """Packages from ``packages`` that rpm does not know, in order."""
    return [p for p in packages if not is_installed(runner, p)]


def installed_packages(runner: Runner, packages: Iterable[str]) -> list[str]:
    return [p for p in packages if is_installed(runner, p)]


# ── Mutations ───────────────────────────────────────────────────


def refresh_metadata(runner: Runner) -> bool:
    """Refresh repository metadata and upgrade the system.

    Best effort: failures are logged as warnings and reported back
    but never stop the caller.
    """
    ok = True
    result = runner.run([*_DNF, "makecache"])
    if result.failed:
        logger.warning("Failed to refresh package metadata (%s)", result.error)
        ok = False

    result = runner.run([*_DNF, "upgrade", "--refresh"])
    if result.failed:
        logger.warning("System upgrade failed (%s), continuing", result.error)
        ok = False
    return ok


def install(runner: Runner, packages: Iterable[str]) -> CommandResult:
    return runner.run([*_DNF, _NO_WEAK_DEPS, "install", *packages])


def remove(runner: Runner, packages: Iterable[str]) -> CommandResult:
    return runner.run([*_DNF, "remove", *packages])
