"""
Preflight — can this host run the installer at all?

Checked before any step runs, in order: root privileges, a Fedora
system, the required tools. ``dbus-run-session`` is optional; when it
is missing an install is attempted, and a failure only warns.
"""

from __future__ import annotations

import logging
import os
import shlex
from collections.abc import Sequence
from pathlib import Path

from mfgi.adapters.base import Runner
from mfgi.core.errors import PreconditionError

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
REQUIRED_TOOLS = ("dnf", "systemctl")


def read_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    """Parse ``KEY=value`` lines of an os-release file.

    Raises:
        PreconditionError: The file cannot be read.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PreconditionError(f"Cannot read {path}: {e}") from e

    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            parts = [raw]
        values[key.strip()] = parts[0] if parts else ""
    return values


def check_root(euid: int | None = None) -> None:
    euid = os.geteuid() if euid is None else euid
    if euid != 0:
        raise PreconditionError("Please run as root: sudo mfgi")


def check_fedora(os_release: Path = OS_RELEASE) -> str:
    """Return PRETTY_NAME of the running Fedora.

    Raises:
        PreconditionError: Not Fedora.
    """
    info = read_os_release(os_release)
    distro = info.get("ID", "")
    if distro != "fedora":
        raise PreconditionError(f"This script is for Fedora only. Detected: {distro or 'unknown'}")
    return info.get("PRETTY_NAME", "Fedora")


def check_tools(runner: Runner, tools: Sequence[str] = REQUIRED_TOOLS) -> None:
    missing = [t for t in tools if not runner.has(t)]
    if missing:
        raise PreconditionError(f"Missing required tools: {', '.join(missing)}")


def ensure_dbus_run_session(runner: Runner) -> bool:
    """Try to provide ``dbus-run-session``; never fatal."""
    if runner.has("dbus-run-session"):
        return True
    if runner.dry_run:
        logger.info("DRY-RUN: would install dbus-daemon for dbus-run-session")
        return False

    logger.info("dbus-run-session not found, attempting to install dbus-daemon...")
    result = runner.run(["dnf", "-y", "install", "dbus-daemon"])
    if result.failed or not runner.has("dbus-run-session"):
        logger.warning(
            "Could not provide dbus-run-session; user-scope actions rely on an active login session"
        )
        return False
    return True


def run_preflight(
    runner: Runner,
    *,
    euid: int | None = None,
    os_release: Path = OS_RELEASE,
) -> str:
    """Run every precondition check.

    Returns:
        The distribution's pretty name.

    Raises:
        PreconditionError: On the first failed check.
    """
    check_root(euid)
    pretty = check_fedora(os_release)
    check_tools(runner)
    ensure_dbus_run_session(runner)
    logger.info("Preflight passed: %s", pretty)
    return pretty
