"""
Logging configuration for the installer process.

``main.py`` calls ``setup_logging`` once; modules only ever do
``logger = logging.getLogger(__name__)``.

Console levels are resolved in precedence order:
    --debug  >  --verbose  >  DEBUG=1  >  MFGI_LOG_LEVEL  >  WARNING

Once the session log is open, ``attach_session_log`` adds a file
handler so that every INFO record of the run lands inside the
session frame, whatever the console level is.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ── Formats per console tier ────────────────────────────────────

# (threshold, format, datefmt): the first tier whose threshold is
# >= the configured level wins.
_CONSOLE_TIERS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_PLAIN = "%(message)s"

# The session log always carries file:line and a full date.
_SESSION_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_SESSION_DATEFMT = "%Y-%m-%d %H:%M:%S"
_SESSION_LEVEL = logging.INFO


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    env_debug: bool = False,
    env_level: str | None = None,
) -> str:
    """Pick the console level name from flags and environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if env_debug:
        return "DEBUG"
    if env_level:
        return env_level.upper()
    return "WARNING"


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_TIERS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_PLAIN)


def setup_logging(level: str = "WARNING") -> None:
    """Install the stderr handler on the root logger.

    Calling it again replaces the previous configuration.
    """
    numeric = _level_number(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(_console_formatter(numeric))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric)

    # A broken stderr must not turn a log call into a traceback.
    logging.raiseExceptions = False


def attach_session_log(path: Path) -> logging.Handler:
    """Mirror log records into the open session log file.

    Returns:
        The handler, for ``detach_session_log`` at exit.
    """
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(_SESSION_LEVEL)
    handler.setFormatter(logging.Formatter(_SESSION_FORMAT, datefmt=_SESSION_DATEFMT))

    root = logging.getLogger()
    root.addHandler(handler)
    # The console handler keeps its own level; the root must let INFO through.
    root.setLevel(min(root.level or logging.WARNING, _SESSION_LEVEL))
    return handler


def detach_session_log(handler: logging.Handler | None) -> None:
    """Flush and remove the session handler before the trailer is written."""
    if handler is None:
        return
    logging.getLogger().removeHandler(handler)
    handler.close()


def _level_number(name: str | None) -> int:
    """Level name to number; unknown names mean WARNING."""
    numeric = getattr(logging, (name or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
