"""Adapters — bindings for external commands.

Public re-exports for convenient access.
"""

from mfgi.adapters.base import Runner
from mfgi.adapters.mock import MockRunner
from mfgi.adapters.shell.command import CommandRunner

__all__ = [
    "CommandRunner",
    "MockRunner",
    "Runner",
]
