"""
Error taxonomy for the installer.

Four classes of failure exist and each has a fixed place where it is
handled:

    usage         PreferenceError      → exit 2, before any side effect
    precondition  PreconditionError    → exit 1, no step attempted
    step          (no exception)       → recorded in the ResultLedger
    unexpected    FatalError, others   → top-level handler, exit 1

Step failures are deliberately NOT exceptions: every external
command returns a CommandResult and the step converts it into a
ledger entry.
"""

from __future__ import annotations


class MfgiError(Exception):
    """Base class for all installer errors."""


class UsageError(MfgiError):
    """Invalid flag or environment value."""


class PreferenceError(UsageError):
    """A preference field has a value outside its allowed set."""

    def __init__(self, field: str, value: object, allowed: list[str] | tuple[str, ...]):
        self.field = field
        self.value = value
        self.allowed = tuple(allowed)
        super().__init__(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(self.allowed)}"
        )


class PreconditionError(MfgiError):
    """The host cannot run the installer (privilege, platform, tools)."""


class FatalError(MfgiError):
    """An unanticipated failure that must abort the whole run.

    The pipeline lets these escape to the top-level handler instead
    of converting them into ledger entries.
    """


class TempAreaError(FatalError):
    """The private temporary area could not be created."""


class SessionLogError(MfgiError):
    """The session log cannot be opened safely."""


class InstallCancelled(MfgiError):
    """The operator declined the configuration summary."""


class InstallInterrupted(MfgiError):
    """A termination signal arrived while the installer was running."""

    def __init__(self, signum: int, name: str):
        self.signum = signum
        super().__init__(f"Terminated ({name})")
