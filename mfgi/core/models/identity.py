"""
Target user identity — the desktop user acted on from a root process.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class TargetUser(BaseModel):
    """The non-privileged desktop user resolved at startup.

    ``session_bus`` is the bus socket seen at detection time. The
    broker re-probes before every session-scoped command; the socket
    belongs to the user's login session, not to us.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    uid: int
    home: str = ""
    session_bus: str | None = None

    @property
    def is_root(self) -> bool:
        return self.uid == 0 or self.username == "root"
