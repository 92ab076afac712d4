"""
Privilege & session broker — run commands as the right user.

The installer runs as root (usually via ``sudo``), but Flatpak user
installs, gsettings and gnome-extensions must run as the desktop user
AND talk to that user's D-Bus session bus. The broker solves both:

1. ``detect_target_user`` finds the desktop user, most reliable
   source first: the sudo caller, an active non-greeter login session
   (loginctl), then the first human account (uid >= 1000).
2. ``run_as`` switches user for commands that need no session bus
   (``ls``, ``mkdir``, ``pipx install``).
3. ``run_as_with_session`` additionally attaches a session bus:
     a. reuse ``/run/user/<uid>/bus`` when that socket exists,
     b. otherwise wrap the command in ``dbus-run-session`` so a
        private, transient bus lives exactly as long as the command,
     c. otherwise run it without a bus and let it fail visibly.
"""

from __future__ import annotations

import logging
import os
import pwd
import stat
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from mfgi.adapters.base import Runner
from mfgi.core.models.command import CommandResult
from mfgi.core.models.identity import TargetUser

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME_ROOT = Path("/run/user")
DEFAULT_GREETERS = ("gdm", "sddm", "lightdm")
HUMAN_UID_MIN = 1000
HUMAN_UID_MAX = 65534  # nobody / overflow uid


@dataclass(frozen=True)
class Account:
    name: str
    uid: int
    home: str


class AccountDatabase:
    """Read-only view of the passwd database."""

    def lookup(self, name: str) -> Account | None:
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            return None
        return Account(entry.pw_name, entry.pw_uid, entry.pw_dir)

    def lookup_uid(self, uid: int) -> Account | None:
        try:
            entry = pwd.getpwuid(uid)
        except KeyError:
            return None
        return Account(entry.pw_name, entry.pw_uid, entry.pw_dir)

    def entries(self) -> list[Account]:
        return [Account(e.pw_name, e.pw_uid, e.pw_dir) for e in pwd.getpwall()]


class PrivilegeBroker:
    """Detects the desktop user and executes commands on their behalf."""

    def __init__(
        self,
        runner: Runner,
        *,
        accounts: AccountDatabase | None = None,
        runtime_root: Path = DEFAULT_RUNTIME_ROOT,
        euid: int | None = None,
        greeters: Sequence[str] = DEFAULT_GREETERS,
    ):
        self._runner = runner
        self._accounts = accounts or AccountDatabase()
        self._runtime_root = runtime_root
        self._euid = os.geteuid() if euid is None else euid
        self._greeters = tuple(greeters)

    @property
    def runner(self) -> Runner:
        return self._runner

    @property
    def is_root(self) -> bool:
        return self._euid == 0

    # ── User detection ──────────────────────────────────────────

    def detect_target_user(self, env: Mapping[str, str] | None = None) -> TargetUser | None:
        """Resolve the desktop user, or None when nobody can be determined.

        None is not an error: callers skip user-scoped operations.
        """
        env = os.environ if env is None else env

        if self.is_root:
            name = (
                self._from_sudo(env)
                or self._from_login_sessions()
                or self._from_account_scan()
            )
        else:
            account = self._accounts.lookup_uid(self._euid)
            name = env.get("USER") or (account.name if account else None)

        if not name:
            logger.warning("Could not determine a unique desktop user.")
            return None

        account = self._accounts.lookup(name)
        if account is None:
            logger.warning("Could not find UID for detected user: %s", name)
            return None

        bus = self._bus_socket(account.uid)
        user = TargetUser(
            username=account.name,
            uid=account.uid,
            home=account.home,
            session_bus=str(bus) if bus else None,
        )
        logger.info("Desktop user detected: %s (uid: %d)", user.username, user.uid)
        return user

    def _from_sudo(self, env: Mapping[str, str]) -> str | None:
        sudo_user = env.get("SUDO_USER", "")
        if sudo_user and sudo_user != "root":
            logger.debug("Target user from SUDO_USER: %s", sudo_user)
            return sudo_user
        return None

    def _from_login_sessions(self) -> str | None:
        if not self._runner.has("loginctl"):
            return None
        result = self._runner.query(["loginctl", "list-sessions", "--no-legend"])
        if result.failed:
            return None
        # SESSION UID USER SEAT TTY ...; only seated sessions are desktop logins.
        for line in result.lines:
            fields = line.split()
            if len(fields) < 4:
                continue
            user, seat = fields[2], fields[3]
            if user in self._greeters or user == "root" or not seat or seat == "-":
                continue
            logger.debug("Target user from loginctl: %s", user)
            return user
        return None

    def _from_account_scan(self) -> str | None:
        for account in self._accounts.entries():
            if HUMAN_UID_MIN <= account.uid < HUMAN_UID_MAX and account.name != "nobody":
                logger.debug("Target user from account database: %s", account.name)
                return account.name
        return None

    # ── Execution ───────────────────────────────────────────────

    def run_as_root(self, argv: Sequence[str], *, mutating: bool = True) -> CommandResult:
        return self._runner.run(argv, mutating=mutating)

    def run_as(
        self,
        identity: TargetUser | None,
        argv: Sequence[str],
        *,
        mutating: bool = True,
    ) -> CommandResult:
        """Run as ``identity`` without a session bus.

        Not root, or no identity: run as ourselves.
        """
        if not self.is_root or identity is None or identity.is_root:
            return self._runner.run(argv, mutating=mutating)

        prefix = self._switch_user(identity)
        if prefix is None:
            return CommandResult.failure(
                list(argv), 127, f"Neither 'sudo' nor 'runuser' available to switch to user '{identity.username}'"
            )
        return self._runner.run([*prefix, *argv], mutating=mutating)

    def run_as_with_session(
        self,
        identity: TargetUser | None,
        argv: Sequence[str],
        *,
        mutating: bool = True,
    ) -> CommandResult:
        """Run as ``identity`` attached to a D-Bus session bus."""
        if identity is None:
            logger.warning("Cannot run D-Bus command without a detected user.")
            return CommandResult.failure(list(argv), 1, "no target user for session command")

        if not self.is_root:
            # Already the user; our own session bus is in the environment.
            return self._runner.run(argv, mutating=mutating)

        prefix = self._switch_user(identity)
        if prefix is None:
            return CommandResult.failure(
                list(argv), 127, f"Neither 'sudo' nor 'runuser' available to switch to user '{identity.username}'"
            )

        bus = self._bus_socket(identity.uid)
        if bus is not None:
            logger.debug("Reusing active D-Bus session for %s", identity.username)
            wrapped = [
                *prefix,
                "env",
                f"XDG_RUNTIME_DIR={bus.parent}",
                f"DBUS_SESSION_BUS_ADDRESS=unix:path={bus}",
                *argv,
            ]
        elif self._runner.has("dbus-run-session"):
            logger.debug("No active D-Bus session for %s; using dbus-run-session", identity.username)
            wrapped = [*prefix, "dbus-run-session", "--", *argv]
        else:
            logger.warning(
                "No user-bus and 'dbus-run-session' missing. Attempting without bus (may fail)."
            )
            wrapped = [*prefix, *argv]

        return self._runner.run(wrapped, mutating=mutating)

    def check_readiness(self, identity: TargetUser | None) -> bool:
        """Warn once when session-scoped operations are likely to fail.

        Returns:
            False when the warning was emitted.
        """
        if not self.is_root or identity is None:
            return True
        if self._bus_socket(identity.uid) is not None or self._runner.has("dbus-run-session"):
            return True
        logger.warning(
            "No active D-Bus session found for %s, and 'dbus-run-session' missing. "
            "Actions in 'user' scope (Flatpak, gsettings) may fail. "
            "This often happens if the user is not logged into a graphical session.",
            identity.username,
        )
        return False

    # ── Internals ───────────────────────────────────────────────

    def _switch_user(self, identity: TargetUser) -> list[str] | None:
        if self._runner.has("sudo"):
            return ["sudo", "-u", identity.username, "-H", "--"]
        if self._runner.has("runuser"):
            return ["runuser", "-u", identity.username, "--"]
        logger.error("Neither 'sudo' nor 'runuser' available to switch to user '%s'", identity.username)
        return None

    def _bus_socket(self, uid: int) -> Path | None:
        path = self._runtime_root / str(uid) / "bus"
        try:
            mode = path.stat().st_mode
        except OSError:
            return None
        return path if stat.S_ISSOCK(mode) else None
