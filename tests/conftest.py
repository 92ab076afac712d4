"""
Shared test fixtures and configuration.

``FakeHost`` plays the part of a Fedora machine behind a MockRunner:
queries answer from its state, mutating commands change it. Running
the pipeline twice against one FakeHost is how idempotence is tested.
"""

import base64
import os
from pathlib import Path

import pytest

from mfgi.adapters.mock import MockRunner
from mfgi.adapters.shell.privilege import Account, PrivilegeBroker
from mfgi.core.config.loader import load_catalog
from mfgi.core.config.settings import RuntimeSettings
from mfgi.core.engine.ledger import ResultLedger
from mfgi.core.engine.pipeline import StepContext
from mfgi.core.models.catalog import Catalog, GrubSpec
from mfgi.core.models.command import CommandResult
from mfgi.core.models.identity import TargetUser
from mfgi.core.models.preferences import Preferences
from mfgi.core.persistence.safe_edit import SafeFileMutator, TempArea
from mfgi.core.services.gsettings_ops import gvariant_string

PNG_BYTES = bytes.fromhex("89504e470d0a1a0a") + b"\x00\x00\x00\rIHDR fake image data"
PNG_B64 = base64.b64encode(PNG_BYTES).decode()

HOST_TOOLS = ("sudo", "flatpak", "dbus-run-session", "nm-online", "loginctl", "dnf", "systemctl")


# ── Accounts ────────────────────────────────────────────────────


class FakeAccounts:
    """In-memory passwd database."""

    def __init__(self, *accounts: Account):
        self._accounts = list(accounts)

    def lookup(self, name):
        return next((a for a in self._accounts if a.name == name), None)

    def lookup_uid(self, uid):
        return next((a for a in self._accounts if a.uid == uid), None)

    def entries(self):
        return list(self._accounts)


# ── Fake host ───────────────────────────────────────────────────


def unwrap(argv):
    """Strip sudo/runuser/env/dbus-run-session wrappers."""
    argv = list(argv)
    while argv:
        head = argv[0]
        if head in ("sudo", "runuser") and "--" in argv:
            argv = argv[argv.index("--") + 1:]
        elif head == "dbus-run-session":
            argv = argv[2:] if argv[1:2] == ["--"] else argv[1:]
        elif head == "env":
            argv = argv[1:]
            while argv and "=" in argv[0] and not argv[0].startswith("-"):
                argv = argv[1:]
        else:
            break
    return argv


def _positional(args):
    return [a for a in args if not a.startswith("-")]


class FakeHost:
    def __init__(self, home: Path):
        self.home = home
        self.rpms = {"gnome-shell", "gnome-tour", "malcontent-control"}
        self.remotes = {
            "system": {"fedora": "oci+https://registry.fedoraproject.org"},
            "user": {},
        }
        self.apps = {"system": set(), "user": set()}
        self.units = {
            "NetworkManager.service": "disabled",
            "fedora-flathub.service": "enabled",
        }
        self.default_target = "multi-user.target"
        self.gsettings = {}
        self.mutations = []

    # Responder entry point for MockRunner.
    def __call__(self, argv):
        cmd = unwrap(argv)
        if not cmd:
            return None
        name = cmd[0].replace("grub2", "grub").replace("-", "_")
        handler = getattr(self, f"_{name}", None)
        if handler is None:
            return CommandResult.success(argv)
        return handler(argv, cmd[1:])

    def _ok(self, argv, stdout=""):
        return CommandResult.success(argv, stdout=stdout)

    def _fail(self, argv, stderr="error"):
        return CommandResult.failure(argv, 1, stderr)

    # ── rpm / dnf ───────────────────────────────────────────────

    def _rpm(self, argv, args):
        package = args[-1]
        if package in self.rpms:
            return self._ok(argv, f"{package}-1.0-1.fc42.x86_64\n")
        return self._fail(argv, f"package {package} is not installed")

    def _dnf(self, argv, args):
        words = _positional(args)
        if words and words[0] == "install":
            self.mutations.append(argv)
            self.rpms.update(words[1:])
        elif words and words[0] == "remove":
            self.mutations.append(argv)
            self.rpms.difference_update(words[1:])
        return self._ok(argv)

    # ── flatpak ─────────────────────────────────────────────────

    @staticmethod
    def _scope(args):
        return "user" if "--user" in args else "system"

    def _flatpak(self, argv, args):
        sub, rest = args[0], args[1:]
        scope = self._scope(rest)
        words = _positional(rest)
        if sub == "remotes":
            lines = [f"{n}\t{u}" for n, u in self.remotes[scope].items()]
            return self._ok(argv, "\n".join(lines))
        if sub == "remote-add":
            self.mutations.append(argv)
            self.remotes[scope].setdefault(words[0], words[1])
            return self._ok(argv)
        if sub == "remote-delete":
            self.mutations.append(argv)
            self.remotes[scope].pop(words[0], None)
            return self._ok(argv)
        if sub == "info":
            return self._ok(argv) if words[0] in self.apps[scope] else self._fail(argv)
        if sub == "install":
            self.mutations.append(argv)
            self.apps[scope].add(words[-1])
            return self._ok(argv)
        return self._ok(argv)

    # ── systemctl ───────────────────────────────────────────────

    def _systemctl(self, argv, args):
        sub, rest = args[0], _positional(args[1:])
        if sub == "cat":
            return self._ok(argv) if rest[0] in self.units else self._fail(argv)
        if sub == "is-enabled":
            state = self.units.get(rest[0])
            if state is None:
                return self._fail(argv)
            return CommandResult(argv=argv, returncode=0 if state == "enabled" else 1, stdout=state + "\n")
        if sub == "list-unit-files":
            lines = [f"{u} {s}" for u, s in self.units.items() if not rest or u in rest]
            return self._ok(argv, "\n".join(lines))
        if sub in ("mask", "enable"):
            self.mutations.append(argv)
            self.units[rest[0]] = "masked" if sub == "mask" else "enabled"
            return self._ok(argv)
        if sub == "get-default":
            return self._ok(argv, self.default_target + "\n")
        if sub == "set-default":
            self.mutations.append(argv)
            self.default_target = rest[0]
            return self._ok(argv)
        return self._ok(argv)

    # ── desktop ─────────────────────────────────────────────────

    def _gsettings(self, argv, args):
        sub, schema, key = args[0], args[1], args[2]
        if sub == "get":
            default = "@as []" if key == "enabled-extensions" else "''"
            if key == "button-layout":
                default = "'appmenu:close'"
            return self._ok(argv, self.gsettings.get((schema, key), default) + "\n")
        self.mutations.append(argv)
        if sub == "reset":
            self.gsettings.pop((schema, key), None)
        else:
            value = args[3]
            self.gsettings[(schema, key)] = value if value[:1] in ("[", "'") else gvariant_string(value)
        return self._ok(argv)

    def _gnome_extensions(self, argv, args):
        self.mutations.append(argv)
        key = ("org.gnome.shell", "enabled-extensions")
        current = self.gsettings.get(key, "[]").removeprefix("@as ").strip("[]")
        names = [n.strip().strip("'") for n in current.split(",") if n.strip()]
        names.append(args[-1])
        self.gsettings[key] = "[" + ", ".join(f"'{n}'" for n in names) + "]"
        return self._ok(argv)

    def _gext(self, argv, args):
        self.mutations.append(argv)
        (self.home / ".local/share/gnome-shell/extensions" / args[-1]).mkdir(parents=True, exist_ok=True)
        return self._ok(argv)

    def _pipx(self, argv, args):
        self.mutations.append(argv)
        gext = self.home / ".local/bin/gext"
        gext.parent.mkdir(parents=True, exist_ok=True)
        gext.write_text("#!/bin/sh\n")
        os.chmod(gext, 0o755)
        return self._ok(argv)

    def _grub_mkconfig(self, argv, args):
        self.mutations.append(argv)
        Path(args[-1]).write_text("# generated\n")
        return self._ok(argv)

    def _loginctl(self, argv, args):
        return self._ok(argv)


# ── Fixtures ────────────────────────────────────────────────────


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home" / "alice"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def fake_host(home: Path) -> FakeHost:
    return FakeHost(home)


@pytest.fixture
def catalog(tmp_path: Path) -> Catalog:
    """The bundled catalog with GRUB paths redirected into tmp_path."""
    boot = tmp_path / "boot"
    boot.mkdir()
    base = load_catalog()
    grub = GrubSpec(
        defaults_file=str(tmp_path / "etc-default-grub"),
        config_output=str(boot / "grub.cfg"),
        efi_shim=str(boot / "efi-grub.cfg"),
        settings=base.grub.settings,
    )
    return base.model_copy(update={"grub": grub})


@pytest.fixture
def settings(tmp_path: Path) -> RuntimeSettings:
    return RuntimeSettings(
        log_file=tmp_path / "log" / "mfgi-setup.log",
        wall_dir=tmp_path / "backgrounds",
        wall_light_b64=PNG_B64,
        wall_dark_b64=PNG_B64,
    )


@pytest.fixture
def user(home: Path) -> TargetUser:
    return TargetUser(username="alice", uid=1000, home=str(home))


@pytest.fixture
def accounts(home: Path) -> FakeAccounts:
    return FakeAccounts(
        Account("root", 0, "/root"),
        Account("alice", 1000, str(home)),
    )


@pytest.fixture
def make_context(tmp_path, catalog, settings, user, accounts):
    """Factory for a StepContext wired to a MockRunner."""

    def _make(
        runner: MockRunner | None = None,
        preferences: Preferences | None = None,
        target: TargetUser | None = user,
        network: bool = True,
        **overrides,
    ) -> StepContext:
        preferences = preferences or Preferences()
        runner = runner or MockRunner(dry_run=preferences.dry_run, available=HOST_TOOLS)
        temp_root = tmp_path / "tmp"
        temp_root.mkdir(exist_ok=True)
        broker = PrivilegeBroker(runner, accounts=accounts, runtime_root=tmp_path / "run-user", euid=0)
        return StepContext(
            preferences=preferences,
            user=target,
            broker=broker,
            mutator=SafeFileMutator(TempArea(temp_root), dry_run=preferences.dry_run),
            ledger=overrides.pop("ledger", ResultLedger()),
            catalog=overrides.pop("catalog", catalog),
            settings=overrides.pop("settings", settings),
            network_probe=lambda: network,
        )

    return _make


@pytest.fixture
def make_runner(fake_host):
    """MockRunner answering from the fake host (or plain success)."""

    def _make(dry_run: bool = False, host: bool = True, available=HOST_TOOLS) -> MockRunner:
        return MockRunner(dry_run=dry_run, available=available, responder=fake_host if host else None)

    return _make
