"""
Tests for the CLI — options, exit codes and a full dry run.
"""

import os
import signal
from pathlib import Path

import pytest
from click.testing import CliRunner

from mfgi import main
from mfgi.adapters.mock import MockRunner
from mfgi.adapters.shell.privilege import PrivilegeBroker
from mfgi.core.engine.pipeline import Step
from mfgi.core.errors import FatalError, PreconditionError
from mfgi.core.use_cases.install import run_install
from mfgi.main import cli


@pytest.fixture
def clean_env(tmp_path: Path) -> dict:
    """Environment with every MFGI override cleared and the log in tmp."""
    return {
        "LOG_FILE": str(tmp_path / "mfgi-setup.log"),
        "MFGI_FORCE_SCOPE": "",
        "MFGI_INSTALL_APPS": "",
        "MFGI_INSTALL_WALLPAPERS": "",
        "MFGI_STYLE": "",
        "MFGI_SKIP_GRUB": "",
        "NO_COLOR": "1",
    }


@pytest.fixture
def mock_host(monkeypatch):
    """Replace the shell runner and preflight so no host command runs."""
    runners = []

    def _runner(dry_run=False):
        runner = MockRunner(dry_run=dry_run, available=["dnf", "systemctl", "flatpak", "dbus-run-session"])
        runners.append(runner)
        return runner

    monkeypatch.setattr(main, "CommandRunner", _runner)
    monkeypatch.setattr(main, "run_preflight", lambda runner: "Fedora Linux 42")
    return runners


@pytest.fixture
def install_steps(monkeypatch, tmp_path, accounts):
    """Run the real install lifecycle with the given steps and fake accounts."""
    temp_parent = tmp_path / "tmp-parent"
    temp_parent.mkdir()
    calls = []

    def _use(*steps):
        def _install(preferences, settings, catalog, runner, **kwargs):
            calls.append(preferences)
            broker = PrivilegeBroker(runner, accounts=accounts, runtime_root=tmp_path / "run-user", euid=0)
            return run_install(
                preferences, settings, catalog, runner,
                broker=broker, steps=list(steps), temp_parent=temp_parent, **kwargs,
            )

        monkeypatch.setattr(main, "run_install", _install)
        return calls

    return _use


def _changes(ctx):
    ctx.ledger.changed("dnf: installed git")
    return True


def _fails(ctx):
    ctx.ledger.failed("Extension: could not install foo")
    return False


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Minimal Fedora GNOME Install" in result.output
        assert "--dry-run" in result.output

    def test_short_help(self):
        assert CliRunner().invoke(cli, ["-h"]).exit_code == 0

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert result.output.strip() == "mfgi 18.0.0"


class TestUsageErrors:
    def test_invalid_scope_flag(self, clean_env, mock_host):
        result = CliRunner().invoke(cli, ["--scope", "global"], env=clean_env)
        assert result.exit_code == 2
        assert mock_host == []

    def test_invalid_env_override(self, clean_env, mock_host):
        env = {**clean_env, "MFGI_STYLE": "9"}
        result = CliRunner().invoke(cli, ["--dry-run"], env=env)
        assert result.exit_code == 2
        assert "Invalid style '9'" in result.output
        assert mock_host == []

    def test_invalid_log_size(self, clean_env, mock_host):
        env = {**clean_env, "LOG_MAX_SIZE": "huge"}
        assert CliRunner().invoke(cli, ["--dry-run"], env=env).exit_code == 2


class TestExitCodes:
    def test_precondition_failure(self, clean_env, monkeypatch):
        def fail(runner):
            raise PreconditionError("Please run as root: sudo mfgi")

        monkeypatch.setattr(main, "run_preflight", fail)
        result = CliRunner().invoke(cli, ["--dry-run", "--non-interactive"], env=clean_env)
        assert result.exit_code == 1
        assert "Please run as root" in result.output

    def test_sigint(self, clean_env, monkeypatch):
        def interrupt(runner):
            raise KeyboardInterrupt

        monkeypatch.setattr(main, "run_preflight", interrupt)
        result = CliRunner().invoke(cli, ["--dry-run"], env=clean_env)
        assert result.exit_code == 130

    def test_bad_catalog(self, clean_env, mock_host, tmp_path):
        env = {**clean_env, "MFGI_CATALOG": str(tmp_path / "missing.yml")}
        result = CliRunner().invoke(cli, ["--dry-run"], env=env)
        assert result.exit_code == 1
        assert "Catalog file not found" in result.output


# ── Full dry run ─────────────────────────────────────────────────────


class TestDryRunCommand:
    def test_completes_without_mutation(self, clean_env, mock_host, tmp_path):
        result = CliRunner().invoke(
            cli,
            ["--dry-run", "--scope", "system", "--style", "1", "--hide-grub", "no"],
            env=clean_env,
        )
        assert result.exit_code == 0, result.output
        assert "Installation Summary:" in result.output
        assert "installation completed" in result.output
        assert "GRUB: not changed" in result.output
        runner = mock_host[0]
        assert runner.dry_run
        assert not runner.called("dnf", "-y")
        assert not (tmp_path / "mfgi-setup.log").exists()


# ── Real runs with scripted steps ────────────────────────────────────


NON_INTERACTIVE = ["--non-interactive", "--scope", "system", "--style", "1"]


class TestInstallOutcomes:
    def test_recorded_failure_still_exits_zero(self, clean_env, mock_host, install_steps, tmp_path):
        install_steps(
            Step("install_base_packages", "Base packages", _changes),
            Step("apply_extension_style", "Extensions", _fails),
        )
        result = CliRunner().invoke(cli, NON_INTERACTIVE, env=clean_env)

        assert result.exit_code == 0, result.output
        assert "mfgi v18 installation completed with 1 failure(s)." in result.output
        assert "Extension: could not install foo" in result.output
        log = (tmp_path / "mfgi-setup.log").read_text()
        assert "Exit status: success" in log

    def test_fatal_error_exits_one(self, clean_env, mock_host, install_steps, tmp_path):
        def fatal(ctx):
            raise FatalError("temp area vanished")

        install_steps(Step("install_base_packages", "Base packages", fatal))
        result = CliRunner().invoke(cli, NON_INTERACTIVE, env=clean_env)

        assert result.exit_code == 1
        assert "Unexpected error: temp area vanished" in result.output
        assert "Exit status: error" in (tmp_path / "mfgi-setup.log").read_text()

    def test_sigterm_exits_143(self, clean_env, mock_host, install_steps):
        previous = signal.getsignal(signal.SIGTERM)
        seen = []

        def terminated(ctx):
            os.kill(os.getpid(), signal.SIGTERM)
            seen.append("after kill")
            return True

        install_steps(Step("install_base_packages", "Base packages", terminated))
        result = CliRunner().invoke(cli, NON_INTERACTIVE, env=clean_env)

        assert result.exit_code == 143
        assert "Terminated (SIGTERM)" in result.output
        assert seen == []
        assert signal.getsignal(signal.SIGTERM) == previous

    def test_declined_confirmation_exits_zero(self, clean_env, mock_host, install_steps, monkeypatch):
        calls = install_steps(Step("install_base_packages", "Base packages", _changes))
        monkeypatch.setattr(main, "is_interactive", lambda *args: True)

        # Five questions take their defaults, then the summary is declined.
        result = CliRunner().invoke(cli, [], env=clean_env, input="\n\n\n\n\nn\n")

        assert result.exit_code == 0, result.output
        assert "Configuration Summary:" in result.output
        assert "Installation cancelled by user." in result.output
        assert calls == []
        assert mock_host[0].commands == []
