"""
mfgi — Minimal Fedora GNOME Install, CLI entrypoint.

Usage:
    sudo mfgi
    sudo mfgi --scope user --install-apps yes --style 2
    sudo python -m mfgi.main --dry-run --non-interactive

Exit codes:
    0    installation ran (also with recorded failures) or was declined
    1    precondition or unexpected error
    2    invalid flag or MFGI_* override
    130  interrupted (SIGINT)
    143  terminated (SIGTERM)
"""

from __future__ import annotations

import logging
import os
import sys

import click

from mfgi import __version__
from mfgi.adapters.shell.command import CommandRunner
from mfgi.core.config.loader import ConfigError, load_catalog
from mfgi.core.config.preferences import is_interactive, resolve_preferences, validate_overrides
from mfgi.core.config.settings import load_settings
from mfgi.core.engine.ledger import ResultLedger
from mfgi.core.errors import (
    InstallCancelled,
    InstallInterrupted,
    PreconditionError,
    PreferenceError,
)
from mfgi.core.observability.logging_config import resolve_level, setup_logging
from mfgi.core.use_cases.install import run_install, terminate_as_exception
from mfgi.core.use_cases.preflight import run_preflight
from mfgi.ui.cli.output import Console
from mfgi.ui.cli.prompts import ClickPrompter

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_YES_NO = click.Choice(["yes", "no"], case_sensitive=False)

EXIT_FAILURE = 1
EXIT_SIGINT = 130


@click.command(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "-v", "--version", prog_name="mfgi", message="%(prog)s %(version)s")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without making changes.")
@click.option(
    "--scope", "-s",
    type=click.Choice(["system", "user"], case_sensitive=False),
    default=None,
    help="Flatpak installation scope (env: MFGI_FORCE_SCOPE).",
)
@click.option("--install-apps", "-a", type=_YES_NO, default=None,
              help="Install the curated Flatpak apps (env: MFGI_INSTALL_APPS).")
@click.option("--install-wallpapers", "-w", type=_YES_NO, default=None,
              help="Install the custom wallpapers (env: MFGI_INSTALL_WALLPAPERS).")
@click.option("--style", "-t", type=click.Choice(["1", "2", "3"]), default=None,
              help="1=GNOME Default, 2=Windows style, 3=macOS style (env: MFGI_STYLE).")
@click.option("--hide-grub", "-g", type=_YES_NO, default=None,
              help="Hide the GRUB menu and boot straight to GNOME (env: MFGI_SKIP_GRUB).")
@click.option("--non-interactive", is_flag=True, envvar="MFGI_NON_INTERACTIVE",
              help="Never prompt; use flags, MFGI_* variables and defaults.")
@click.option("--verbose", is_flag=True, help="Enable verbose output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    dry_run: bool,
    scope: str | None,
    install_apps: str | None,
    install_wallpapers: str | None,
    style: str | None,
    hide_grub: str | None,
    non_interactive: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Minimal Fedora GNOME Install — turn a minimal Fedora into a GNOME desktop.

    Without options on a terminal, the installer asks its questions
    interactively. Any preference option switches to non-interactive
    mode; unset preferences then come from MFGI_* variables or defaults.

    \b
    Environment:
      LOG_FILE           session log (default: /var/log/mfgi-setup.log)
      LOG_MAX_SIZE       rotate above this many bytes (default: 10 MiB)
      LOG_KEEP_ROTATED   rotated logs to keep (default: 3)
      NO_COLOR, NO_EMOJI=1, DEBUG=1, MFGI_LOG_LEVEL
    """
    env = os.environ
    flags = {
        "scope": scope,
        "install_apps": install_apps,
        "install_wallpapers": install_wallpapers,
        "style": style,
        "hide_grub": hide_grub,
    }

    # ── Usage validation (before any side effect) ───────────────
    try:
        settings = load_settings(env)
        validate_overrides(flags, env)
    except PreferenceError as e:
        raise click.UsageError(str(e)) from e

    setup_logging(resolve_level(debug, verbose, settings.debug, settings.log_level))
    console = Console(no_color=settings.no_color, no_emoji=settings.no_emoji)
    runner = CommandRunner(dry_run=dry_run)

    try:
        _run(console, runner, settings, flags, env, dry_run, non_interactive)
    except KeyboardInterrupt:
        console.warning("Interrupted (SIGINT)")
        sys.exit(EXIT_SIGINT)
    except InstallInterrupted as e:
        console.warning(str(e))
        sys.exit(128 + e.signum)


def _run(console, runner, settings, flags, env, dry_run, non_interactive) -> None:
    try:
        catalog = load_catalog(settings.catalog_path)
        run_preflight(runner)
    except (ConfigError, PreconditionError) as e:
        console.fail(str(e))
        sys.exit(EXIT_FAILURE)

    interactive = is_interactive(flags, sys.stdin.isatty(), non_interactive)
    prompter = ClickPrompter(console)
    if interactive:
        console.headline("Minimal Fedora GNOME Install")
        console.plain()
        console.headline("Configuration Questions:")
        console.plain("Please answer the following questions before installation begins.")
        console.plain()

    try:
        preferences = resolve_preferences(
            flags, env, interactive=interactive, prompter=prompter, dry_run=dry_run
        )
    except InstallCancelled as e:
        console.warning(str(e))
        return

    ledger = ResultLedger(reporter=console.report)
    try:
        with terminate_as_exception():
            result = run_install(
                preferences,
                settings,
                catalog,
                runner,
                ledger=ledger,
                env=env,
                args=sys.argv[1:],
                progress=console.subhead,
                on_summary=console.summary,
            )
    except (KeyboardInterrupt, InstallInterrupted):
        raise
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        console.fail(f"Unexpected error: {e}")
        sys.exit(EXIT_FAILURE)

    console.final(ledger, str(result.log_path) if result.log_path else None)

    if preferences.interactive and not preferences.dry_run:
        console.plain()
        if prompter.ask_yesno("Do you wish to reboot the system now?", True):
            console.emph("Rebooting now... See you on the other side!")
            runner.run(["systemctl", "reboot"])
        else:
            console.next_steps()
            console.ok("Exiting. You can now safely close this terminal.")


if __name__ == "__main__":
    cli()
