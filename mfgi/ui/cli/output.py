"""
Terminal output — colored status lines on stderr.

Honors ``NO_COLOR`` (any value disables styling) and ``NO_EMOJI=1``.
Everything goes to stderr so stdout stays clean for ``--version``.
"""

from __future__ import annotations

import click

from mfgi.core.engine.ledger import ResultLedger
from mfgi.core.models.result import ResultEntry

_STATUS_STYLE = {
    "changed": ("✅", "green"),
    "skipped": ("⏭️", "cyan"),
    "failed": ("❌", "red"),
}


class Console:
    """click-based writer shared by the CLI and the prompter."""

    def __init__(self, no_color: bool = False, no_emoji: bool = False):
        self.no_color = no_color
        self.no_emoji = no_emoji

    def emoji(self, symbol: str) -> str:
        return "" if self.no_emoji else symbol

    def _line(self, text: str, nl: bool = True, **style) -> None:
        click.secho(text, err=True, nl=nl, color=False if self.no_color else None, **style)

    # ── Text styles ─────────────────────────────────────────────

    def headline(self, text: str) -> None:
        self._line(text, fg="cyan", bold=True)

    def subhead(self, text: str) -> None:
        self._line(text, fg="green")

    def emph(self, text: str) -> None:
        self._line(text, fg="magenta")

    def muted(self, text: str) -> None:
        self._line(text, dim=True)

    def hint(self, text: str) -> None:
        self._line(text, fg="yellow")

    def warning(self, text: str) -> None:
        self._line(text, fg="red", bold=True)

    def plain(self, text: str = "") -> None:
        self._line(text)

    def prompt_line(self, text: str) -> None:
        self._line(text, nl=False, fg="yellow", bold=True)

    # ── Status lines ────────────────────────────────────────────

    def status(self, status: str, text: str) -> None:
        symbol, color = _STATUS_STYLE.get(status, ("", "white"))
        prefix = self.emoji(symbol)
        self._line(f"{prefix} {text}" if prefix else text, fg=color)

    def ok(self, text: str) -> None:
        self.status("changed", text)

    def fail(self, text: str) -> None:
        self.status("failed", text)

    def report(self, entry: ResultEntry) -> None:
        """Ledger reporter: echo each entry as it is recorded."""
        self.status(entry.status, entry.message)

    # ── Run framing ─────────────────────────────────────────────

    def summary(self, ledger: ResultLedger) -> None:
        self.plain()
        self.headline("Installation Summary:")
        for title, messages in ledger.summarize():
            self.subhead(title)
            for message in messages:
                self.plain(f"  {message}")

    def final(self, ledger: ResultLedger, log_path: str | None = None) -> None:
        self.plain()
        if ledger.has_failures:
            self.warning(f"{ledger.final_message()} {self.emoji('🤔')}".rstrip())
            self.fail("Please review the summary and log file for details.")
        else:
            self.headline(f"{ledger.final_message()} {self.emoji('🎉')}".rstrip())
            self.ok("The system is now configured. A reboot is required to see all changes.")
        if log_path:
            self.muted(f"A full log of this session was saved to: {log_path}")

    def next_steps(self) -> None:
        self.plain()
        self.subhead("Reboot deferred. What to do next:")
        self.plain("To apply all changes, you will need to reboot manually.")
        self.emph("  Reboot command: sudo reboot")
        self.plain()
        self.muted("Some changes (like GNOME Extensions) can be activated by restarting the shell")
        self.muted("(press Alt+F2, type 'r', press Enter), but a full reboot is recommended.")
