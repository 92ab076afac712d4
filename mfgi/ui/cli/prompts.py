"""
Interactive prompts for the installer.

Questions are asked on stderr and re-asked until the answer is
valid; an empty answer takes the default.
"""

from __future__ import annotations

import click

from mfgi.core.models.preferences import Preferences
from mfgi.ui.cli.output import Console


class ClickPrompter:
    """Implements the resolver's Prompter protocol on top of click."""

    def __init__(self, console: Console):
        self.console = console

    def hint(self, text: str) -> None:
        self.console.hint(text)

    def _read(self, text: str) -> str:
        self.console.prompt_line(text)
        return click.prompt("", default="", show_default=False, prompt_suffix="", err=True).strip()

    def ask_choice(self, question: str, options: list[str], default: int) -> int:
        while True:
            if question:
                self.console.hint(question)
            for number, option in enumerate(options, start=1):
                self.console.plain(f"  {number}. {option}")
            answer = self._read(f"Choose [1-{len(options)}] (default: {default}): ") or str(default)
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                choice = int(answer)
                self.console.plain(f"Selected: {options[choice - 1]}")
                self.console.plain()
                return choice
            self.console.warning(
                f"Invalid choice '{answer}'. Please select a number between 1 and {len(options)}."
            )
            self.console.plain()

    def ask_yesno(self, question: str, default: bool) -> bool:
        display = "Y/n" if default else "y/N"
        while True:
            answer = self._read(f"{question} [{display}]: ").lower()
            if not answer:
                answer = "yes" if default else "no"
            if answer in ("y", "yes"):
                self.console.plain("Answer: yes")
                self.console.plain()
                return True
            if answer in ("n", "no"):
                self.console.plain("Answer: no")
                self.console.plain()
                return False
            self.console.warning("Please answer 'y' (yes) or 'n' (no).")

    def confirm(self, preferences: Preferences) -> bool:
        self.console.plain()
        self.console.headline("Configuration Summary:")
        for label, value in preferences.describe():
            self.console.plain(f"• {label}: {value}")
        self.console.plain()
        proceed = self.ask_yesno("Proceed with installation using these settings?", True)
        if proceed:
            self.console.headline("Starting installation...")
            self.console.plain()
        return proceed
