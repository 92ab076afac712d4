"""
Preference resolver — merges flags, environment and prompts.

Precedence per field:
    command-line flag  >  MFGI_* env override  >  prompted answer  >  default

Prompting happens only in interactive mode and only for fields that
have no flag and no override. Every explicit value is validated
before the first question is asked, so a bad override fails fast and
nothing runs with a partially validated snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from mfgi.core.errors import InstallCancelled, PreferenceError
from mfgi.core.models.preferences import STYLE_NAMES, Preferences

logger = logging.getLogger(__name__)

_YES = ("yes", "no")
_TRUE = ("yes", "y")
_FALSE = ("no", "n")


class Prompter(Protocol):
    """Interactive question surface (implemented by the CLI layer)."""

    def hint(self, text: str) -> None: ...

    def ask_choice(self, question: str, options: list[str], default: int) -> int: ...

    def ask_yesno(self, question: str, default: bool) -> bool: ...

    def confirm(self, preferences: Preferences) -> bool: ...


@dataclass(frozen=True)
class FieldSpec:
    """How one preference field is overridden, validated and asked."""

    name: str
    env: str
    allowed: tuple[str, ...]
    parse: Callable[[str], Any]
    ask: Callable[[Prompter], Any]


def _parse_scope(raw: str) -> str:
    value = raw.strip().lower()
    if value not in ("system", "user"):
        raise PreferenceError("scope", raw, ("system", "user"))
    return value


def _bool_parser(field: str) -> Callable[[str], bool]:
    def parse(raw: str) -> bool:
        value = raw.strip().lower()
        if value not in _TRUE + _FALSE:
            raise PreferenceError(field, raw, _YES)
        return value in _TRUE

    return parse


def _parse_style(raw: str) -> int:
    value = str(raw).strip()
    if value not in {str(n) for n in STYLE_NAMES}:
        raise PreferenceError("style", raw, tuple(str(n) for n in STYLE_NAMES))
    return int(value)


def _ask_scope(prompter: Prompter) -> str:
    prompter.hint("GNOME Extensions are always installed for the current user.")
    prompter.hint("This question is about where Flatpak applications should live.")
    choice = prompter.ask_choice(
        "How should Flatpak applications be installed?",
        [
            "System-wide (available to all users)",
            "For the current user only (recommended for single-user systems)",
        ],
        2,
    )
    return "system" if choice == 1 else "user"


def _ask_apps(prompter: Prompter) -> bool:
    prompter.hint("Install a curated set of useful GNOME and essential applications?")
    prompter.hint(
        "Includes: Calculator, Text Editor, Image Viewer, Music Player, "
        "Firefox, and Extension Manager."
    )
    return prompter.ask_yesno("Install this recommended app bundle?", False)


def _ask_wallpapers(prompter: Prompter) -> bool:
    prompter.hint("Install a custom wallpaper set that supports both light and dark modes?")
    return prompter.ask_yesno("Set up these custom wallpapers?", False)


def _ask_style(prompter: Prompter) -> int:
    return prompter.ask_choice(
        "Which style (extensions) do you want installed and enabled:",
        [
            "GNOME Default (No extensions)",
            "Windows style (Dash to Panel + ArcMenu + Tray Icons)",
            "macOS style (Dash to Dock + Tray Icons)",
        ],
        1,
    )


def _ask_grub(prompter: Prompter) -> bool:
    return prompter.ask_yesno("Do you wish to hide GRUB and boot directly to GNOME?", False)


FIELD_SPECS: tuple[FieldSpec, ...] = (
    FieldSpec("scope", "MFGI_FORCE_SCOPE", ("system", "user"), _parse_scope, _ask_scope),
    FieldSpec("install_apps", "MFGI_INSTALL_APPS", _YES, _bool_parser("install-apps"), _ask_apps),
    FieldSpec(
        "install_wallpapers",
        "MFGI_INSTALL_WALLPAPERS",
        _YES,
        _bool_parser("install-wallpapers"),
        _ask_wallpapers,
    ),
    FieldSpec("style", "MFGI_STYLE", ("1", "2", "3"), _parse_style, _ask_style),
    FieldSpec("hide_grub", "MFGI_SKIP_GRUB", _YES, _bool_parser("hide-grub"), _ask_grub),
)


def is_interactive(
    flags: Mapping[str, Any],
    stdin_isatty: bool,
    force_non_interactive: bool = False,
) -> bool:
    """Interactive only on a TTY, with no preference flags and not forced off."""
    if force_non_interactive or not stdin_isatty:
        return False
    return not any(flags.get(spec.name) is not None for spec in FIELD_SPECS)


def validate_overrides(flags: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Parse every explicitly given value (flag first, then env override).

    Returns:
        Parsed values keyed by field name; unanswered fields are absent.

    Raises:
        PreferenceError: An explicit value is outside its allowed set.
    """
    values: dict[str, Any] = {}
    for spec in FIELD_SPECS:
        raw = flags.get(spec.name)
        if raw is None:
            raw = env.get(spec.env) or None
            if raw is not None:
                logger.debug("Preference %s from %s", spec.name, spec.env)
        if raw is not None:
            values[spec.name] = spec.parse(str(raw))
    return values


def resolve_preferences(
    flags: Mapping[str, Any],
    env: Mapping[str, str],
    *,
    interactive: bool,
    prompter: Prompter | None = None,
    dry_run: bool = False,
) -> Preferences:
    """Produce the frozen configuration snapshot.

    Args:
        flags: Parsed command-line values keyed by field name (None = not given).
        env: Environment mapping (usually ``os.environ``).
        interactive: Whether unanswered fields may be prompted for.
        prompter: Question surface; required for prompting to happen.
        dry_run: Value of the dry-run flag.

    Raises:
        PreferenceError: An explicit value is outside its allowed set.
        InstallCancelled: The operator declined the summary.
    """
    values = validate_overrides(flags, env)
    unanswered = [spec for spec in FIELD_SPECS if spec.name not in values]

    can_prompt = interactive and prompter is not None
    if can_prompt:
        assert prompter is not None
        for spec in unanswered:
            values[spec.name] = spec.ask(prompter)

    preferences = Preferences(**values, dry_run=dry_run, interactive=interactive)

    if can_prompt and unanswered:
        assert prompter is not None
        if not prompter.confirm(preferences):
            raise InstallCancelled("Installation cancelled by user.")
    elif not interactive:
        logger.info("Non-interactive mode: using command-line arguments, environment and defaults")

    return preferences
