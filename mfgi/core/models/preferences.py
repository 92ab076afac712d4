"""
Preferences — the frozen configuration snapshot.

Resolved once by ``mfgi.core.config.preferences`` before any step
runs; every component afterwards reads it by reference.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Scope = Literal["system", "user"]

STYLE_NAMES: dict[int, str] = {
    1: "GNOME Default",
    2: "Windows style",
    3: "macOS style",
}


class Preferences(BaseModel):
    """Resolved installation choices for one run."""

    model_config = ConfigDict(frozen=True)

    scope: Scope = "user"
    install_apps: bool = False
    install_wallpapers: bool = False
    style: int = 1
    hide_grub: bool = False
    dry_run: bool = False
    interactive: bool = False

    @property
    def style_name(self) -> str:
        return STYLE_NAMES.get(self.style, f"style {self.style}")

    def describe(self) -> list[tuple[str, str]]:
        """Label/value pairs for the configuration summary."""
        return [
            ("Flatpak scope", "System-wide" if self.scope == "system" else "Current user only"),
            ("Install curated apps", _yes_no(self.install_apps)),
            ("Install wallpapers", _yes_no(self.install_wallpapers)),
            ("Extension style", self.style_name),
            ("Hide GRUB menu", _yes_no(self.hide_grub)),
        ]


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"
