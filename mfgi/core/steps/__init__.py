"""
Installation steps in execution order.
"""

from __future__ import annotations

from mfgi.core.engine.pipeline import Step
from mfgi.core.steps.flatpak import configure_flatpak, install_curated_flatpaks
from mfgi.core.steps.packages import install_base_packages, remove_unwanted_packages
from mfgi.core.steps.style import apply_extension_style
from mfgi.core.steps.system import configure_grub, enable_services
from mfgi.core.steps.wallpapers import install_wallpapers


def default_steps() -> list[Step]:
    return [
        Step("install_base_packages", "Base packages", install_base_packages),
        Step("remove_unwanted_packages", "Unwanted packages", remove_unwanted_packages),
        Step("configure_flatpak", "Flatpak", configure_flatpak),
        Step("install_curated_flatpaks", "Curated Flatpaks", install_curated_flatpaks),
        Step("install_wallpapers", "Wallpapers", install_wallpapers),
        Step("apply_extension_style", "Extensions", apply_extension_style),
        Step("enable_services", "Services", enable_services),
        Step("configure_grub", "GRUB", configure_grub),
    ]


__all__ = ["default_steps"]
