"""
Catalog model — the data the pipeline installs.

Packages, apps and extensions are data, not logic. They live in
``mfgi/core/data/catalog.yml`` and are validated into this model by
``mfgi.core.config.loader.load_catalog``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StyleSpec(BaseModel):
    """Window-button layout and extensions for one desktop style."""

    name: str
    button_layout: str | None = None   # None = reset to the GNOME default
    extensions: list[str] = Field(default_factory=list)


class FlatpakSpec(BaseModel):
    remote_name: str = "flathub"
    remote_url: str = "https://flathub.org/repo/flathub.flatpakrepo"
    fedora_remotes: list[str] = Field(default_factory=list)
    fedora_registry_pattern: str = "registry.fedoraproject.org"
    fedora_services: list[str] = Field(default_factory=list)
    apps: list[str] = Field(default_factory=list)


class WallpaperSpec(BaseModel):
    directory: str = "/usr/share/backgrounds/mfgi"
    light_url: str = ""
    dark_url: str = ""
    picture_options: str = "zoom"


class GrubSpec(BaseModel):
    defaults_file: str = "/etc/default/grub"
    config_output: str = "/boot/grub2/grub.cfg"
    efi_shim: str = "/boot/efi/EFI/fedora/grub.cfg"
    settings: dict[str, str] = Field(default_factory=dict)


class Catalog(BaseModel):
    """Everything the installer knows how to install or configure."""

    base_packages: list[str] = Field(default_factory=list)
    unwanted_packages: list[str] = Field(default_factory=list)
    greeters: list[str] = Field(default_factory=lambda: ["gdm", "sddm", "lightdm"])
    default_button_layout: str = "appmenu:close"
    flatpak: FlatpakSpec = Field(default_factory=FlatpakSpec)
    styles: dict[int, StyleSpec] = Field(default_factory=dict)
    wallpapers: WallpaperSpec = Field(default_factory=WallpaperSpec)
    grub: GrubSpec = Field(default_factory=GrubSpec)
    services: list[str] = Field(default_factory=list)
    default_target: str = "graphical.target"

    def style(self, number: int) -> StyleSpec | None:
        return self.styles.get(number)
