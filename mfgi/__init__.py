"""mfgi — Minimal Fedora GNOME Installer."""

__version__ = "18.0.0"
