"""
Runtime settings — environment knobs that are not preferences.

Log location and rotation, output decoration, wallpaper sources and
catalog override. Read once from the environment at startup.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from mfgi.core.errors import PreferenceError

DEFAULT_LOG_FILE = "/var/log/mfgi-setup.log"
DEFAULT_LOG_MAX_SIZE = 10 * 1024 * 1024
DEFAULT_LOG_KEEP_ROTATED = 3


class RuntimeSettings(BaseModel):
    """Process-wide settings resolved from the environment."""

    model_config = ConfigDict(frozen=True)

    log_file: Path = Path(DEFAULT_LOG_FILE)
    log_max_size: int = DEFAULT_LOG_MAX_SIZE
    log_keep_rotated: int = DEFAULT_LOG_KEEP_ROTATED
    log_level: str | None = None
    debug: bool = False
    no_color: bool = False
    no_emoji: bool = False
    catalog_path: Path | None = None
    wall_dir: Path | None = None
    wall_light_b64: str = ""
    wall_dark_b64: str = ""
    wall_vendor_defaults: bool = False
    flathub_subset: str = "full"


def load_settings(env: Mapping[str, str]) -> RuntimeSettings:
    """Build RuntimeSettings from an environment mapping.

    Raises:
        PreferenceError: For non-numeric or out-of-range numeric values.
    """
    subset = env.get("MFGI_FLATHUB_SUBSET", "full").strip().lower() or "full"
    if subset not in ("verified", "full"):
        raise PreferenceError("MFGI_FLATHUB_SUBSET", subset, ("verified", "full"))

    catalog = env.get("MFGI_CATALOG")
    wall_dir = env.get("MFGI_WALL_DIR")

    return RuntimeSettings(
        log_file=Path(env.get("LOG_FILE") or DEFAULT_LOG_FILE),
        log_max_size=_positive_int(env, "LOG_MAX_SIZE", DEFAULT_LOG_MAX_SIZE),
        log_keep_rotated=_positive_int(env, "LOG_KEEP_ROTATED", DEFAULT_LOG_KEEP_ROTATED),
        log_level=env.get("MFGI_LOG_LEVEL") or None,
        debug=env.get("DEBUG", "0") == "1",
        no_color=bool(env.get("NO_COLOR")),
        no_emoji=env.get("NO_EMOJI", "0") == "1",
        catalog_path=Path(catalog) if catalog else None,
        wall_dir=Path(wall_dir) if wall_dir else None,
        wall_light_b64=env.get("MFGI_WALL_LIGHT_B64", ""),
        wall_dark_b64=env.get("MFGI_WALL_DARK_B64", ""),
        wall_vendor_defaults=env.get("MFGI_WALL_VENDOR_DEFAULTS", "0") == "1",
        flathub_subset=subset,
    )


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise PreferenceError(name, raw, ("a positive integer",)) from None
    if value < 1:
        raise PreferenceError(name, raw, ("a positive integer",))
    return value
