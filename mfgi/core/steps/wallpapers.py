"""
Step 5: wallpapers.

Files land in a system directory (``/usr/share/backgrounds/mfgi`` by
default). Sources are tried in order: base64 payloads from the
environment, then an HTTPS download. When only one variant can be
obtained it is used for both light and dark.

The desktop user's gsettings are pointed at the files; optionally a
dconf vendor default makes them the default for every new user.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.persistence.safe_edit import ensure_line
from mfgi.core.services import gsettings_ops, wallpaper_ops

logger = logging.getLogger(__name__)

BACKGROUND = "org.gnome.desktop.background"
SCREENSAVER = "org.gnome.desktop.screensaver"

DCONF_PROFILE = Path("/etc/dconf/profile/user")
DCONF_DB_DIR = Path("/etc/dconf/db/local.d")
DCONF_KEYFILE = "30-mfgi-wallpaper"


def _paths(ctx: StepContext) -> tuple[Path, Path, Path]:
    directory = ctx.settings.wall_dir or Path(ctx.catalog.wallpapers.directory)
    return directory, directory / "light.png", directory / "dark.png"


def _desired_keys(ctx: StepContext, light: Path, dark: Path) -> list[tuple[str, str, str]]:
    return [
        (BACKGROUND, "picture-uri", light.as_uri()),
        (BACKGROUND, "picture-uri-dark", dark.as_uri()),
        (BACKGROUND, "picture-options", ctx.catalog.wallpapers.picture_options),
        (SCREENSAVER, "picture-uri", dark.as_uri()),
    ]


def _vendor_keyfile(ctx: StepContext, light: Path, dark: Path) -> str:
    options = ctx.catalog.wallpapers.picture_options
    return (
        "[org/gnome/desktop/background]\n"
        f"picture-uri='{light.as_uri()}'\n"
        f"picture-uri-dark='{dark.as_uri()}'\n"
        f"picture-options='{options}'\n"
        "\n"
        "[org/gnome/desktop/screensaver]\n"
        f"picture-uri='{dark.as_uri()}'\n"
    )


def _vendor_pending(ctx: StepContext, light: Path, dark: Path) -> bool:
    if not ctx.settings.wall_vendor_defaults:
        return False
    keyfile = DCONF_DB_DIR / DCONF_KEYFILE
    try:
        current = keyfile.read_text(encoding="utf-8")
    except OSError:
        return True
    if current != _vendor_keyfile(ctx, light, dark):
        return True
    try:
        profile = DCONF_PROFILE.read_text(encoding="utf-8").splitlines()
    except OSError:
        return True
    return "system-db:local" not in (line.strip() for line in profile)


def install_wallpapers(ctx: StepContext) -> bool:
    if not ctx.preferences.install_wallpapers:
        ctx.ledger.skipped("Wallpapers: not selected")
        return True

    ctx.progress("Installing wallpapers...")
    directory, light, dark = _paths(ctx)
    user = ctx.desktop_user

    files_ready = wallpaper_ops.is_png(light) and wallpaper_ops.is_png(dark)
    pending_keys = []
    if user is not None:
        pending_keys = [
            (schema, key, value)
            for schema, key, value in _desired_keys(ctx, light, dark)
            if not gsettings_ops.is_set_to(ctx, schema, key, value)
        ]
    vendor_pending = _vendor_pending(ctx, light, dark)

    if ctx.dry_run:
        if files_ready and not pending_keys and not vendor_pending:
            ctx.ledger.skipped("Wallpapers: already installed and applied")
        else:
            ctx.ledger.changed(f"Wallpapers: would be installed to {directory}")
        return True

    if files_ready:
        ctx.ledger.skipped(f"Wallpapers: already present in {directory}")
    elif _obtain_files(ctx, directory, light, dark):
        ctx.ledger.changed(f"Wallpapers: installed to {directory}")
    else:
        ctx.ledger.failed("Wallpapers: no wallpapers available after all attempts")
        return False

    ok = True
    if user is None:
        logger.warning("No desktop user detected; wallpapers installed system-wide only")
    elif pending_keys:
        ok = _apply_keys(ctx, pending_keys)
    else:
        ctx.ledger.skipped("Wallpapers: already applied for current user")

    if vendor_pending:
        return _write_vendor_defaults(ctx, light, dark) and ok
    if ctx.settings.wall_vendor_defaults:
        ctx.ledger.skipped("Wallpapers: dconf vendor defaults already set")
    return ok


def _obtain_files(ctx: StepContext, directory: Path, light: Path, dark: Path) -> bool:
    try:
        directory.mkdir(parents=True, exist_ok=True)
        directory.chmod(0o755)
    except OSError as e:
        logger.error("Cannot create wallpaper directory %s: %s", directory, e)
        return False

    sources = [
        (light, ctx.settings.wall_light_b64, ctx.catalog.wallpapers.light_url),
        (dark, ctx.settings.wall_dark_b64, ctx.catalog.wallpapers.dark_url),
    ]
    for dest, payload, url in sources:
        if wallpaper_ops.is_png(dest):
            continue
        if payload and wallpaper_ops.write_from_base64(payload, dest):
            logger.info("Wallpaper %s written from embedded data", dest.name)
            continue
        if url and ctx.network_ready() and wallpaper_ops.download(url, dest):
            logger.info("Wallpaper %s downloaded", dest.name)

    have_light, have_dark = wallpaper_ops.is_png(light), wallpaper_ops.is_png(dark)
    if have_light and not have_dark:
        have_dark = wallpaper_ops.copy_variant(light, dark)
    elif have_dark and not have_light:
        have_light = wallpaper_ops.copy_variant(dark, light)
    return have_light and have_dark


def _apply_keys(ctx: StepContext, keys: list[tuple[str, str, str]]) -> bool:
    ok = True
    for schema, key, value in keys:
        if gsettings_ops.set_string(ctx, schema, key, value).failed:
            ctx.ledger.failed(f"Wallpapers: could not set {schema} {key}")
            ok = False
    if ok:
        ctx.ledger.changed("Wallpapers: applied for current user")
    return ok


def _write_vendor_defaults(ctx: StepContext, light: Path, dark: Path) -> bool:
    keyfile = DCONF_DB_DIR / DCONF_KEYFILE
    try:
        DCONF_DB_DIR.mkdir(parents=True, exist_ok=True)
        keyfile.write_text(_vendor_keyfile(ctx, light, dark), encoding="utf-8")
        keyfile.chmod(0o644)
        DCONF_PROFILE.parent.mkdir(parents=True, exist_ok=True)
        if DCONF_PROFILE.exists():
            profile_ok = ctx.mutator.edit(DCONF_PROFILE, ensure_line, "system-db:local")
        else:
            DCONF_PROFILE.write_text("user-db:user\nsystem-db:local\n", encoding="utf-8")
            profile_ok = True
    except OSError as e:
        ctx.ledger.failed(f"Wallpapers: dconf vendor defaults not written ({e})")
        return False

    if not profile_ok:
        ctx.ledger.failed(f"Wallpapers: could not edit {DCONF_PROFILE}")
        return False

    result = ctx.root(["dconf", "update"])
    if result.failed:
        logger.warning("dconf update failed (%s)", result.error)
    ctx.ledger.changed("Wallpapers: dconf vendor defaults updated")
    return True
