"""
Step 6: desktop style (window buttons and GNOME Shell extensions).

Extensions are installed with ``gext`` (gnome-extensions-cli) into
the user's home; ``gext`` itself is installed for the user via pipx,
falling back to ``pip --user``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.models.catalog import StyleSpec
from mfgi.core.models.identity import TargetUser
from mfgi.core.services import gsettings_ops

logger = logging.getLogger(__name__)

GEXT_PACKAGE = "gnome-extensions-cli"
SYSTEM_EXTENSIONS_DIR = Path("/usr/share/gnome-shell/extensions")


def _user_extensions_dir(user: TargetUser) -> Path:
    return Path(user.home) / ".local" / "share" / "gnome-shell" / "extensions"


def _gext_path(user: TargetUser) -> Path:
    return Path(user.home) / ".local" / "bin" / "gext"


def _user_path(user: TargetUser) -> str:
    return f"PATH={user.home}/.local/bin:/usr/local/bin:/usr/bin:/bin"


def _extension_installed(user: TargetUser, uuid: str) -> bool:
    return (_user_extensions_dir(user) / uuid).is_dir() or (SYSTEM_EXTENSIONS_DIR / uuid).is_dir()


def _layout_pending(ctx: StepContext, style: StyleSpec) -> bool:
    target = style.button_layout or ctx.catalog.default_button_layout
    return not gsettings_ops.is_set_to(ctx, gsettings_ops.WM_PREFERENCES, "button-layout", target)


def apply_extension_style(ctx: StepContext) -> bool:
    user = ctx.desktop_user
    if user is None:
        logger.warning("No non-root user found. Skipping extension style setup.")
        ctx.ledger.skipped("Extensions: no user found")
        return True

    style = ctx.catalog.style(ctx.preferences.style)
    if style is None:
        logger.warning("Unknown style '%s'; leaving default.", ctx.preferences.style)
        ctx.ledger.skipped("Extensions: unknown style")
        return True

    ctx.progress(f"Applying {style.name}...")
    layout_pending = _layout_pending(ctx, style)
    enabled = gsettings_ops.enabled_extensions(ctx)
    to_install = [u for u in style.extensions if not _extension_installed(user, u)]
    to_enable = [u for u in style.extensions if u not in enabled]

    if ctx.dry_run:
        if layout_pending or to_install or to_enable:
            ctx.ledger.changed(f"Extensions: would apply {style.name}")
        else:
            ctx.ledger.skipped(f"Extensions: {style.name} already applied")
        return True

    ok = _apply_layout(ctx, style, layout_pending)

    if not style.extensions:
        return ok

    if to_install:
        if not ensure_gext(ctx, user):
            ctx.ledger.failed("Extensions: gext installation failed")
            return False
    elif _gext_available(ctx, user):
        ctx.ledger.skipped("gext: already available")

    for uuid in style.extensions:
        if uuid not in to_install:
            ctx.ledger.skipped(f"Extension: {uuid} already installed")
            continue
        result = ctx.as_user(["env", _user_path(user), "gext", "install", uuid])
        if result.ok:
            ctx.ledger.changed(f"Extension: installed {uuid}")
        else:
            ctx.ledger.failed(f"Extension: could not install {uuid}")
            ok = False

    for uuid in style.extensions:
        if uuid not in to_enable:
            ctx.ledger.skipped(f"Extension: {uuid} already enabled")
            continue
        if _enable(ctx, uuid):
            ctx.ledger.changed(f"Extension: enabled {uuid}")
        else:
            ctx.ledger.failed(f"Extension: could not enable {uuid}")
            ok = False

    return ok


def _apply_layout(ctx: StepContext, style: StyleSpec, pending: bool) -> bool:
    schema, key = gsettings_ops.WM_PREFERENCES, "button-layout"
    if not pending:
        ctx.ledger.skipped(f"Window buttons: already {style.name}")
        return True

    if style.button_layout is None:
        result = gsettings_ops.reset(ctx, schema, key)
        success, failure = "Window buttons: reset to GNOME default", "Window buttons: could not be reset"
    else:
        result = gsettings_ops.set_string(ctx, schema, key, style.button_layout)
        success, failure = f"Window buttons: {style.name}", "Window buttons: could not be set"

    if result.failed:
        ctx.ledger.failed(failure)
        return False
    ctx.ledger.changed(success)
    return True


def _enable(ctx: StepContext, uuid: str) -> bool:
    """Enable through gnome-extensions; fall back to the gsettings list.

    A freshly installed extension is unknown to a running shell until
    it reloads, so ``gnome-extensions enable`` can fail where writing
    the list still takes effect on next login.
    """
    if ctx.session(["gnome-extensions", "enable", uuid]).ok:
        return True
    enabled = gsettings_ops.enabled_extensions(ctx)
    if uuid in enabled:
        return True
    value = gsettings_ops.format_string_list([*enabled, uuid])
    return gsettings_ops.set_raw(ctx, gsettings_ops.SHELL, "enabled-extensions", value).ok


def ensure_gext(ctx: StepContext, user: TargetUser) -> bool:
    """Make ``gext`` available to ``user``."""
    if _gext_available(ctx, user):
        ctx.ledger.skipped("gext: already available")
        return True

    if not ctx.runner.has("pipx"):
        logger.info("pipx not found, installing it now...")
        ctx.root(["dnf", "-y", "install", "pipx"])

    if ctx.as_user(["env", _user_path(user), "pipx", "install", GEXT_PACKAGE]).ok and _gext_available(ctx, user):
        ctx.ledger.changed("gext: installed via pipx")
        return True

    logger.info("pipx failed, trying pip --user as fallback...")
    result = ctx.as_user([
        "python3", "-m", "pip", "install", "--user", "--break-system-packages",
        "--disable-pip-version-check", "--quiet", GEXT_PACKAGE,
    ])
    if result.ok and _gext_available(ctx, user):
        ctx.ledger.changed("gext: installed via pip --user")
        return True

    logger.warning("Could not install or find %s for %s", GEXT_PACKAGE, user.username)
    return False


def _gext_available(ctx: StepContext, user: TargetUser) -> bool:
    gext = _gext_path(user)
    return (gext.is_file() and os.access(gext, os.X_OK)) or ctx.runner.has("gext")
