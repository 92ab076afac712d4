"""
Steps 3-4: Flathub setup and the curated app set.

Fedora's own Flatpak remotes are removed (by name or by their
registry URL) and the services that would re-add them are masked,
so that Flathub is the single source of apps.
"""

from __future__ import annotations

import logging

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.services import flatpak_ops, package_ops

logger = logging.getLogger(__name__)


def _target_scope(ctx: StepContext) -> str | None:
    """The scope to act in, or None when user scope has no user."""
    scope = ctx.preferences.scope
    if scope == "user" and ctx.desktop_user is None:
        return None
    return scope


# ── Step 3: Flatpak / Flathub ──────────────────────────────────


def configure_flatpak(ctx: StepContext) -> bool:
    ctx.progress("Configuring Flatpak and Flathub...")
    spec = ctx.catalog.flatpak
    scope = _target_scope(ctx)

    if ctx.dry_run:
        if scope is None:
            ctx.ledger.skipped("Flathub: no non-root user for user scope")
        elif ctx.runner.has("flatpak") and flatpak_ops.has_remote(ctx, scope, spec.remote_name):
            ctx.ledger.skipped(f"Flathub: already configured ({scope})")
        else:
            ctx.ledger.changed(f"Flathub: would be configured ({ctx.preferences.scope})")
        return True

    if not ctx.runner.has("flatpak"):
        result = package_ops.install(ctx.runner, ["flatpak"])
        if result.failed:
            ctx.ledger.failed(f"Flatpak: could not install flatpak ({result.error})")
            return False
        ctx.ledger.changed("dnf: installed flatpak")

    if not ctx.network_ready():
        ctx.ledger.skipped("Flathub: skipped, no network")
        return True

    _mask_fedora_services(ctx)
    _remove_fedora_remotes(ctx)

    if scope is None:
        ctx.ledger.skipped("Flathub: no non-root user for user scope")
        return True

    if flatpak_ops.has_remote(ctx, scope, spec.remote_name):
        ctx.ledger.skipped(f"Flathub: already configured ({scope})")
        return True

    result = flatpak_ops.add_flathub(ctx, scope, spec, ctx.settings.flathub_subset)
    if result.failed:
        ctx.ledger.failed(f"Flathub: could not add remote ({scope}): {result.error}")
        return False

    flatpak_ops.refresh_appstream(ctx, scope, spec.remote_name)
    ctx.ledger.changed(f"Flathub: added ({scope})")
    return True


def _mask_fedora_services(ctx: StepContext) -> None:
    for unit, masked in flatpak_ops.mask_states(ctx, ctx.catalog.flatpak.fedora_services).items():
        if masked:
            ctx.ledger.skipped(f"Service: {unit} already masked")
            continue
        result = flatpak_ops.mask_service(ctx, unit)
        if result.ok:
            ctx.ledger.changed(f"Service: masked {unit}")
        else:
            logger.warning("Could not mask %s (%s)", unit, result.error)


def _remove_fedora_remotes(ctx: StepContext) -> None:
    scopes = ["system"]
    if ctx.desktop_user is not None:
        scopes.append("user")

    for scope in scopes:
        names = flatpak_ops.fedora_remotes(ctx, scope, ctx.catalog.flatpak)
        if not names:
            ctx.ledger.skipped(f"Flatpak: no Fedora remotes ({scope})")
        for name in names:
            if flatpak_ops.remove_remote(ctx, scope, name):
                ctx.ledger.changed(f"Flatpak: removed Fedora remote {name} ({scope})")
            else:
                logger.warning("Could not remove Fedora remote %s (%s)", name, scope)


# ── Step 4: curated apps ───────────────────────────────────────


def install_curated_flatpaks(ctx: StepContext) -> bool:
    if not ctx.preferences.install_apps:
        ctx.ledger.skipped("Curated Flatpaks: not selected")
        return True

    ctx.progress("Installing curated Flatpak apps...")
    spec = ctx.catalog.flatpak
    scope = _target_scope(ctx)
    if scope is None:
        ctx.ledger.skipped("Curated Flatpaks: no non-root user for user scope")
        return True

    if ctx.dry_run:
        missing = [a for a in spec.apps if not flatpak_ops.is_app_installed(ctx, scope, a)]
        if missing:
            ctx.ledger.changed(f"Flatpak: would install {len(missing)} app(s) ({scope}): {' '.join(missing)}")
        else:
            ctx.ledger.skipped(f"Flatpak: curated apps already installed ({scope})")
        return True

    ok = True
    for app_id in spec.apps:
        if flatpak_ops.is_app_installed(ctx, scope, app_id):
            ctx.ledger.skipped(f"Flatpak: {app_id} already installed")
            continue

        result = flatpak_ops.install_app(ctx, scope, spec.remote_name, app_id)
        if result.ok:
            ctx.ledger.changed(f"Flatpak: installed {app_id} ({scope})")
        elif flatpak_ops.is_app_installed(ctx, scope, app_id):
            ctx.ledger.skipped(f"Flatpak: {app_id} present after failed install attempt")
        else:
            ctx.ledger.failed(f"Flatpak: {app_id} failed ({result.error})")
            ok = False
    return ok
