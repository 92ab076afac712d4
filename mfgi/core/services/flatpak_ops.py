"""
Flatpak operations — remotes, services and app installs per scope.

System-scope commands run as root. User-scope commands run as the
desktop user through the session broker: ``flatpak --user`` needs the
user's D-Bus session for portal and permission store access.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.models.catalog import FlatpakSpec
from mfgi.core.models.command import CommandResult

logger = logging.getLogger(__name__)


def _flatpak(ctx: StepContext, scope: str, args: Sequence[str], *, mutating: bool = True) -> CommandResult:
    argv = ["flatpak", *args]
    if scope == "system":
        return ctx.root(argv, mutating=mutating)
    return ctx.session(argv, mutating=mutating)


# ── Remotes ─────────────────────────────────────────────────────


def list_remotes(ctx: StepContext, scope: str) -> list[tuple[str, str]]:
    """``(name, url)`` for every remote in ``scope``, disabled ones included."""
    result = _flatpak(
        ctx, scope,
        ["remotes", f"--{scope}", "--show-disabled", "--columns=name,url"],
        mutating=False,
    )
    if result.failed:
        return []
    remotes = []
    for line in result.lines:
        fields = line.split()
        if not fields or fields[0] == "Name":
            continue
        remotes.append((fields[0], fields[1] if len(fields) > 1 else ""))
    return remotes


def has_remote(ctx: StepContext, scope: str, name: str) -> bool:
    return any(remote == name for remote, _url in list_remotes(ctx, scope))


def fedora_remotes(ctx: StepContext, scope: str, spec: FlatpakSpec) -> list[str]:
    """Fedora remotes present in ``scope``, matched by name or registry URL."""
    found = []
    for name, url in list_remotes(ctx, scope):
        if name in spec.fedora_remotes or spec.fedora_registry_pattern in url:
            found.append(name)
    return found


def remove_remote(ctx: StepContext, scope: str, name: str) -> bool:
    """Disable then delete a remote. Deleting may fail while apps use it."""
    disabled = _flatpak(
        ctx, scope,
        ["remote-modify", f"--{scope}", "--disable", "--no-enumerate", "--no-use-for-deps", name],
    )
    deleted = _flatpak(ctx, scope, ["remote-delete", f"--{scope}", "--force", name])
    if deleted.failed:
        logger.debug("Could not delete remote %s (%s): %s", name, scope, deleted.error)
    return disabled.ok or deleted.ok


def add_flathub(ctx: StepContext, scope: str, spec: FlatpakSpec, subset: str = "full") -> CommandResult:
    args = ["remote-add", f"--{scope}", "--if-not-exists"]
    if subset == "verified":
        args.append("--subset=verified")
    return _flatpak(ctx, scope, [*args, spec.remote_name, spec.remote_url])


def refresh_appstream(ctx: StepContext, scope: str, remote: str) -> None:
    result = _flatpak(ctx, scope, ["update", f"--{scope}", "--appstream", "--noninteractive", remote])
    if result.failed:
        logger.warning("Appstream refresh for %s failed (%s)", remote, result.error)


# ── Fedora services ─────────────────────────────────────────────


def mask_states(ctx: StepContext, units: Sequence[str]) -> dict[str, bool]:
    """Map each unit that exists on the host to whether it is masked."""
    states = {}
    for unit in units:
        if ctx.runner.query(["systemctl", "cat", unit]).failed:
            continue
        state = ctx.runner.query(["systemctl", "is-enabled", unit]).stdout.strip()
        states[unit] = state == "masked"
    return states


def mask_service(ctx: StepContext, unit: str) -> CommandResult:
    return ctx.root(["systemctl", "mask", "--now", unit])


# ── Apps ────────────────────────────────────────────────────────


def is_app_installed(ctx: StepContext, scope: str, app_id: str) -> bool:
    return _flatpak(ctx, scope, ["info", f"--{scope}", app_id], mutating=False).ok


def install_app(ctx: StepContext, scope: str, remote: str, app_id: str) -> CommandResult:
    return _flatpak(
        ctx, scope,
        ["install", f"--{scope}", "--noninteractive", "--or-update", remote, app_id],
    )
