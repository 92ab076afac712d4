"""
Steps 7-8: system services, default target and the GRUB menu.
"""

from __future__ import annotations

import logging
from pathlib import Path

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.persistence.safe_edit import apply_settings, settings_present

logger = logging.getLogger(__name__)

EFI_FIRMWARE_DIR = Path("/sys/firmware/efi")


# ── Step 7: services ───────────────────────────────────────────


def _unit_exists(ctx: StepContext, unit: str) -> bool:
    result = ctx.runner.query(["systemctl", "list-unit-files", "--type=service", "--no-legend", unit])
    return result.ok and any(line.split()[0] == unit for line in result.lines)


def _services_pending(ctx: StepContext) -> list[str]:
    return [
        unit
        for unit in ctx.catalog.services
        if _unit_exists(ctx, unit)
        and ctx.runner.query(["systemctl", "is-enabled", unit]).stdout.strip() != "enabled"
    ]


def _default_target(ctx: StepContext) -> str:
    return ctx.runner.query(["systemctl", "get-default"]).stdout.strip()


def enable_services(ctx: StepContext) -> bool:
    ctx.progress("Enabling system services and graphical target...")
    target = ctx.catalog.default_target
    pending = _services_pending(ctx)
    target_ok = _default_target(ctx) == target

    if ctx.dry_run:
        if pending or not target_ok:
            ctx.ledger.changed("Services: would be enabled")
        else:
            ctx.ledger.skipped("Services: already enabled")
        return True

    ok = True
    for unit in ctx.catalog.services:
        if unit not in pending:
            if _unit_exists(ctx, unit):
                ctx.ledger.skipped(f"Service: {unit} already enabled")
            continue
        result = ctx.root(["systemctl", "enable", "--now", unit])
        if result.ok:
            ctx.ledger.changed(f"Service: enabled {unit}")
        else:
            ctx.ledger.failed(f"Service: could not enable {unit}")
            ok = False

    if target_ok:
        ctx.ledger.skipped(f"System target: already '{target}'")
        return ok

    result = ctx.root(["systemctl", "set-default", target])
    if result.failed:
        ctx.ledger.failed(f"System target: could not set '{target}'")
        return False
    ctx.ledger.changed(f"System target: set to '{target}'")
    return ok


# ── Step 8: GRUB ───────────────────────────────────────────────


def _config_stale(defaults: Path, output: Path) -> bool:
    """True when the generated config predates the defaults file."""
    try:
        return output.stat().st_mtime < defaults.stat().st_mtime
    except OSError:
        return True


def configure_grub(ctx: StepContext) -> bool:
    if not ctx.preferences.hide_grub:
        ctx.ledger.skipped("GRUB: not changed")
        return True

    ctx.progress("Configuring GRUB to hide boot menu...")
    spec = ctx.catalog.grub
    defaults, output = Path(spec.defaults_file), Path(spec.config_output)
    already = settings_present(defaults, spec.settings)

    if ctx.dry_run:
        if already:
            ctx.ledger.skipped("GRUB: boot menu already hidden")
        else:
            ctx.ledger.changed("GRUB: would hide boot menu")
        return True

    if already and not _config_stale(defaults, output):
        ctx.ledger.skipped("GRUB: boot menu already hidden")
        return True

    if not already:
        if not ctx.mutator.edit(defaults, apply_settings, spec.settings):
            ctx.ledger.failed(f"GRUB: failed to edit {defaults}")
            return False
        logger.info("GRUB default file updated: %s", defaults)

    result = ctx.root(["grub2-mkconfig", "-o", str(output)])
    if result.failed:
        logger.warning("grub2-mkconfig failed (%s)", result.error)
        ctx.ledger.failed("GRUB: configuration update failed")
        return False
    logger.info("GRUB configuration updated: %s", output)

    if EFI_FIRMWARE_DIR.is_dir():
        shim = Path(spec.efi_shim)
        if shim.is_file():
            logger.info("EFI shim detected at %s (chains to %s)", shim, output)
        else:
            logger.info("EFI shim not found at %s; it may be created on next boot", shim)

    ctx.ledger.changed("GRUB: hidden boot menu configured")
    return True
