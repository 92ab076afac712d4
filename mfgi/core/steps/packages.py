"""
Steps 1-2: base packages in, unwanted GNOME packages out.
"""

from __future__ import annotations

import logging

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.services import package_ops

logger = logging.getLogger(__name__)


def install_base_packages(ctx: StepContext) -> bool:
    ctx.progress("Installing core system packages...")

    if not ctx.dry_run:
        package_ops.refresh_metadata(ctx.runner)

    missing = package_ops.missing_packages(ctx.runner, ctx.catalog.base_packages)
    if not missing:
        ctx.ledger.skipped("dnf: base packages already installed")
        return True

    if ctx.dry_run:
        ctx.ledger.changed(f"dnf: would install {' '.join(missing)}")
        return True

    result = package_ops.install(ctx.runner, missing)
    if result.failed:
        ctx.ledger.failed(f"dnf: error installing packages ({result.error})")
        return False

    ctx.ledger.changed(f"dnf: installed {' '.join(missing)}")
    return True


def remove_unwanted_packages(ctx: StepContext) -> bool:
    ctx.progress("Removing unwanted GNOME packages...")

    present = package_ops.installed_packages(ctx.runner, ctx.catalog.unwanted_packages)
    if not present:
        ctx.ledger.skipped("Unwanted packages: none present")
        return True

    if ctx.dry_run:
        ctx.ledger.changed(f"dnf: would remove {' '.join(present)}")
        return True

    result = package_ops.remove(ctx.runner, present)
    if result.failed:
        ctx.ledger.failed(f"dnf: remove failed ({result.error})")
        return False

    ctx.ledger.changed(f"Unwanted packages: removed {' '.join(present)}")
    return True
