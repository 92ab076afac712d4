"""
gsettings access for the desktop user.

``gsettings get`` prints GVariant text (``'zoom'``, ``@as []``,
``['a@b', 'c@d']``); values are compared in that form so that a key
already holding the wanted value is never written again.
"""

from __future__ import annotations

import ast
import logging

from mfgi.core.engine.pipeline import StepContext
from mfgi.core.models.command import CommandResult

logger = logging.getLogger(__name__)

WM_PREFERENCES = "org.gnome.desktop.wm.preferences"
SHELL = "org.gnome.shell"


def gvariant_string(value: str) -> str:
    """Render a string the way ``gsettings get`` prints it."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def get(ctx: StepContext, schema: str, key: str) -> str | None:
    result = ctx.session(["gsettings", "get", schema, key], mutating=False)
    if result.failed:
        logger.debug("gsettings get %s %s failed: %s", schema, key, result.error)
        return None
    return result.stdout.strip()


def is_set_to(ctx: StepContext, schema: str, key: str, value: str) -> bool:
    return get(ctx, schema, key) == gvariant_string(value)


def set_string(ctx: StepContext, schema: str, key: str, value: str) -> CommandResult:
    return ctx.session(["gsettings", "set", schema, key, value])


def set_raw(ctx: StepContext, schema: str, key: str, gvariant: str) -> CommandResult:
    return ctx.session(["gsettings", "set", schema, key, gvariant])


def reset(ctx: StepContext, schema: str, key: str) -> CommandResult:
    return ctx.session(["gsettings", "reset", schema, key])


def parse_string_list(text: str | None) -> list[str]:
    """Parse an ``as`` value: ``@as []`` or ``['x', 'y']``."""
    if not text:
        return []
    text = text.strip()
    if text.startswith("@as"):
        text = text[3:].strip()
    try:
        value = ast.literal_eval(text)
    except (ValueError, SyntaxError):
        return []
    return [str(v) for v in value] if isinstance(value, (list, tuple)) else []


def format_string_list(values: list[str]) -> str:
    return "[" + ", ".join(gvariant_string(v) for v in values) + "]"


def enabled_extensions(ctx: StepContext) -> list[str]:
    return parse_string_list(get(ctx, SHELL, "enabled-extensions"))
