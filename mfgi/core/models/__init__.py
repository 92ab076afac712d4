"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from mfgi.core.models import Preferences, TargetUser, ResultEntry, CommandResult
"""

from mfgi.core.models.catalog import Catalog, FlatpakSpec, GrubSpec, StyleSpec, WallpaperSpec
from mfgi.core.models.command import CommandResult
from mfgi.core.models.identity import TargetUser
from mfgi.core.models.preferences import STYLE_NAMES, Preferences
from mfgi.core.models.result import RESULT_STATUSES, ResultEntry

__all__ = [
    # catalog.py
    "Catalog",
    "FlatpakSpec",
    "GrubSpec",
    "StyleSpec",
    "WallpaperSpec",
    # command.py
    "CommandResult",
    # identity.py
    "TargetUser",
    # preferences.py
    "Preferences",
    "STYLE_NAMES",
    # result.py
    "RESULT_STATUSES",
    "ResultEntry",
]
