"""
Catalog loader — reads catalog.yml into the Catalog model.

The bundled catalog lives next to the code; ``MFGI_CATALOG`` (or an
explicit path) points at an operator-supplied replacement. The YAML
is validated against the Pydantic schema before any step reads it.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from mfgi.core.data import CATALOG_PATH
from mfgi.core.errors import MfgiError
from mfgi.core.models.catalog import Catalog

logger = logging.getLogger(__name__)


class ConfigError(MfgiError):
    """Raised when the catalog is invalid or missing."""


def load_catalog(path: Path | None = None) -> Catalog:
    """Load and validate the installation catalog.

    Args:
        path: Explicit catalog path. If None, the bundled catalog is used.

    Returns:
        Validated Catalog model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = CATALOG_PATH

    if not path.is_file():
        raise ConfigError(f"Catalog file not found: {path}")

    logger.debug("Loading catalog from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        catalog = Catalog.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid catalog: {e}") from e

    logger.debug(
        "Loaded catalog: %d base packages, %d apps, %d styles",
        len(catalog.base_packages),
        len(catalog.flatpak.apps),
        len(catalog.styles),
    )
    return catalog
