"""
Static data shipped with the installer.

``CATALOG_PATH`` points at the bundled catalog; load it through
``mfgi.core.config.loader.load_catalog`` which validates it.
"""

from __future__ import annotations

from pathlib import Path

DATA_DIR = Path(__file__).parent
CATALOG_PATH = DATA_DIR / "catalog.yml"
