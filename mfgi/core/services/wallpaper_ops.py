"""
Wallpaper sources and validation.

A wallpaper is accepted only when the file starts with the PNG
signature; anything else (an HTML error page, a truncated transfer,
bad base64) is deleted again so a later run retries it.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import shutil
import urllib.request
from pathlib import Path
from urllib.error import URLError
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

PNG_SIGNATURE = bytes.fromhex("89504e470d0a1a0a")
WALLPAPER_MODE = 0o644
DOWNLOAD_ATTEMPTS = 3


def is_png(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            return f.read(len(PNG_SIGNATURE)) == PNG_SIGNATURE
    except OSError:
        return False


def _keep_if_png(path: Path) -> bool:
    if is_png(path):
        os.chmod(path, WALLPAPER_MODE)
        return True
    logger.warning("Not a valid PNG, discarding: %s", path)
    path.unlink(missing_ok=True)
    return False


def write_from_base64(data: str, dest: Path) -> bool:
    """Decode a base64 payload into ``dest``; False when it is not a PNG."""
    try:
        raw = base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        logger.warning("Invalid base64 wallpaper for %s: %s", dest.name, e)
        return False
    dest.write_bytes(raw)
    return _keep_if_png(dest)


def download(url: str, dest: Path, timeout: int = 30) -> bool:
    """Fetch ``url`` over HTTPS into ``dest``.

    Plain HTTP and other schemes are refused.
    """
    if urlparse(url).scheme != "https":
        logger.warning("Refusing non-HTTPS wallpaper URL: %s", url)
        return False

    req = urllib.request.Request(url, headers={"User-Agent": "mfgi/18"})
    for attempt in range(1, DOWNLOAD_ATTEMPTS + 1):
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp, dest.open("wb") as out:
                shutil.copyfileobj(resp, out)
        except (URLError, OSError) as e:
            logger.debug("Download attempt %d of %s failed: %s", attempt, url, e)
            dest.unlink(missing_ok=True)
            continue
        return _keep_if_png(dest)

    logger.warning("Failed to download wallpaper: %s", url)
    return False


def copy_variant(source: Path, dest: Path) -> bool:
    """Use one variant for both light and dark when only one exists."""
    try:
        shutil.copyfile(source, dest)
    except OSError as e:
        logger.warning("Could not copy %s to %s: %s", source, dest, e)
        return False
    os.chmod(dest, WALLPAPER_MODE)
    return True
