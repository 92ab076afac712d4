"""
Network readiness probe.

Three checks, cheapest signal first: NetworkManager's own
connectivity wait, a DNS lookup of the GNOME extensions host, and a
single ICMP echo. Any one succeeding is enough.
"""

from __future__ import annotations

import logging
import socket

from mfgi.adapters.base import Runner

logger = logging.getLogger(__name__)

PROBE_HOST = "extensions.gnome.org"
PROBE_ADDRESS = "1.1.1.1"


def _resolves(host: str) -> bool:
    try:
        socket.getaddrinfo(host, 443)
    except (socket.gaierror, OSError):
        return False
    return True


def check_network(runner: Runner, host: str = PROBE_HOST) -> bool:
    """True when the machine appears to be online."""
    if runner.has("nm-online") and runner.query(["nm-online", "-q", "-t", "15"]).ok:
        return True

    if _resolves(host):
        return True

    if runner.has("ping") and runner.query(["ping", "-c", "1", "-W", "3", PROBE_ADDRESS]).ok:
        return True

    logger.warning("Network appears to be unavailable")
    return False
