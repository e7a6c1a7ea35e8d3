"""Helpers for deriving this instance's address identifier.

The identifier is always passed explicitly into the registration call; these
helpers only build or validate it from values the caller already has
(a configured origin, a listen port, the machine's hostname).
"""

from __future__ import annotations

import socket
from typing import Any

import httpx
import structlog

from lbregister.models import RegistrationVariant

logger = structlog.get_logger(__name__)

MAX_PORT = 65535


def normalize_origin(value: str) -> str:
    """Reduce a URL to its origin (``scheme://host[:port]``).

    Returns ``""`` for empty input, unparseable URLs and non-http(s) schemes.
    Default ports are dropped, as a browser does.
    """
    if not value or not value.strip():
        return ""
    try:
        url = httpx.URL(value.strip())
    except httpx.InvalidURL:
        return ""
    if url.scheme not in ("http", "https") or not url.host:
        return ""

    host = url.host
    if ":" in host:
        host = f"[{host}]"
    origin = f"{url.scheme}://{host}"
    if url.port is not None:
        origin += f":{url.port}"
    return origin


def port_from_origin(origin: str) -> int:
    """Explicit port of an origin, or 0 when none is given."""
    normalized = normalize_origin(origin)
    if not normalized:
        return 0
    return httpx.URL(normalized).port or 0


def build_origin(host: str, port: int, scheme: str = "http") -> str:
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return normalize_origin(f"{scheme}://{host}:{port}")


def detect_local_origin(port: int, scheme: str = "http") -> str:
    """Build the origin other machines should use to reach this instance."""
    # Hostname resolution first, loopback if that fails
    try:
        hostname = socket.gethostname()
        ip = socket.gethostbyname(hostname)
    except OSError as e:
        logger.warning("local_address_lookup_failed", error=str(e))
        ip = "127.0.0.1"
    return build_origin(ip, port, scheme)


def is_valid_identifier(variant: RegistrationVariant, value: Any) -> bool:
    """Check the identifier is usable for ``variant``.

    Origin: a non-empty string. Port: a non-zero integer in the TCP range.
    """
    if variant == RegistrationVariant.ORIGIN:
        return isinstance(value, str) and bool(value.strip())
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 < value <= MAX_PORT
