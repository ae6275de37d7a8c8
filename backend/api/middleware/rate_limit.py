"""
Rate limiting using slowapi.

Limits are keyed by client IP. Checkout and reminder creation get their own
limits on top of the authentication endpoints; everything else shares the
default.

Rate Limits:
- Login: 5 per minute
- Registration: 3 per minute
- Checkout: 10 per minute
- Reminders: 30 per minute
- Webhooks: 100 per minute
- Default: 100 per minute
"""

import ipaddress
import logging
import re

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

_IP_LIKE = re.compile(r"^[\d.:a-fA-F]+$")


def _is_valid_ip(value: str) -> bool:
    """Return True if *value* is a valid IPv4 or IPv6 address."""
    if not _IP_LIKE.match(value):
        return False
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def _is_private_ip(value: str) -> bool:
    """Private, loopback and link-local addresses in proxy headers are spoofable."""
    try:
        addr = ipaddress.ip_address(value)
        return addr.is_private or addr.is_loopback or addr.is_link_local
    except ValueError:
        return False


def _get_real_ip(request: Request) -> str:
    """Client IP from X-Forwarded-For / X-Real-IP, falling back to the peer address.

    Only public addresses are accepted from the headers.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First entry is the original client
        candidate = forwarded.split(",")[0].strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        candidate = real_ip.strip()
        if _is_valid_ip(candidate) and not _is_private_ip(candidate):
            return candidate
    return get_remote_address(request)


# Format: "count/period" where period can be: second, minute, hour, day
RATE_LIMITS = {
    "login": "5/minute",
    "register": "3/minute",
    "checkout": "10/minute",
    "reminders": "30/minute",
    "webhooks": "100/minute",
    "default": "100/minute",
}

if settings.rate_limit_storage_uri.startswith("memory://") and settings.is_production:
    logger.warning(
        "Rate limiter using in-memory storage; limits are per process. "
        "Set RATE_LIMIT_STORAGE_URI to a Redis URL in production."
    )

limiter = Limiter(
    key_func=_get_real_ip,
    storage_uri=settings.rate_limit_storage_uri,
    default_limits=[RATE_LIMITS["default"]],
)


def get_rate_limit(endpoint: str) -> str:
    """
    Get the rate limit for an endpoint.

    Example:
        >>> get_rate_limit("checkout")
        "10/minute"
        >>> get_rate_limit("unknown")
        "100/minute"
    """
    return RATE_LIMITS.get(endpoint, RATE_LIMITS["default"])
