"""Request utility functions for handling common request operations."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "

# Length limit for user agents stored in the session audit trail
MAX_USER_AGENT_LENGTH = 255


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str | None:
    """Get the client IP address from a request.

    X-Real-IP is honoured only when the direct peer is a local reverse
    proxy. X-Forwarded-For is never trusted since clients can set it freely.

    Args:
        request: The FastAPI request object

    Returns:
        Client IP address or None if not available
    """
    if request.client and request.client.host in ("127.0.0.1", "::1", "localhost"):
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            else:
                logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request) -> str | None:
    """Get a length-bounded User-Agent header value."""
    user_agent = request.headers.get("User-Agent")
    if not user_agent:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]


def extract_bearer_token(request: Request) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith(BEARER_PREFIX):
        return None
    token = auth_header[len(BEARER_PREFIX) :].strip()
    return token or None
