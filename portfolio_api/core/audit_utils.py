"""
Helpers for extracting client context from FastAPI Request objects.

Used by AuditService to annotate audit rows and by the rate limiter to
key its counters.
"""

from typing import Optional

from fastapi import Request


def get_client_ip(request: Optional[Request], trust_forwarded: bool = True) -> Optional[str]:
    """
    Extract the client IP address from a FastAPI Request.

    X-Forwarded-For (first hop) and X-Real-IP are honoured only when
    trust_forwarded is True. Rate limiting passes False so a client cannot
    rotate its own key by forging headers.

    Args:
        request: FastAPI Request object
        trust_forwarded: Whether proxy headers may override the socket peer

    Returns:
        Client IP address as string, or None if not available
    """
    if request is None:
        return None

    if trust_forwarded:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return None


def get_user_agent(request: Optional[Request]) -> Optional[str]:
    """Return the User-Agent header, truncated to the audit column width."""
    if request is None:
        return None

    user_agent = request.headers.get("User-Agent")
    return user_agent[:500] if user_agent else None


def get_correlation_id(request: Optional[Request]) -> Optional[str]:
    """Return the correlation ID stored on request.state by the middleware in main.py."""
    if request is None:
        return None

    return getattr(request.state, "correlation_id", None)
