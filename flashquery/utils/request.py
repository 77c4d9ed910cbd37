"""
Request inspection helpers.
"""
from typing import Optional

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """
    Best-effort client address.

    First entry of X-Forwarded-For, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the credential from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        return None
    return credential.strip()
