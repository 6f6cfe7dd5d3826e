"""Client network origin helpers."""
from __future__ import annotations

from starlette.requests import Request

FALLBACK_CLIENT_IP = "127.0.0.1"


def get_client_ip(request: Request) -> str:
    """Return the originating client address for ``request``.

    The first ``X-Forwarded-For`` entry is the client; proxies append to the
    right. Without the header the socket peer is used.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return FALLBACK_CLIENT_IP


__all__ = ["FALLBACK_CLIENT_IP", "get_client_ip"]
