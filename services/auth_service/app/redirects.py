"""Validation of caller-supplied post-authentication return paths."""
from __future__ import annotations

from urllib.parse import urljoin, urlsplit

DEFAULT_REDIRECT = "/home"

_SYNTHETIC_BASE = "https://placeholder.internal/"
_SYNTHETIC_NETLOC = "placeholder.internal"

ALLOWED_PATH_PREFIXES = (
    "/home",
    "/restaurants",
    "/order",
    "/checkout",
    "/profile",
    "/admin",
    "/restaurant",
    "/auth",
)


def _is_allowed_path(path: str) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in ALLOWED_PATH_PREFIXES)


def safe_redirect(candidate: str | None) -> str:
    """Return ``candidate`` when it is a same-origin allowlisted path.

    The candidate is resolved against a synthetic origin first, so absolute
    and protocol-relative targets show up as a foreign authority. Line breaks
    are refused next. Only then is the parsed path (never the raw string)
    matched against the allowlist, so a query string cannot smuggle an
    allowed prefix in. Accepted candidates come back unchanged; everything
    else yields ``DEFAULT_REDIRECT``.
    """

    if not candidate:
        return DEFAULT_REDIRECT

    try:
        resolved = urlsplit(urljoin(_SYNTHETIC_BASE, candidate))
    except ValueError:
        return DEFAULT_REDIRECT
    if resolved.scheme != "https" or resolved.netloc != _SYNTHETIC_NETLOC:
        return DEFAULT_REDIRECT

    if "\r" in candidate or "\n" in candidate:
        return DEFAULT_REDIRECT

    if not _is_allowed_path(resolved.path):
        return DEFAULT_REDIRECT
    return candidate


__all__ = ["ALLOWED_PATH_PREFIXES", "DEFAULT_REDIRECT", "safe_redirect"]
