"""Delivery of one-time sign-in links issued after signup."""
from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/auth/callback"
POST_SIGNUP_REDIRECT = "/home"


def build_sign_in_link(base_url: str, code: str, next_path: str = POST_SIGNUP_REDIRECT) -> str:
    return f"{base_url.rstrip('/')}{CALLBACK_PATH}?{urlencode({'code': code, 'next': next_path})}"


class LinkSender(Protocol):
    def send_sign_in_link(self, *, user_id: str, email: str, link: str) -> None:
        ...


class LoggingLinkSender:
    """Default sender until a mail transport is wired in.

    Only the recipient id is logged: the link is a bearer credential.
    """

    def send_sign_in_link(self, *, user_id: str, email: str, link: str) -> None:
        logger.info("Sign-in link issued", extra={"user_id": user_id})


__all__ = [
    "CALLBACK_PATH",
    "LinkSender",
    "LoggingLinkSender",
    "build_sign_in_link",
]
