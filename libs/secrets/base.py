"""Interface implemented by secret providers."""
from __future__ import annotations

from typing import Protocol


class SecretProvider(Protocol):
    name: str

    def get_secret(self, key: str) -> str | None:
        """Return the secret for ``key`` or ``None`` when it does not exist."""


__all__ = ["SecretProvider"]
