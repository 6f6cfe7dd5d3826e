"""Secret providers: process environment and HashiCorp Vault."""
from __future__ import annotations

import os
from typing import Mapping


class EnvironmentSecretProvider:
    """Read secrets from environment variables, optionally prefixed."""

    name = "environment"

    def __init__(self, prefix: str | None = None) -> None:
        self._prefix = prefix or ""

    def get_secret(self, key: str) -> str | None:
        return os.environ.get(f"{self._prefix}{key}")


class VaultSecretProvider:
    """Read secrets from a Vault KV v2 mount."""

    name = "vault"

    def __init__(
        self,
        url: str,
        token: str,
        *,
        mount_point: str = "secret",
        base_path: str = "ordering",
        key_mapping: Mapping[str, str] | None = None,
    ) -> None:
        try:  # hvac is only required when Vault is the configured provider.
            import hvac  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("hvac must be installed to use the Vault secret provider") from exc

        self._client = hvac.Client(url=url, token=token)
        self._invalid_path = hvac.exceptions.InvalidPath
        self._mount_point = mount_point
        self._base_path = base_path.strip("/")
        self._mapping = dict(key_mapping or {})

    def _resolve_path(self, key: str) -> str:
        return self._mapping.get(key, f"{self._base_path}/{key.lower()}").strip("/")

    def get_secret(self, key: str) -> str | None:
        try:
            response = self._client.secrets.kv.v2.read_secret_version(
                mount_point=self._mount_point,
                path=self._resolve_path(key),
            )
        except self._invalid_path:
            return None
        data = response.get("data", {}).get("data", {})
        if "value" in data:
            return data["value"]
        return data.get(key)


__all__ = ["EnvironmentSecretProvider", "VaultSecretProvider"]
