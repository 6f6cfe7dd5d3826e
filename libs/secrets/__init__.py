"""Unified interface for loading application secrets."""
from __future__ import annotations

import json
import os
from functools import lru_cache
from typing import Mapping

from .base import SecretProvider
from .providers import EnvironmentSecretProvider, VaultSecretProvider


class SecretManager:
    """Resolve secrets from the configured provider, caching lookups."""

    def __init__(self, provider: SecretProvider, *, cache_enabled: bool = True) -> None:
        self._provider = provider
        self._cache_enabled = cache_enabled
        self._cache: dict[str, str | None] = {}

    @property
    def provider(self) -> SecretProvider:
        return self._provider

    def get(self, key: str, default: str | None = None) -> str | None:
        if self._cache_enabled and key in self._cache:
            cached = self._cache[key]
            return cached if cached is not None else default

        try:
            value = self._provider.get_secret(key)
        except Exception as exc:
            raise RuntimeError(
                f"Unable to resolve secret '{key}' using provider '{self._provider.name}'"
            ) from exc

        if self._cache_enabled:
            self._cache[key] = value
        return value if value is not None else default


def _load_key_mapping() -> Mapping[str, str]:
    raw_mapping = os.environ.get("SECRET_MANAGER_KEY_MAPPING")
    if not raw_mapping:
        return {}
    try:
        parsed = json.loads(raw_mapping)
    except json.JSONDecodeError as exc:
        raise RuntimeError("SECRET_MANAGER_KEY_MAPPING must be valid JSON") from exc
    if not isinstance(parsed, dict):
        raise RuntimeError("SECRET_MANAGER_KEY_MAPPING must be a JSON object")
    return parsed


def _build_provider() -> SecretProvider:
    provider = os.environ.get("SECRET_MANAGER_PROVIDER", "environment").strip().lower()

    if provider in {"env", "environment", "local"}:
        return EnvironmentSecretProvider(prefix=os.environ.get("SECRET_MANAGER_ENV_PREFIX"))
    if provider == "vault":
        url = os.environ.get("VAULT_ADDR")
        token = os.environ.get("VAULT_TOKEN")
        if not url or not token:
            raise RuntimeError("VAULT_ADDR and VAULT_TOKEN must be set for Vault provider")
        return VaultSecretProvider(
            url=url,
            token=token,
            mount_point=os.environ.get("VAULT_KV_MOUNT", "secret"),
            base_path=os.environ.get("VAULT_SECRET_BASE_PATH", "ordering"),
            key_mapping=_load_key_mapping(),
        )

    raise RuntimeError(f"Unknown secret manager provider: {provider}")


@lru_cache(maxsize=1)
def get_secret_manager() -> SecretManager:
    return SecretManager(_build_provider())


def get_secret(key: str, default: str | None = None) -> str | None:
    """Convenience wrapper used by services to access secrets."""

    return get_secret_manager().get(key, default=default)


__all__ = ["SecretManager", "get_secret", "get_secret_manager"]
