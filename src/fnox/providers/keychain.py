"""OS keychain provider (macOS Keychain, Secret Service, Windows Credential Locker)."""

import asyncio
from typing import Any, Optional

from fnox.errors import ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider, ProviderCapability


def _import_keyring() -> Any:
    try:
        import keyring
    except ImportError as e:
        raise ImportError(
            "keyring is required for the keychain provider. "
            "Install with: pip install 'fnox[keychain]'"
        ) from e
    return keyring


class KeychainProvider(Provider):
    display_name = "keychain"

    def __init__(self, service: str, prefix: Optional[str] = None):
        self.service = service
        self.prefix = prefix

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def key_name(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    def _read(self, reference: str) -> str:
        keyring = _import_keyring()
        name = self.key_name(reference)
        try:
            value = keyring.get_password(self.service, name)
        except keyring.errors.KeyringError as e:
            raise ProviderError(f"Keychain lookup failed for '{name}': {e}") from e
        if value is None:
            raise ProviderSecretNotFoundError(self.display_name, f"{self.service}/{name}")
        return value

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._read, reference)

    def _write(self, key: str, plaintext: str) -> None:
        keyring = _import_keyring()
        try:
            keyring.set_password(self.service, self.key_name(key), plaintext)
        except keyring.errors.KeyringError as e:
            raise ProviderError(f"Keychain write failed for '{key}': {e}") from e

    async def put_secret(self, key: str, plaintext: str) -> str:
        await asyncio.to_thread(self._write, key, plaintext)
        return key

    async def test_connection(self) -> None:
        keyring = _import_keyring()
        backend = await asyncio.to_thread(keyring.get_keyring)
        if backend.priority <= 0:
            raise ProviderError(f"No usable keychain backend (found {backend!r})")
