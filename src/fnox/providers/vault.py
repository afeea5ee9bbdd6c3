"""
HashiCorp Vault provider (KV version 2, via hvac).

References are ``name`` or ``name/field`` (field defaults to ``value``).
The secret lives at ``<path>/<name>`` where ``path`` defaults to
``secret``; the first path component is the KV mount point.
"""

import asyncio
import logging
import os
import threading
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider, ProviderCapability

logger = logging.getLogger(__name__)


def _import_hvac() -> Any:
    try:
        import hvac
    except ImportError as e:
        raise ImportError(
            "hvac package is required for Vault support. Install with: pip install 'fnox[vault]'"
        ) from e
    return hvac


class VaultProvider(Provider):
    display_name = "HashiCorp Vault"

    def __init__(
        self,
        address: str,
        path: Optional[str] = None,
        token: Optional[str] = None,
        namespace: Optional[str] = None,
    ):
        self.address = address
        self.path = path
        self.token = token
        self.namespace = namespace
        self._client: Any = None
        self._client_lock = threading.Lock()

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_STORAGE}

    def _resolve_token(self) -> str:
        token = self.token or os.environ.get("FNOX_VAULT_TOKEN") or os.environ.get("VAULT_TOKEN")
        if not token:
            raise ProviderAuthError(
                "VAULT_TOKEN not set", help="Set token in the provider config or VAULT_TOKEN"
            )
        return token

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                token = self._resolve_token()
                hvac = _import_hvac()
                self._client = hvac.Client(
                    url=self.address, token=token, namespace=self.namespace
                )
            return self._client

    def _location(self, name: str) -> tuple[str, str]:
        """Split ``<path>/<name>`` into (mount_point, path within the mount)."""
        base = (self.path or "secret").strip("/")
        full = f"{base}/{name}"
        mount, _, rest = full.partition("/")
        return mount, rest

    @staticmethod
    def _parse_reference(reference: str) -> tuple[str, str]:
        parts = reference.split("/")
        if len(parts) == 1:
            return parts[0], "value"
        if len(parts) == 2:
            return parts[0], parts[1]
        raise ProviderError(
            f"Invalid secret reference format: '{reference}'",
            help="Expected 'secret' or 'secret/field'",
        )

    def _read(self, reference: str) -> str:
        name, field = self._parse_reference(reference)
        mount, path = self._location(name)
        client = self._get_client()
        hvac = _import_hvac()
        try:
            response = client.secrets.kv.v2.read_secret_version(
                path=path, mount_point=mount, raise_on_deleted_version=True
            )
        except hvac.exceptions.InvalidPath as e:
            raise ProviderSecretNotFoundError(self.display_name, f"{mount}/{path}") from e
        except hvac.exceptions.Forbidden as e:
            raise ProviderAuthError(f"Vault denied access to {mount}/{path}: {e}") from e
        except hvac.exceptions.VaultError as e:
            raise ProviderError(f"Failed to read from vault: {e}") from e

        data = response["data"]["data"]
        if field not in data:
            raise ProviderSecretNotFoundError(
                self.display_name, f"{mount}/{path}", f"field '{field}' not present"
            )
        return str(data[field])

    async def get_secret(self, reference: str) -> str:
        logger.debug(f"Reading '{reference}' from Vault at {self.address}")
        return await asyncio.to_thread(self._read, reference)

    def _write(self, key: str, plaintext: str) -> None:
        mount, path = self._location(key)
        hvac = _import_hvac()
        try:
            self._get_client().secrets.kv.v2.create_or_update_secret(
                path=path, secret={"value": plaintext}, mount_point=mount
            )
        except hvac.exceptions.VaultError as e:
            raise ProviderError(f"Failed to write to vault: {e}") from e

    async def put_secret(self, key: str, plaintext: str) -> str:
        await asyncio.to_thread(self._write, key, plaintext)
        return key

    async def test_connection(self) -> None:
        client = await asyncio.to_thread(self._get_client)
        authenticated = await asyncio.to_thread(client.is_authenticated)
        if not authenticated:
            raise ProviderAuthError("Failed to authenticate with Vault")
