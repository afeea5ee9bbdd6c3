"""
1Password provider, using the 1Password SDK with a service account.

References are full ``op://vault/item/field`` URIs, or ``item`` /
``item/field`` relative to the configured vault (field defaults to
``password``).
"""

import logging
import os
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError
from fnox.providers.base import Provider
from fnox.version import PACKAGE_NAME, PACKAGE_VERSION

logger = logging.getLogger(__name__)


def _import_client() -> Any:
    try:
        from onepassword.client import Client
    except ImportError as e:
        raise ImportError(
            "onepassword-sdk library is required for 1Password integration. "
            "Install with: pip install 'fnox[onepassword]'"
        ) from e
    return Client


class OnePasswordProvider(Provider):
    display_name = "1Password"

    def __init__(
        self,
        vault: Optional[str] = None,
        account: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self.vault = vault
        self.account = account
        self.token = token
        self._client: Any = None

    def _resolve_token(self) -> str:
        token = (
            self.token
            or os.environ.get("FNOX_OP_SERVICE_ACCOUNT_TOKEN")
            or os.environ.get("OP_SERVICE_ACCOUNT_TOKEN")
        )
        if not token:
            raise ProviderAuthError(
                "1Password service account token not found",
                help="Set token in the provider config or OP_SERVICE_ACCOUNT_TOKEN",
            )
        return token

    def to_reference(self, value: str) -> str:
        if value.startswith("op://"):
            return value
        if not self.vault:
            raise ProviderError(
                f"Unknown secret vault for: '{value}'",
                help="Specify a vault in the provider config or use a full 'op://' reference",
            )
        parts = value.split("/")
        if len(parts) == 1:
            return f"op://{self.vault}/{parts[0]}/password"
        if len(parts) == 2:
            return f"op://{self.vault}/{parts[0]}/{parts[1]}"
        raise ProviderError(
            f"Invalid secret reference format: '{value}'",
            help="Expected 'item', 'item/field', or 'op://vault/item/field'",
        )

    async def _get_client(self) -> Any:
        if self._client is None:
            client_cls = _import_client()
            try:
                self._client = await client_cls.authenticate(
                    auth=self._resolve_token(),
                    integration_name=PACKAGE_NAME,
                    integration_version=PACKAGE_VERSION,
                )
            except Exception as e:
                raise ProviderAuthError(f"1Password authentication failed: {e}") from e
        return self._client

    async def get_secret(self, reference: str) -> str:
        secret_ref = self.to_reference(reference)
        client = await self._get_client()
        try:
            value = await client.secrets.resolve(secret_ref)
        except Exception as e:
            raise ProviderError(
                f"Failed to resolve 1Password reference '{secret_ref}': {e}"
            ) from e
        return str(value)

    async def test_connection(self) -> None:
        await self._get_client()
