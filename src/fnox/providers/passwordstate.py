"""
Passwordstate provider, using the Passwordstate REST API via httpx.

References are a numeric password ID or an entry title, optionally
followed by ``/field`` (password, username, url, notes, title).
"""

import logging
import os
from typing import Any, Optional

import httpx

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider

logger = logging.getLogger(__name__)

FIELDS = {
    "password": "Password",
    "username": "UserName",
    "url": "URL",
    "notes": "Notes",
    "title": "Title",
}


def _parse_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


class PasswordstateProvider(Provider):
    display_name = "Passwordstate"

    def __init__(
        self,
        base_url: str,
        password_list_id: str,
        api_key: Optional[str] = None,
        verify_ssl: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.password_list_id = password_list_id
        self.api_key = api_key
        self.verify_ssl = _parse_bool(verify_ssl)

    def _api_key(self) -> str:
        key = self.api_key or os.environ.get("PASSWORDSTATE_API_KEY")
        if not key:
            raise ProviderAuthError(
                "Passwordstate API key not configured",
                help="Set api_key in the provider config or PASSWORDSTATE_API_KEY",
            )
        return key

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"GET {url}")
        async with httpx.AsyncClient(verify=self.verify_ssl, timeout=30.0) as client:
            try:
                response = await client.get(url, params=params, headers={"APIKey": self._api_key()})
            except httpx.HTTPError as e:
                raise ProviderError(f"HTTP request to Passwordstate failed: {e}") from e
        if response.status_code in (401, 403):
            raise ProviderAuthError(f"Passwordstate rejected the API key ({response.status_code})")
        if response.status_code == 404:
            return []
        if response.is_error:
            raise ProviderError(
                f"Passwordstate returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    async def get_secret(self, reference: str) -> str:
        target, _, field = reference.partition("/")
        field = field or "password"
        if field not in FIELDS:
            raise ProviderError(
                f"Unknown Passwordstate field '{field}'",
                help=f"Available fields: {', '.join(FIELDS)}",
            )

        if target.isdigit():
            entries = await self._get(f"/api/passwords/{target}")
        else:
            entries = await self._get(
                f"/api/searchpasswords/{self.password_list_id}", params={"Title": target}
            )
            entries = [e for e in entries if e.get("Title") == target] or entries

        if not entries:
            raise ProviderSecretNotFoundError(self.display_name, target)
        value = entries[0].get(FIELDS[field])
        if value is None:
            raise ProviderSecretNotFoundError(self.display_name, reference, f"field '{field}' is empty")
        return str(value)

    async def test_connection(self) -> None:
        await self._get(f"/api/passwords/{self.password_list_id}")
