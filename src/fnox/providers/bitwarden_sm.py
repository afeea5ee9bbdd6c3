"""Bitwarden Secrets Manager provider, through the ``bws`` CLI."""

import json
import os
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider
from fnox.providers.cli import run_cli

INSTALL_HINT = "Install bws: https://bitwarden.com/help/secrets-manager-cli/"
SECRET_FIELDS = ("value", "key", "note", "id")


class BitwardenSecretsManagerProvider(Provider):
    display_name = "Bitwarden Secrets Manager"

    def __init__(self, project_id: Optional[str] = None, profile: Optional[str] = None):
        self.project_id = project_id
        self.profile = profile

    def _token(self) -> str:
        token = os.environ.get("FNOX_BWS_ACCESS_TOKEN") or os.environ.get("BWS_ACCESS_TOKEN")
        if not token:
            raise ProviderAuthError(
                "BWS_ACCESS_TOKEN is not set",
                help="Create a machine account access token and export BWS_ACCESS_TOKEN",
            )
        return token

    async def _bws(self, *args: str) -> Any:
        command = ["bws", *args, "--output", "json"]
        if self.profile:
            command += ["--profile", self.profile]
        output = await run_cli(
            command, env={"BWS_ACCESS_TOKEN": self._token()}, install_hint=INSTALL_HINT
        )
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Invalid JSON from bws: {e}") from e

    async def get_secret(self, reference: str) -> str:
        key, _, field = reference.partition("/")
        field = field or "value"
        if field not in SECRET_FIELDS:
            raise ProviderError(f"Unknown field '{field}' in secret reference '{reference}'")
        if not self.project_id:
            raise ProviderError(
                "bitwarden-sm provider requires project_id",
                help="Set project_id in the provider config",
            )
        secrets = await self._bws("secret", "list", self.project_id)
        for secret in secrets:
            if secret.get("key") == key:
                return str(secret.get(field, ""))
        raise ProviderSecretNotFoundError(self.display_name, key)

    async def test_connection(self) -> None:
        await self._bws("project", "list")
