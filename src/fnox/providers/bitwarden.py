"""
Bitwarden provider, through the ``bw`` or ``rbw`` command line tools.

References are ``item`` or ``item/field`` where field is one of
password (default), username, notes, uri or totp.
"""

import json
import os
from typing import Optional

from fnox.errors import ProviderError
from fnox.providers.base import Provider
from fnox.providers.cli import run_cli

FIELDS = ("password", "username", "notes", "uri", "totp")


def parse_reference(reference: str) -> tuple[str, str]:
    parts = reference.split("/")
    if len(parts) == 1:
        return parts[0], "password"
    if len(parts) == 2 and parts[1] in FIELDS:
        return parts[0], parts[1]
    raise ProviderError(
        f"Invalid secret reference format: '{reference}'",
        help=f"Expected 'item' or 'item/field' with field one of: {', '.join(FIELDS)}",
    )


class BitwardenProvider(Provider):
    display_name = "Bitwarden"

    def __init__(
        self,
        collection: Optional[str] = None,
        organization_id: Optional[str] = None,
        profile: Optional[str] = None,
        backend: str = "bw",
    ):
        self.collection = collection
        self.organization_id = organization_id
        self.profile = profile
        self.backend = backend

    def _bw_args(self, item: str, field: str) -> list[str]:
        if field == "totp":
            args = ["bw", "get", "totp", item]
        else:
            args = ["bw", "get", "item", item]
        if self.collection:
            args += ["--collectionid", self.collection]
        if self.organization_id:
            args += ["--organizationid", self.organization_id]
        session = os.environ.get("BW_SESSION")
        if session:
            args += ["--session", session]
        return args

    def _rbw_args(self, item: str, field: str) -> list[str]:
        if field == "totp":
            return ["rbw", "code", item]
        if field == "password":
            return ["rbw", "get", item]
        return ["rbw", "get", item, "--field", field]

    async def get_secret(self, reference: str) -> str:
        item, field = parse_reference(reference)
        if self.backend == "rbw":
            env = {"RBW_PROFILE": self.profile} if self.profile else None
            return await run_cli(
                self._rbw_args(item, field),
                env=env,
                install_hint="Install rbw: https://github.com/doy/rbw",
                auth_hint="Run 'rbw unlock'",
            )

        output = await run_cli(
            self._bw_args(item, field),
            install_hint="Install the Bitwarden CLI: npm install -g @bitwarden/cli",
            auth_hint="Run 'bw unlock' and export BW_SESSION",
        )
        if field == "totp":
            return output
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Invalid JSON from bw: {e}") from e
        if field == "notes":
            value = data.get("notes")
        elif field == "uri":
            uris = (data.get("login") or {}).get("uris") or []
            value = uris[0].get("uri") if uris else None
        else:
            value = (data.get("login") or {}).get(field)
        if value is None:
            raise ProviderError(f"Field '{field}' not found in Bitwarden item '{item}'")
        return str(value)

    async def test_connection(self) -> None:
        if self.backend == "rbw":
            await run_cli(["rbw", "unlocked"], auth_hint="Run 'rbw unlock'")
        else:
            await run_cli(["bw", "status"])
