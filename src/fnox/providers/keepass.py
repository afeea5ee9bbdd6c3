"""
KeePass provider, reading ``.kdbx`` databases with pykeepass.

References are ``entry``, ``group/entry`` or either followed by a field
name (password, username, url, notes, title). A bare entry title is
searched for in every group.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider, ProviderCapability

KNOWN_FIELDS = ("password", "username", "url", "notes", "title")


def parse_reference(reference: str) -> tuple[list[str], str]:
    parts = reference.split("/")
    if len(parts) > 1 and parts[-1] in KNOWN_FIELDS:
        return parts[:-1], parts[-1]
    return parts, "password"


class KeePassProvider(Provider):
    display_name = "KeePass"

    def __init__(
        self,
        database: str,
        keyfile: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.database = Path(database).expanduser()
        self.keyfile = Path(keyfile).expanduser() if keyfile else None
        self.password = password

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def _password(self) -> Optional[str]:
        return (
            os.environ.get("FNOX_KEEPASS_PASSWORD")
            or os.environ.get("KEEPASS_PASSWORD")
            or self.password
        )

    def _open(self) -> Any:
        try:
            from pykeepass import PyKeePass
            from pykeepass.exceptions import CredentialsError
        except ImportError as e:
            raise ImportError(
                "pykeepass is required for the keepass provider. "
                "Install with: pip install 'fnox[keepass]'"
            ) from e

        password = self._password()
        if password is None and self.keyfile is None:
            raise ProviderAuthError(
                "No KeePass password or keyfile configured", help="Set KEEPASS_PASSWORD"
            )
        if not self.database.is_file():
            raise ProviderError(f"KeePass database not found: {self.database}")
        try:
            return PyKeePass(
                str(self.database),
                password=password,
                keyfile=str(self.keyfile) if self.keyfile else None,
            )
        except CredentialsError as e:
            raise ProviderAuthError(f"Invalid KeePass credentials for {self.database}") from e

    @staticmethod
    def _find_entry(kp: Any, path: list[str]) -> Any:
        if len(path) == 1:
            return kp.find_entries(title=path[0], first=True)
        group = kp.root_group
        for name in path[:-1]:
            group = kp.find_groups(name=name, group=group, recursive=False, first=True)
            if group is None:
                return None
        return kp.find_entries(title=path[-1], group=group, recursive=False, first=True)

    def _read(self, reference: str) -> str:
        path, field = parse_reference(reference)
        kp = self._open()
        entry = self._find_entry(kp, path)
        if entry is None:
            raise ProviderSecretNotFoundError(self.display_name, "/".join(path))
        value = getattr(entry, field, None)
        if value is None:
            raise ProviderSecretNotFoundError(
                self.display_name, reference, f"field '{field}' is empty"
            )
        return str(value)

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._read, reference)

    def _write(self, key: str, plaintext: str) -> str:
        path, field = parse_reference(key)
        kp = self._open()
        entry = self._find_entry(kp, path)
        if entry is None:
            group = kp.root_group
            for name in path[:-1]:
                found = kp.find_groups(name=name, group=group, recursive=False, first=True)
                group = found if found is not None else kp.add_group(group, name)
            entry = kp.add_entry(group, path[-1], "", "")
        setattr(entry, field, plaintext)
        kp.save()
        return key

    async def put_secret(self, key: str, plaintext: str) -> str:
        return await asyncio.to_thread(self._write, key, plaintext)

    async def test_connection(self) -> None:
        await asyncio.to_thread(self._open)
