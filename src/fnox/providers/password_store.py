"""password-store (``pass``) provider."""

from typing import Optional

from fnox.providers.base import Provider, ProviderCapability
from fnox.providers.cli import run_cli

INSTALL_HINT = "Install pass from https://www.passwordstore.org"


class PasswordStoreProvider(Provider):
    display_name = "password-store"

    def __init__(
        self,
        prefix: Optional[str] = None,
        store_dir: Optional[str] = None,
        gpg_opts: Optional[str] = None,
    ):
        self.prefix = prefix
        self.store_dir = store_dir
        self.gpg_opts = gpg_opts

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def _path(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    def _env(self) -> dict[str, str]:
        env = {}
        if self.store_dir:
            env["PASSWORD_STORE_DIR"] = self.store_dir
        if self.gpg_opts:
            env["PASSWORD_STORE_GPG_OPTS"] = self.gpg_opts
        return env

    async def get_secret(self, reference: str) -> str:
        output = await run_cli(
            ["pass", "show", self._path(reference)], env=self._env(), install_hint=INSTALL_HINT
        )
        # the first line holds the password
        return output.splitlines()[0] if output else ""

    async def put_secret(self, key: str, plaintext: str) -> str:
        await run_cli(
            ["pass", "insert", "-m", "-f", self._path(key)],
            env=self._env(),
            input=plaintext,
            install_hint=INSTALL_HINT,
        )
        return key

    async def test_connection(self) -> None:
        await run_cli(["pass", "ls"], env=self._env(), install_hint=INSTALL_HINT)
