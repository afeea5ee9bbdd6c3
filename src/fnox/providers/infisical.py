"""Infisical provider, through the ``infisical`` CLI."""

import os
from typing import Optional

from fnox.errors import ProviderAuthError
from fnox.providers.base import Provider
from fnox.providers.cli import run_cli

INSTALL_HINT = "Install the Infisical CLI: https://infisical.com/docs/cli/overview"


class InfisicalProvider(Provider):
    display_name = "Infisical"

    def __init__(
        self,
        project_id: Optional[str] = None,
        environment: Optional[str] = None,
        path: Optional[str] = None,
    ):
        self.project_id = project_id
        self.environment = environment
        self.path = path

    def _args(self, *args: str) -> list[str]:
        command = ["infisical", *args]
        if self.project_id:
            command.append(f"--projectId={self.project_id}")
        if self.environment:
            command.append(f"--env={self.environment}")
        if self.path:
            command.append(f"--path={self.path}")
        token = os.environ.get("FNOX_INFISICAL_TOKEN") or os.environ.get("INFISICAL_TOKEN")
        if token:
            command += ["--token", token]
        domain = os.environ.get("INFISICAL_API_URL")
        if domain:
            command += ["--domain", domain]
        command.append("--silent")
        return command

    async def get_secret(self, reference: str) -> str:
        return await run_cli(
            self._args("secrets", "get", reference, "--plain"),
            install_hint=INSTALL_HINT,
            auth_hint="Run 'infisical login' or set INFISICAL_TOKEN",
        )

    async def test_connection(self) -> None:
        if not self.project_id and not os.environ.get("INFISICAL_TOKEN"):
            raise ProviderAuthError("No Infisical project or token configured")
        await run_cli(self._args("secrets"), install_hint=INSTALL_HINT)
