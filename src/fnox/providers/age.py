"""
age encryption provider.

Secrets are stored in config as base64-encoded age ciphertext. Encryption
uses the configured recipients; decryption needs an identity file. Both
go through the ``age`` command line tool.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from fnox.errors import ProviderError
from fnox.providers.base import Provider, ProviderCapability
from fnox.providers.cli import run_cli_raw

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install age from https://age-encryption.org (e.g. 'brew install age')"


class AgeProvider(Provider):
    display_name = "age"

    def __init__(self, recipients: list[str], key_file: Optional[Path] = None):
        self.recipients = list(recipients)
        self.key_file = Path(key_file).expanduser() if key_file else None

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.ENCRYPTION}

    def _identity_file(self) -> Path:
        if self.key_file is None:
            raise ProviderError(
                "No age identity file configured",
                help="Set age_key_file in fnox.toml, pass --age-key-file or set FNOX_AGE_KEY_FILE",
            )
        if not self.key_file.is_file():
            raise ProviderError(f"age identity file not found: {self.key_file}")
        return self.key_file

    async def encrypt(self, plaintext: str) -> str:
        if not self.recipients:
            raise ProviderError(
                "age provider has no recipients",
                help="Add recipients = [\"age1...\"] to the provider config",
            )
        args = ["age"]
        for recipient in self.recipients:
            args += ["-r", recipient]
        ciphertext = await run_cli_raw(args, input=plaintext, install_hint=INSTALL_HINT)
        return base64.b64encode(ciphertext).decode("ascii")

    async def get_secret(self, reference: str) -> str:
        try:
            ciphertext = base64.b64decode(reference, validate=True)
        except (binascii.Error, ValueError):
            ciphertext = reference.encode("utf-8")

        identity = self._identity_file()
        logger.debug(f"Decrypting age secret with identity {identity}")
        plaintext = await run_cli_raw(
            ["age", "--decrypt", "-i", str(identity)],
            input=ciphertext,
            install_hint=INSTALL_HINT,
        )
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProviderError(f"Decrypted age secret is not valid UTF-8: {e}") from e

    async def test_connection(self) -> None:
        self._identity_file()
