"""
The provider interface.

A provider turns a stored reference (an encrypted blob, a remote secret
name, a password-manager item path) into plaintext. Providers declare
capabilities that gate which write operations are valid.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Union

from fnox.errors import ProviderUnsupportedError

logger = logging.getLogger(__name__)

MAX_CONCURRENT_FETCHES = 10

BatchResult = dict[str, Union[str, Exception]]


class ProviderCapability(str, Enum):
    ENCRYPTION = "encryption"
    REMOTE_STORAGE = "remote_storage"
    REMOTE_READ = "remote_read"


class Provider(ABC):
    """Base class for secret backends.

    Subclasses must implement :meth:`get_secret`. Everything else has a
    default:

    - ``capabilities`` reports ``REMOTE_READ``
    - ``get_secrets_batch`` fetches keys concurrently, at most ten in flight
    - ``encrypt`` is unsupported
    - ``put_secret`` encrypts for encryption providers and is otherwise
      unsupported; remote storage providers must override it
    - ``test_connection`` succeeds
    """

    #: Display name used in error messages.
    display_name: str = "provider"

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ}

    @abstractmethod
    async def get_secret(self, reference: str) -> str:
        """Return the plaintext for ``reference``."""

    async def get_secrets_batch(self, items: list[tuple[str, str]]) -> BatchResult:
        """Fetch many ``(key, reference)`` pairs.

        Every key gets an entry: the plaintext on success or the exception
        raised for that key. One failing key does not stop the others.
        """
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_FETCHES)

        async def fetch(key: str, reference: str) -> tuple[str, Union[str, Exception]]:
            async with semaphore:
                try:
                    return key, await self.get_secret(reference)
                except Exception as e:
                    logger.debug(f"{self.display_name}: fetching '{key}' failed: {e}")
                    return key, e

        results = await asyncio.gather(*(fetch(key, ref) for key, ref in items))
        return dict(results)

    async def encrypt(self, plaintext: str) -> str:
        raise ProviderUnsupportedError("This provider does not support encryption")

    async def put_secret(self, key: str, plaintext: str) -> str:
        """Store ``plaintext`` and return the value to persist in config."""
        capabilities = self.capabilities()
        if ProviderCapability.ENCRYPTION in capabilities:
            return await self.encrypt(plaintext)
        if ProviderCapability.REMOTE_STORAGE in capabilities:
            raise ProviderUnsupportedError("Remote storage provider must implement put_secret")
        raise ProviderUnsupportedError("This provider does not support storing secrets")

    async def test_connection(self) -> None:
        return None
