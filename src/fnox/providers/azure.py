"""
Azure providers: Key Vault keys (encryption) and Key Vault secrets.

Credentials come from ``DefaultAzureCredential``. SDK calls are blocking
and run in a worker thread.
"""

import asyncio
import base64
import binascii
import threading
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider, ProviderCapability

INSTALL_MESSAGE = "Azure SDK packages are required for Azure providers. Install with: pip install 'fnox[azure]'"


def _credential() -> Any:
    try:
        from azure.identity import DefaultAzureCredential
    except ImportError as e:
        raise ImportError(INSTALL_MESSAGE) from e
    return DefaultAzureCredential()


def _translate(error: Exception, provider: str, reference: str) -> Exception:
    try:
        from azure.core.exceptions import ClientAuthenticationError, ResourceNotFoundError
    except ImportError:
        return ProviderError(f"{provider} request failed: {error}")
    if isinstance(error, ResourceNotFoundError):
        return ProviderSecretNotFoundError(provider, reference)
    if isinstance(error, ClientAuthenticationError):
        return ProviderAuthError(f"{provider}: {error}", help="Run 'az login'")
    return ProviderError(f"{provider} request failed: {error}")


class AzureSecretsManagerProvider(Provider):
    display_name = "Azure Key Vault"

    def __init__(self, vault_url: str, prefix: Optional[str] = None):
        self.vault_url = vault_url
        self.prefix = prefix
        self._client: Any = None
        self._client_lock = threading.Lock()

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def secret_name(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                try:
                    from azure.keyvault.secrets import SecretClient
                except ImportError as e:
                    raise ImportError(INSTALL_MESSAGE) from e
                self._client = SecretClient(vault_url=self.vault_url, credential=_credential())
            return self._client

    def _get(self, name: str) -> str:
        try:
            return self._get_client().get_secret(name).value
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, name) from e

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._get, self.secret_name(reference))

    def _set(self, name: str, plaintext: str) -> None:
        try:
            self._get_client().set_secret(name, plaintext)
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, name) from e

    async def put_secret(self, key: str, plaintext: str) -> str:
        await asyncio.to_thread(self._set, self.secret_name(key), plaintext)
        return key

    async def test_connection(self) -> None:
        def check() -> None:
            try:
                next(iter(self._get_client().list_properties_of_secrets()), None)
            except ImportError:
                raise
            except Exception as e:
                raise _translate(e, self.display_name, self.vault_url) from e

        await asyncio.to_thread(check)


class AzureKmsProvider(Provider):
    display_name = "Azure Key Vault Keys"

    def __init__(self, vault_url: str, key_name: str):
        self.vault_url = vault_url
        self.key_name = key_name
        self._crypto: Any = None
        self._crypto_lock = threading.Lock()

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.ENCRYPTION}

    def _crypto_client(self) -> Any:
        with self._crypto_lock:
            if self._crypto is None:
                try:
                    from azure.keyvault.keys import KeyClient
                    from azure.keyvault.keys.crypto import CryptographyClient
                except ImportError as e:
                    raise ImportError(INSTALL_MESSAGE) from e
                credential = _credential()
                keys = KeyClient(vault_url=self.vault_url, credential=credential)
                key = keys.get_key(self.key_name)
                self._crypto = CryptographyClient(key, credential=credential)
            return self._crypto

    def _algorithm(self) -> Any:
        from azure.keyvault.keys.crypto import EncryptionAlgorithm

        return EncryptionAlgorithm.rsa_oaep_256

    def _encrypt(self, plaintext: str) -> str:
        try:
            result = self._crypto_client().encrypt(self._algorithm(), plaintext.encode("utf-8"))
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, self.key_name) from e
        return base64.b64encode(result.ciphertext).decode("ascii")

    def _decrypt(self, reference: str) -> str:
        try:
            blob = base64.b64decode(reference, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"Azure ciphertext is not valid base64: {e}") from e
        try:
            result = self._crypto_client().decrypt(self._algorithm(), blob)
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, self.key_name) from e
        return result.plaintext.decode("utf-8")

    async def encrypt(self, plaintext: str) -> str:
        return await asyncio.to_thread(self._encrypt, plaintext)

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._decrypt, reference)

    async def test_connection(self) -> None:
        await asyncio.to_thread(self._crypto_client)
