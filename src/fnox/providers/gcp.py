"""
Google Cloud providers: Cloud KMS (encryption) and Secret Manager.

Credentials come from Application Default Credentials.
"""

import asyncio
import base64
import binascii
from typing import Any, Optional

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import Provider, ProviderCapability


def _translate(error: Exception, provider: str, reference: str) -> Exception:
    try:
        from google.api_core import exceptions as gexc
    except ImportError:
        return ProviderError(f"{provider} request failed: {error}")
    if isinstance(error, gexc.NotFound):
        return ProviderSecretNotFoundError(provider, reference)
    if isinstance(error, (gexc.PermissionDenied, gexc.Unauthenticated)):
        return ProviderAuthError(
            f"{provider}: {error}", help="Run 'gcloud auth application-default login'"
        )
    return ProviderError(f"{provider} request failed: {error}")


class GcpSecretManagerProvider(Provider):
    display_name = "GCP Secret Manager"

    def __init__(self, project: str, prefix: Optional[str] = None):
        self.project = project
        self.prefix = prefix
        self._client: Any = None

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                from google.cloud import secretmanager
            except ImportError as e:
                raise ImportError(
                    "google-cloud-secret-manager is required for the gcp-sm provider. "
                    "Install with: pip install 'fnox[gcp]'"
                ) from e
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def version_name(self, reference: str) -> str:
        if reference.startswith("projects/"):
            return reference if "/versions/" in reference else f"{reference}/versions/latest"
        name = f"{self.prefix}{reference}" if self.prefix else reference
        return f"projects/{self.project}/secrets/{name}/versions/latest"

    def _access(self, reference: str) -> str:
        name = self.version_name(reference)
        try:
            response = self._get_client().access_secret_version(request={"name": name})
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, name) from e
        return response.payload.data.decode("utf-8")

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._access, reference)

    def _store(self, key: str, plaintext: str) -> None:
        name = f"{self.prefix}{key}" if self.prefix else key
        client = self._get_client()
        parent = f"projects/{self.project}"
        secret_path = f"{parent}/secrets/{name}"
        try:
            from google.api_core import exceptions as gexc

            try:
                client.create_secret(
                    request={
                        "parent": parent,
                        "secret_id": name,
                        "secret": {"replication": {"automatic": {}}},
                    }
                )
            except gexc.AlreadyExists:
                pass
            client.add_secret_version(
                request={"parent": secret_path, "payload": {"data": plaintext.encode("utf-8")}}
            )
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, secret_path) from e

    async def put_secret(self, key: str, plaintext: str) -> str:
        await asyncio.to_thread(self._store, key, plaintext)
        return key

    async def test_connection(self) -> None:
        def check() -> None:
            try:
                pager = self._get_client().list_secrets(
                    request={"parent": f"projects/{self.project}", "page_size": 1}
                )
                next(iter(pager), None)
            except ImportError:
                raise
            except Exception as e:
                raise _translate(e, self.display_name, self.project) from e

        await asyncio.to_thread(check)


class GcpKmsProvider(Provider):
    display_name = "GCP Cloud KMS"

    def __init__(self, project: str, location: str, keyring: str, key: str):
        self.project = project
        self.location = location
        self.keyring = keyring
        self.key = key
        self._client: Any = None

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.ENCRYPTION}

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                from google.cloud import kms
            except ImportError as e:
                raise ImportError(
                    "google-cloud-kms is required for the gcp-kms provider. "
                    "Install with: pip install 'fnox[gcp]'"
                ) from e
            self._client = kms.KeyManagementServiceClient()
        return self._client

    @property
    def key_path(self) -> str:
        return (
            f"projects/{self.project}/locations/{self.location}"
            f"/keyRings/{self.keyring}/cryptoKeys/{self.key}"
        )

    def _encrypt(self, plaintext: str) -> str:
        try:
            response = self._get_client().encrypt(
                request={"name": self.key_path, "plaintext": plaintext.encode("utf-8")}
            )
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, self.key_path) from e
        return base64.b64encode(response.ciphertext).decode("ascii")

    def _decrypt(self, reference: str) -> str:
        try:
            blob = base64.b64decode(reference, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"GCP KMS ciphertext is not valid base64: {e}") from e
        try:
            response = self._get_client().decrypt(
                request={"name": self.key_path, "ciphertext": blob}
            )
        except ImportError:
            raise
        except Exception as e:
            raise _translate(e, self.display_name, self.key_path) from e
        return response.plaintext.decode("utf-8")

    async def encrypt(self, plaintext: str) -> str:
        return await asyncio.to_thread(self._encrypt, plaintext)

    async def get_secret(self, reference: str) -> str:
        return await asyncio.to_thread(self._decrypt, reference)

    async def test_connection(self) -> None:
        def check() -> None:
            try:
                self._get_client().get_crypto_key(request={"name": self.key_path})
            except ImportError:
                raise
            except Exception as e:
                raise _translate(e, self.display_name, self.key_path) from e

        await asyncio.to_thread(check)
