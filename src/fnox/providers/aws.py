"""
AWS providers: KMS encryption, Secrets Manager and SSM Parameter Store.

All three use boto3, imported lazily. boto3 calls are blocking and run
in a worker thread.
"""

import asyncio
import base64
import binascii
import logging
import threading
from typing import Any, Callable, Optional, Union

from fnox.errors import ProviderAuthError, ProviderError, ProviderSecretNotFoundError
from fnox.providers.base import BatchResult, Provider, ProviderCapability

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"ResourceNotFoundException", "ParameterNotFound"}
_AUTH_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "ExpiredTokenException",
    "InvalidClientTokenId",
}


def _import_boto3() -> Any:
    try:
        import boto3
    except ImportError as e:
        raise ImportError(
            "boto3 package is required for AWS providers. Install with: pip install 'fnox[aws]'"
        ) from e
    return boto3


def _translate(error: Exception, provider: str, reference: str) -> Exception:
    """Map a botocore error onto the fnox error hierarchy."""
    response = getattr(error, "response", None) or {}
    code = response.get("Error", {}).get("Code", "")
    if code in _NOT_FOUND_CODES:
        return ProviderSecretNotFoundError(provider, reference)
    if code in _AUTH_CODES:
        return ProviderAuthError(f"{provider}: {error}", help="Check your AWS credentials")
    return ProviderError(f"{provider} request failed: {error}")


def _keys_by_name(
    items: list[tuple[str, str]], name_for: Callable[[str], str]
) -> dict[str, list[str]]:
    """Group keys by remote name, in first-seen order."""
    keys_by_name: dict[str, list[str]] = {}
    for key, reference in items:
        keys_by_name.setdefault(name_for(reference), []).append(key)
    return keys_by_name


def _fill(
    results: BatchResult,
    keys_by_name: dict[str, list[str]],
    names: list[str],
    outcome: Union[str, Exception],
) -> None:
    for name in names:
        for key in keys_by_name[name]:
            results[key] = outcome


class _AwsProvider(Provider):
    service: str = ""

    def __init__(self, region: str):
        self.region = region
        self._client: Any = None
        self._client_lock = threading.Lock()

    def client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                self._client = _import_boto3().client(self.service, region_name=self.region)
            return self._client

    async def _call(self, reference: str, method: str, **kwargs: Any) -> Any:
        def invoke() -> Any:
            try:
                return getattr(self.client(), method)(**kwargs)
            except ImportError:
                raise
            except Exception as e:
                raise _translate(e, self.display_name, reference) from e

        return await asyncio.to_thread(invoke)


class AwsKmsProvider(_AwsProvider):
    display_name = "AWS KMS"
    service = "kms"

    def __init__(self, key_id: str, region: str):
        super().__init__(region)
        self.key_id = key_id

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.ENCRYPTION}

    async def encrypt(self, plaintext: str) -> str:
        response = await self._call(
            self.key_id, "encrypt", KeyId=self.key_id, Plaintext=plaintext.encode("utf-8")
        )
        return base64.b64encode(response["CiphertextBlob"]).decode("ascii")

    async def get_secret(self, reference: str) -> str:
        try:
            blob = base64.b64decode(reference, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"AWS KMS ciphertext is not valid base64: {e}") from e
        response = await self._call(self.key_id, "decrypt", CiphertextBlob=blob, KeyId=self.key_id)
        return response["Plaintext"].decode("utf-8")

    async def test_connection(self) -> None:
        await self._call(self.key_id, "describe_key", KeyId=self.key_id)


class AwsSecretsManagerProvider(_AwsProvider):
    display_name = "AWS Secrets Manager"
    service = "secretsmanager"
    batch_size = 20

    def __init__(self, region: str, prefix: Optional[str] = None):
        super().__init__(region)
        self.prefix = prefix

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def secret_name(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    @staticmethod
    def _secret_value(entry: dict[str, Any]) -> str:
        if "SecretString" in entry:
            return entry["SecretString"]
        return base64.b64encode(entry["SecretBinary"]).decode("ascii")

    async def get_secret(self, reference: str) -> str:
        name = self.secret_name(reference)
        response = await self._call(name, "get_secret_value", SecretId=name)
        return self._secret_value(response)

    async def get_secrets_batch(self, items: list[tuple[str, str]]) -> BatchResult:
        """One BatchGetSecretValue call per chunk of twenty distinct names.

        Several keys may share a name; each of them gets the result.
        """
        results: BatchResult = {}
        keys_by_name = _keys_by_name(items, self.secret_name)
        names = list(keys_by_name)
        for start in range(0, len(names), self.batch_size):
            chunk = names[start : start + self.batch_size]
            try:
                response = await self._call(
                    ",".join(chunk), "batch_get_secret_value", SecretIdList=chunk
                )
            except ProviderError as e:
                _fill(results, keys_by_name, chunk, e)
                continue
            for entry in response.get("SecretValues", []):
                name = entry.get("Name") if entry.get("Name") in keys_by_name else entry.get("ARN")
                if name in keys_by_name:
                    _fill(results, keys_by_name, [name], self._secret_value(entry))
            for error in response.get("Errors", []):
                name = error.get("SecretId")
                if name in keys_by_name:
                    message = f"{self.display_name}: {error.get('ErrorCode')}: {error.get('Message')}"
                    _fill(results, keys_by_name, [name], ProviderError(message))
            for name in chunk:
                for key in keys_by_name[name]:
                    results.setdefault(key, ProviderSecretNotFoundError(self.display_name, name))
        return results

    async def put_secret(self, key: str, plaintext: str) -> str:
        name = self.secret_name(key)
        try:
            await self._call(name, "put_secret_value", SecretId=name, SecretString=plaintext)
        except ProviderSecretNotFoundError:
            await self._call(name, "create_secret", Name=name, SecretString=plaintext)
        return key

    async def test_connection(self) -> None:
        await self._call("", "list_secrets", MaxResults=1)


class AwsParameterStoreProvider(_AwsProvider):
    display_name = "AWS Parameter Store"
    service = "ssm"
    batch_size = 10

    def __init__(self, region: str, prefix: Optional[str] = None):
        super().__init__(region)
        self.prefix = prefix

    def capabilities(self) -> set[ProviderCapability]:
        return {ProviderCapability.REMOTE_READ, ProviderCapability.REMOTE_STORAGE}

    def parameter_name(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key

    async def get_secret(self, reference: str) -> str:
        name = self.parameter_name(reference)
        response = await self._call(name, "get_parameter", Name=name, WithDecryption=True)
        return response["Parameter"]["Value"]

    async def get_secrets_batch(self, items: list[tuple[str, str]]) -> BatchResult:
        results: BatchResult = {}
        keys_by_name = _keys_by_name(items, self.parameter_name)
        names = list(keys_by_name)
        for start in range(0, len(names), self.batch_size):
            chunk = names[start : start + self.batch_size]
            try:
                response = await self._call(
                    ",".join(chunk), "get_parameters", Names=chunk, WithDecryption=True
                )
            except ProviderError as e:
                _fill(results, keys_by_name, chunk, e)
                continue
            for parameter in response.get("Parameters", []):
                if parameter["Name"] in keys_by_name:
                    _fill(results, keys_by_name, [parameter["Name"]], parameter["Value"])
            for name in chunk:
                for key in keys_by_name[name]:
                    results.setdefault(key, ProviderSecretNotFoundError(self.display_name, name))
        return results

    async def put_secret(self, key: str, plaintext: str) -> str:
        name = self.parameter_name(key)
        await self._call(
            name, "put_parameter", Name=name, Value=plaintext, Type="SecureString", Overwrite=True
        )
        return key

    async def test_connection(self) -> None:
        await self._call("", "describe_parameters", MaxResults=1)
