"""
Turning a resolved provider config into a provider instance.

Every variant of ``ProviderConfig`` has exactly one builder here. Builders
only ever see resolved configs, so no provider is constructed with an
unresolved secret reference.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

from fnox.errors import ConfigError
from fnox.providers.base import Provider
from fnox.providers.config import ResolvedProviderConfig

logger = logging.getLogger(__name__)

Builder = Callable[[Any, Optional[Path]], Provider]


def _plain(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.plain import PlainProvider

    return PlainProvider()


def _age(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.age import AgeProvider

    key_file = Path(config.key_file) if config.key_file else age_key_file
    return AgeProvider(config.recipients, key_file=key_file)


def _onepassword(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.onepassword import OnePasswordProvider

    return OnePasswordProvider(vault=config.vault, account=config.account, token=config.token)


def _aws_kms(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.aws import AwsKmsProvider

    return AwsKmsProvider(key_id=config.key_id, region=config.region)


def _aws_sm(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.aws import AwsSecretsManagerProvider

    return AwsSecretsManagerProvider(region=config.region, prefix=config.prefix)


def _aws_ps(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.aws import AwsParameterStoreProvider

    return AwsParameterStoreProvider(region=config.region, prefix=config.prefix)


def _azure_kms(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.azure import AzureKmsProvider

    return AzureKmsProvider(vault_url=config.vault_url, key_name=config.key_name)


def _azure_sm(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.azure import AzureSecretsManagerProvider

    return AzureSecretsManagerProvider(vault_url=config.vault_url, prefix=config.prefix)


def _bitwarden(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.bitwarden import BitwardenProvider

    return BitwardenProvider(
        collection=config.collection,
        organization_id=config.organization_id,
        profile=config.profile,
        backend=config.backend,
    )


def _bitwarden_sm(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.bitwarden_sm import BitwardenSecretsManagerProvider

    return BitwardenSecretsManagerProvider(project_id=config.project_id, profile=config.profile)


def _gcp_kms(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.gcp import GcpKmsProvider

    return GcpKmsProvider(
        project=config.project, location=config.location, keyring=config.keyring, key=config.key
    )


def _gcp_sm(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.gcp import GcpSecretManagerProvider

    return GcpSecretManagerProvider(project=config.project, prefix=config.prefix)


def _infisical(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.infisical import InfisicalProvider

    return InfisicalProvider(
        project_id=config.project_id, environment=config.environment, path=config.path
    )


def _keepass(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.keepass import KeePassProvider

    return KeePassProvider(
        database=config.database, keyfile=config.keyfile, password=config.password
    )


def _keychain(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.keychain import KeychainProvider

    return KeychainProvider(service=config.service, prefix=config.prefix)


def _password_store(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.password_store import PasswordStoreProvider

    return PasswordStoreProvider(
        prefix=config.prefix, store_dir=config.store_dir, gpg_opts=config.gpg_opts
    )


def _passwordstate(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.passwordstate import PasswordstateProvider

    return PasswordstateProvider(
        base_url=config.base_url,
        password_list_id=config.password_list_id,
        api_key=config.api_key,
        verify_ssl=config.verify_ssl,
    )


def _vault(config: Any, age_key_file: Optional[Path]) -> Provider:
    from fnox.providers.vault import VaultProvider

    return VaultProvider(
        address=config.address, path=config.path, token=config.token, namespace=config.namespace
    )


PROVIDER_BUILDERS: dict[str, Builder] = {
    "1password": _onepassword,
    "age": _age,
    "aws-kms": _aws_kms,
    "aws-sm": _aws_sm,
    "aws-ps": _aws_ps,
    "azure-kms": _azure_kms,
    "azure-sm": _azure_sm,
    "bitwarden": _bitwarden,
    "bitwarden-sm": _bitwarden_sm,
    "gcp-kms": _gcp_kms,
    "gcp-sm": _gcp_sm,
    "infisical": _infisical,
    "keepass": _keepass,
    "keychain": _keychain,
    "password-store": _password_store,
    "passwordstate": _passwordstate,
    "plain": _plain,
    "vault": _vault,
}


def get_provider(
    resolved: ResolvedProviderConfig, age_key_file: Optional[Path] = None
) -> Provider:
    """Instantiate the provider for a resolved config.

    Args:
        resolved: A resolved provider config.
        age_key_file: Identity file used by age providers that do not set
            their own ``key_file``.
    """
    try:
        builder = PROVIDER_BUILDERS[resolved.type]
    except KeyError:
        raise ConfigError(f"Unknown provider type: {resolved.type}") from None
    logger.debug(f"Creating {resolved.type} provider")
    return builder(resolved, age_key_file)
