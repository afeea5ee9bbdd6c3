"""Secret provider backends and their configuration types."""

from fnox.providers.base import BatchResult, Provider, ProviderCapability
from fnox.providers.config import (
    PROVIDER_CONFIG_TYPES,
    RESOLVED_CONFIG_TYPES,
    ProviderConfig,
    ProviderConfigBase,
    ResolvedProviderConfig,
)
from fnox.providers.factory import PROVIDER_BUILDERS, get_provider
from fnox.providers.secret_ref import SecretRef, StringOrSecretRef

__all__ = [
    "BatchResult",
    "PROVIDER_BUILDERS",
    "PROVIDER_CONFIG_TYPES",
    "Provider",
    "ProviderCapability",
    "ProviderConfig",
    "ProviderConfigBase",
    "RESOLVED_CONFIG_TYPES",
    "ResolvedProviderConfig",
    "SecretRef",
    "StringOrSecretRef",
    "get_provider",
]
