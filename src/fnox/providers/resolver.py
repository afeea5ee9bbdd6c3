"""
Resolving provider configurations.

A provider's config fields may reference secrets (``token = { secret =
"VAULT_TOKEN" }``), and those secrets may in turn be served by other
providers. Resolution walks this graph depth first. A
:class:`ResolutionContext` records the providers currently being
resolved, so a provider that re-enters its own resolution is reported as
a cycle instead of recursing forever.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from fnox.config import source_registry
from fnox.config.models import Config
from fnox.errors import (
    ProviderConfigCycleError,
    ProviderConfigResolutionError,
    ProviderNotConfiguredError,
)
from fnox.providers import factory
from fnox.providers.config import ProviderConfigBase, ResolvedProviderConfig, resolved_model_for
from fnox.providers.secret_ref import SecretRef
from fnox.settings import Settings
from fnox.suggest import suggest

logger = logging.getLogger(__name__)


class ResolutionContext:
    """Providers in progress for one top-level resolution.

    A context must not be shared between concurrent resolutions; each
    top-level call creates its own.
    """

    def __init__(self) -> None:
        self.provider_stack: set[str] = set()
        self.resolution_path: list[str] = []

    def is_resolving(self, provider_name: str) -> bool:
        return provider_name in self.provider_stack

    def push(self, provider_name: str) -> None:
        self.provider_stack.add(provider_name)
        self.resolution_path.append(provider_name)

    def pop(self) -> None:
        if self.resolution_path:
            self.provider_stack.discard(self.resolution_path.pop())

    def path_string(self) -> str:
        return " -> ".join(self.resolution_path)


def age_key_file_for(config: Config, settings: Optional[Settings] = None) -> Path:
    """Identity file for age: CLI/env setting, then config, then the default path."""
    settings = settings or Settings.load()
    if settings.age_key_file is not None:
        return Path(settings.age_key_file).expanduser()
    if config.age_key_file is not None:
        return Path(config.age_key_file).expanduser()
    return settings.default_age_key_file


async def resolve_provider_config(
    config: Config,
    profile: str,
    provider_name: str,
    provider_config: ProviderConfigBase,
    context: Optional[ResolutionContext] = None,
    settings: Optional[Settings] = None,
) -> ResolvedProviderConfig:
    """Replace every secret reference in ``provider_config`` with its value.

    Raises:
        ProviderConfigCycleError: the provider is already being resolved.
        ProviderNotConfiguredError: a referenced secret names an unknown provider.
        ProviderConfigResolutionError: a referenced secret has no value anywhere.
    """
    context = context if context is not None else ResolutionContext()
    settings = settings or Settings.load()

    if context.is_resolving(provider_name):
        raise ProviderConfigCycleError(
            provider_name, f"{context.path_string()} -> {provider_name}"
        )

    context.push(provider_name)
    try:
        values = {}
        for field in type(provider_config).model_fields:
            value = getattr(provider_config, field)
            if isinstance(value, SecretRef):
                logger.debug(
                    f"Resolving {provider_name}.{field} from secret '{value.secret}'"
                )
                value = await _resolve_secret_ref(
                    config, profile, provider_name, value.secret, context, settings
                )
            values[field] = value
        return resolved_model_for(provider_config).model_validate(values)
    finally:
        context.pop()


async def _resolve_secret_ref(
    config: Config,
    profile: str,
    provider_name: str,
    secret_name: str,
    context: ResolutionContext,
    settings: Settings,
) -> str:
    secret = config.get_secrets(profile).get(secret_name)

    if secret is not None:
        nested_name = secret.provider_name
        if nested_name is not None and secret.value is not None:
            providers = config.get_providers(profile)
            nested_config = providers.get(nested_name)
            if nested_config is None:
                source_path = config.secret_source(secret_name, profile)
                raise ProviderNotConfiguredError(
                    nested_name,
                    profile,
                    config_path=source_path,
                    suggestion=suggest(nested_name, providers),
                    span=secret.provider.span if secret.provider else None,
                    source=source_registry.get_source(source_path),
                )
            resolved = await resolve_provider_config(
                config, profile, nested_name, nested_config, context, settings
            )
            provider = factory.get_provider(resolved, age_key_file_for(config, settings))
            return await provider.get_secret(secret.value.value)

        if secret.default is not None:
            return secret.default

    value = os.environ.get(secret_name)
    if value is not None:
        return value
    raise ProviderConfigResolutionError(
        provider_name,
        secret_name,
        f"Secret '{secret_name}' not found in config or environment",
    )
