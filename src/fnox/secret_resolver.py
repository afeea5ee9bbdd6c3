"""
Secret resolution.

A secret's value comes from the first source that applies:

1. its provider (explicit, or the profile/config default) given a stored ``value``
2. its ``default``
3. the environment variable named after the key

When none applies, the if-missing policy decides between raising, warning
and staying silent. Provider failures go through the same policy.

Batch resolution runs in levels. A provider may read credentials from the
environment (1Password reads ``OP_SERVICE_ACCOUNT_TOKEN``); when such a
variable is itself a secret in the batch, it is resolved in an earlier
level and exported before the provider that needs it runs.
"""

import asyncio
import logging
import os
from collections.abc import Awaitable, Mapping
from typing import Optional

from fnox.config import source_registry
from fnox.config.models import Config, IfMissing, SecretConfig
from fnox.errors import (
    DefaultProviderNotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
    SecretMissingError,
)
from fnox.providers import factory
from fnox.providers.resolver import age_key_file_for, resolve_provider_config
from fnox.settings import Settings
from fnox.suggest import suggest

logger = logging.getLogger(__name__)


def resolve_if_missing_behavior(
    secret: SecretConfig, config: Config, settings: Optional[Settings] = None
) -> IfMissing:
    """Effective policy, highest precedence first.

    ``--if-missing``/``FNOX_IF_MISSING``, the secret's ``if_missing``, the
    config's ``if_missing``, ``FNOX_IF_MISSING_DEFAULT``, then ``warn``.
    """
    settings = settings or Settings.load()
    if settings.if_missing:
        return IfMissing.parse(settings.if_missing, "--if-missing/FNOX_IF_MISSING")
    if secret.if_missing is not None:
        return secret.if_missing
    if config.if_missing is not None:
        return config.if_missing
    if settings.if_missing_default:
        return IfMissing.parse(settings.if_missing_default, "FNOX_IF_MISSING_DEFAULT")
    return IfMissing.WARN


def handle_provider_error(key: str, error: Exception, if_missing: IfMissing) -> None:
    """Apply the policy to a provider failure.

    Re-raises ``error`` under ``error``; logs a warning under ``warn``;
    does nothing under ``ignore``. The caller records no value for ``key``
    unless this raised.
    """
    if if_missing is IfMissing.ERROR:
        logger.error(f"Error resolving secret '{key}': {error}")
        raise error
    if if_missing is IfMissing.WARN:
        logger.warning(f"Error resolving secret '{key}': {error}")


def handle_missing_secret(key: str, if_missing: IfMissing) -> None:
    if if_missing is IfMissing.ERROR:
        raise SecretMissingError(key)
    if if_missing is IfMissing.WARN:
        logger.warning(f"Secret '{key}' not found and no default provided")


def _provider_not_configured(
    config: Config, profile: str, provider_name: str, secret: SecretConfig
) -> ProviderNotConfiguredError:
    providers = config.get_providers(profile)
    return ProviderNotConfiguredError(
        provider_name,
        profile,
        config_path=secret.source_path,
        suggestion=suggest(provider_name, providers),
        span=secret.provider.span if secret.provider else None,
        source=source_registry.get_source(secret.source_path),
    )


def _provider_for(config: Config, profile: str, secret: SecretConfig) -> Optional[str]:
    if secret.value is None:
        return None
    return secret.provider_name or config.get_default_provider(profile)


def _resolve_without_provider(
    key: str, secret: SecretConfig, if_missing: IfMissing
) -> Optional[str]:
    if secret.default is not None:
        logger.debug(f"Using default value for secret '{key}'")
        return secret.default
    value = os.environ.get(key)
    if value is not None:
        logger.debug(f"Found secret '{key}' in the environment")
        return value
    handle_missing_secret(key, if_missing)
    return None


async def resolve_secret(
    config: Config,
    profile: str,
    key: str,
    secret: SecretConfig,
    settings: Optional[Settings] = None,
) -> Optional[str]:
    """Resolve one secret, returning ``None`` when the policy allows a gap.

    Raises:
        ProviderNotConfiguredError: the secret names an unknown provider.
        ProviderConfigCycleError: the provider's config references loop.
        SecretMissingError: nothing produced a value and the policy is ``error``.
    """
    settings = settings or Settings.load()
    if_missing = resolve_if_missing_behavior(secret, config, settings)

    provider_name = _provider_for(config, profile, secret)
    if provider_name is not None:
        provider_config = config.get_providers(profile).get(provider_name)
        if provider_config is None:
            raise _provider_not_configured(config, profile, provider_name, secret)

        resolved = await resolve_provider_config(
            config, profile, provider_name, provider_config, settings=settings
        )
        try:
            provider = factory.get_provider(resolved, age_key_file_for(config, settings))
            value = await provider.get_secret(secret.value.value)
        except Exception as e:
            handle_provider_error(key, e, if_missing)
            return None
        logger.debug(f"Resolved secret '{key}' from provider '{provider_name}'")
        return value

    return _resolve_without_provider(key, secret, if_missing)


def compute_resolution_levels(
    keys: list[str], env_dependencies: Mapping[str, tuple[str, ...]]
) -> tuple[list[list[str]], list[str]]:
    """Order ``keys`` so that a secret comes after the secrets its provider reads.

    ``env_dependencies`` maps a key to the environment variables its
    provider reads. Key ``A`` depends on key ``B`` when ``B`` is one of
    those variables. Returns the levels (each resolvable concurrently, in
    input order) and the keys left over because they depend on each other
    in a cycle.
    """
    present = set(keys)
    in_degree: dict[str, int] = {}
    dependents: dict[str, list[str]] = {}
    for key in keys:
        deps = {dep for dep in env_dependencies.get(key, ()) if dep in present and dep != key}
        in_degree[key] = len(deps)
        for dep in deps:
            dependents.setdefault(dep, []).append(key)

    levels: list[list[str]] = []
    remaining = list(keys)
    while True:
        ready = [key for key in remaining if in_degree[key] == 0]
        if not ready:
            break
        remaining = [key for key in remaining if in_degree[key] != 0]
        for key in ready:
            for dependent in dependents.get(key, []):
                in_degree[dependent] -= 1
        levels.append(ready)
    return levels, remaining


async def _resolve_provider_group(
    config: Config,
    profile: str,
    provider_name: str,
    items: list[tuple[str, str]],
    secrets: Mapping[str, SecretConfig],
    policies: Mapping[str, IfMissing],
    settings: Settings,
) -> dict[str, Optional[str]]:
    results: dict[str, Optional[str]] = {}
    provider_config = config.get_providers(profile).get(provider_name)

    try:
        if provider_config is None:
            first_key = items[0][0]
            raise _provider_not_configured(config, profile, provider_name, secrets[first_key])
        resolved = await resolve_provider_config(
            config, profile, provider_name, provider_config, settings=settings
        )
        provider = factory.get_provider(resolved, age_key_file_for(config, settings))
        fetched = await provider.get_secrets_batch(items)
    except Exception as e:
        logger.debug(f"Provider '{provider_name}' failed for {len(items)} secret(s): {e}")
        for key, _ in items:
            handle_provider_error(key, e, policies[key])
            results[key] = None
        return results

    for key, _ in items:
        outcome = fetched.get(key)
        if isinstance(outcome, str):
            results[key] = outcome
            continue
        if outcome is None:
            outcome = ProviderError(f"Provider '{provider_name}' returned no result for '{key}'")
        handle_provider_error(key, outcome, policies[key])
        results[key] = None
    return results


async def _gather_or_cancel(tasks: list[Awaitable[dict[str, Optional[str]]]]) -> list:
    """Run ``tasks`` together; if one raises, cancel the rest before re-raising."""
    futures = [asyncio.ensure_future(task) for task in tasks]
    try:
        return await asyncio.gather(*futures)
    except BaseException:
        for future in futures:
            if not future.done():
                future.cancel()
        await asyncio.gather(*futures, return_exceptions=True)
        raise


async def _resolve_level(
    config: Config,
    profile: str,
    keys: list[str],
    secrets: Mapping[str, SecretConfig],
    providers_by_key: Mapping[str, tuple[str, str]],
    policies: Mapping[str, IfMissing],
    settings: Settings,
) -> dict[str, Optional[str]]:
    groups: dict[str, list[tuple[str, str]]] = {}
    no_provider: list[str] = []
    for key in keys:
        if key in providers_by_key:
            provider_name, reference = providers_by_key[key]
            groups.setdefault(provider_name, []).append((key, reference))
        else:
            no_provider.append(key)

    resolved: dict[str, Optional[str]] = {}
    group_results = await _gather_or_cancel(
        [
            _resolve_provider_group(config, profile, name, items, secrets, policies, settings)
            for name, items in groups.items()
        ]
    )
    for partial in group_results:
        resolved.update(partial)

    for key in no_provider:
        resolved[key] = _resolve_without_provider(key, secrets[key], policies[key])
    return resolved


async def resolve_secrets_batch(
    config: Config,
    profile: str,
    secrets: Mapping[str, SecretConfig],
    settings: Optional[Settings] = None,
) -> dict[str, Optional[str]]:
    """Resolve many secrets, one provider call batch per provider and level.

    The result has an entry for every key in ``secrets``, in the same
    order; ``None`` marks a secret the policy allowed to be absent.
    Secrets that another provider in the batch reads from the environment
    are exported to ``os.environ`` once resolved.
    """
    settings = settings or Settings.load()
    policies = {
        key: resolve_if_missing_behavior(secret, config, settings)
        for key, secret in secrets.items()
    }
    providers = config.get_providers(profile)

    providers_by_key: dict[str, tuple[str, str]] = {}
    env_dependencies: dict[str, tuple[str, ...]] = {}
    for key, secret in secrets.items():
        try:
            provider_name = _provider_for(config, profile, secret)
        except DefaultProviderNotFoundError as e:
            logger.debug(f"Secret '{key}' has no usable provider: {e}")
            provider_name = None
        if provider_name is None:
            continue
        providers_by_key[key] = (provider_name, secret.value.value)
        provider_config = providers.get(provider_name)
        if provider_config is not None:
            env_dependencies[key] = provider_config.env_dependencies

    keys = list(secrets)
    levels, cycle = compute_resolution_levels(keys, env_dependencies)
    exported = {dep for deps in env_dependencies.values() for dep in deps}

    logger.debug(
        f"Batch resolving {len(secrets)} secret(s) in {len(levels)} level(s), "
        f"{len(providers_by_key)} with a provider"
    )

    resolved: dict[str, Optional[str]] = {}
    for level in levels:
        values = await _resolve_level(
            config, profile, level, secrets, providers_by_key, policies, settings
        )
        for key, value in values.items():
            if value is not None and key in exported:
                os.environ[key] = value
        resolved.update(values)

    if cycle:
        logger.warning(
            f"Detected dependency cycle among secrets: {', '.join(cycle)}. "
            "Resolving best-effort."
        )
        resolved.update(
            await _resolve_level(
                config, profile, cycle, secrets, providers_by_key, policies, settings
            )
        )

    return {key: resolved.get(key) for key in secrets}
