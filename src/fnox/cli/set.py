import logging
import sys
from typing import Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    load_target_config,
    output_error,
    output_result,
    run_async,
    target_config_path,
)
from fnox.config import Config, SecretConfig, SpannedValue, save_config
from fnox.errors import ConfigNotFoundError, ProviderNotConfiguredError
from fnox.providers import ProviderCapability, get_provider
from fnox.providers.resolver import age_key_file_for, resolve_provider_config
from fnox.settings import Settings
from fnox.suggest import suggest

logger = logging.getLogger(__name__)


def read_secret_value(value: Optional[str]) -> str:
    """The VALUE argument, else a hidden prompt on a terminal, else stdin."""
    if value is not None:
        return value
    if sys.stdin.isatty():
        return click.prompt("Secret value", hide_input=True)
    return click.get_text_stream("stdin").read().rstrip("\r\n")


async def store_value(
    config: Config,
    profile: str,
    provider_name: Optional[str],
    key: str,
    plaintext: str,
    settings: Settings,
) -> str:
    """Value to persist in the config for ``plaintext``.

    Encryption and remote storage providers store the plaintext and return
    what the config should reference; for any other provider the value is
    already a reference and is kept as given.
    """
    if provider_name is None:
        return plaintext

    providers = config.get_providers(profile)
    provider_config = providers.get(provider_name)
    if provider_config is None:
        raise ProviderNotConfiguredError(
            provider_name, profile, suggestion=suggest(provider_name, providers)
        )

    resolved = await resolve_provider_config(
        config, profile, provider_name, provider_config, settings=settings
    )
    provider = get_provider(resolved, age_key_file_for(config, settings))
    capabilities = provider.capabilities()
    if (
        ProviderCapability.ENCRYPTION in capabilities
        or ProviderCapability.REMOTE_STORAGE in capabilities
    ):
        logger.debug(f"Storing '{key}' through provider '{provider_name}'")
        return await provider.put_secret(key, plaintext)
    return plaintext


def updated_secret(
    existing: Optional[SecretConfig],
    provider: Optional[str],
    value: Optional[str],
    description: Optional[str],
    default: Optional[str],
    if_missing: Optional[str],
) -> SecretConfig:
    data = existing.model_dump(exclude_none=True) if existing else {}
    if provider is not None:
        data["provider"] = provider
    if value is not None:
        data["value"] = value
    if description is not None:
        data["description"] = description
    if default is not None:
        data["default"] = default
    if if_missing is not None:
        data["if_missing"] = if_missing
    return SecretConfig.model_validate(data)


@click.command(name="set")
@click.argument("key")
@click.argument("value", required=False)
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to write")
@click.option("--provider", "-p", "provider_name", help="Provider that stores the secret")
@click.option("--description", "-d", help="Description of the secret")
@click.option("--default", "default_value", help="Fallback value used when nothing else resolves")
@click.option(
    "--if-missing",
    type=click.Choice(["error", "warn", "ignore"], case_sensitive=False),
    help="Policy stored on the secret for when it has no value",
)
@click.option("--key-name", help="Name to store the secret under in the provider (defaults to KEY)")
@click.option("--age-key-file", type=click.Path(dir_okay=False), help="Age identity file")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def set_secret(
    key: str,
    value: Optional[str],
    profile: Optional[str],
    config_path: Optional[str],
    provider_name: Optional[str],
    description: Optional[str],
    default_value: Optional[str],
    if_missing: Optional[str],
    key_name: Optional[str],
    age_key_file: Optional[str],
    json_output: bool,
    debug: bool,
) -> None:
    """Set a secret, encrypting or uploading it through its provider.

    VALUE is read from stdin when omitted.

    \b
    Examples:
        fnox set DATABASE_URL postgres://localhost/dev
        echo -n "$TOKEN" | fnox set API_TOKEN --provider age
        fnox set API_KEY --profile prod --provider aws --key-name prod/api-key
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile, age_key_file=age_key_file)
        active = Config.get_profile(profile, settings)
        path = target_config_path(config_path)
        target = load_target_config(path)
        try:
            effective = load_effective_config(config_path, settings)
        except ConfigNotFoundError:
            effective = target

        secrets = target.get_secrets_mut(active)
        existing = secrets.get(key)

        stored: Optional[str] = None
        if value is not None or default_value is None:
            plaintext = read_secret_value(value)
            chosen = provider_name or (existing.provider_name if existing else None)
            if chosen is None:
                chosen = effective.get_default_provider(active)
            stored = run_async(
                store_value(effective, active, chosen, key_name or key, plaintext, settings)
            )

        secrets[key] = updated_secret(
            existing, provider_name, stored, description, default_value, if_missing
        )
        secrets[key].source_path = path
        save_config(target, path)

        if json_output:
            output_result({"key": key, "profile": active, "file": str(path)}, json_output, debug)
        else:
            click.echo(f"Set secret '{key}' in {path}")
    except Exception as e:
        output_error(e, json_output, debug)
