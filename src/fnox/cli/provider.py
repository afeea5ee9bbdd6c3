from typing import Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    output_error,
    output_result,
    run_async,
)
from fnox.config import Config
from fnox.errors import ProviderNotConfiguredError
from fnox.providers import get_provider
from fnox.providers.resolver import age_key_file_for, resolve_provider_config
from fnox.settings import Settings
from fnox.suggest import suggest


@click.group(name="provider")
def provider() -> None:
    """Inspect configured providers."""


@provider.command(name="list")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def list_providers(
    profile: Optional[str], config_path: Optional[str], json_output: bool, debug: bool
) -> None:
    """List the providers available in a profile."""
    configure_logging(debug)

    try:
        settings = build_settings(profile)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)
        default = config.get_default_provider(active)

        results = []
        for name, provider_config in sorted(config.get_providers(active).items()):
            source = config.provider_source(name, active)
            results.append(
                {
                    "name": name,
                    "type": provider_config.type,
                    "default": name == default,
                    "file": str(source) if source else None,
                }
            )
        if json_output:
            output_result(results, json_output, debug)
            return
        if not results:
            click.echo(f"No providers configured in profile '{active}'")
            return
        for r in results:
            suffix = " (default)" if r["default"] else ""
            click.echo(f"{r['name']}: {r['type']}{suffix}")
    except Exception as e:
        output_error(e, json_output, debug)


async def check_provider(config: Config, profile: str, name: str, settings: Settings) -> None:
    providers = config.get_providers(profile)
    provider_config = providers.get(name)
    if provider_config is None:
        raise ProviderNotConfiguredError(name, profile, suggestion=suggest(name, providers))
    resolved = await resolve_provider_config(config, profile, name, provider_config, settings=settings)
    instance = get_provider(resolved, age_key_file_for(config, settings))
    await instance.test_connection()


@provider.command(name="test")
@click.argument("name")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option("--age-key-file", type=click.Path(dir_okay=False), help="Age identity file")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def test_provider(
    name: str,
    profile: Optional[str],
    config_path: Optional[str],
    age_key_file: Optional[str],
    json_output: bool,
    debug: bool,
) -> None:
    """Check that a provider is reachable and authenticated."""
    configure_logging(debug)

    try:
        settings = build_settings(profile, age_key_file=age_key_file)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)
        run_async(check_provider(config, active, name, settings))

        if json_output:
            output_result({"provider": name, "ok": True}, json_output, debug)
        else:
            click.echo(f"✓ Provider '{name}' connection successful")
    except Exception as e:
        output_error(e, json_output, debug)
