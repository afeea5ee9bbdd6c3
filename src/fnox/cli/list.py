from typing import Any, Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    output_error,
    output_result,
)
from fnox.config import Config, SecretConfig


def describe_source(secret: SecretConfig, default_provider: Optional[str]) -> str:
    """Where a secret's value would come from."""
    if secret.value is not None:
        provider = secret.provider_name or default_provider
        if provider:
            return f"provider ({provider})"
        return "stored value"
    if secret.default is not None:
        return "default value"
    return "env var"


@click.command(name="list")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option("--sources", is_flag=True, help="Show the file each secret is declared in")
@click.option("--values", is_flag=True, help="Show stored values (not resolved plaintext)")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def list_secrets(
    profile: Optional[str],
    config_path: Optional[str],
    sources: bool,
    values: bool,
    json_output: bool,
    debug: bool,
) -> None:
    """List the secrets declared for a profile.

    \b
    Examples:
        fnox list
        fnox list --profile prod --sources
        fnox list --json-output
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)
        default_provider = config.get_default_provider(active)

        results: list[dict[str, Any]] = []
        for key, secret in sorted(config.get_secrets(active).items()):
            entry: dict[str, Any] = {
                "key": key,
                "source": describe_source(secret, default_provider),
                "description": secret.description,
            }
            if sources:
                path = config.secret_source(key, active)
                entry["file"] = str(path) if path else None
            if values:
                entry["value"] = secret.stored_value
            results.append(entry)

        if json_output:
            output_result({"profile": active, "secrets": results}, json_output, debug)
            return

        if not results:
            click.echo(f"No secrets defined in profile '{active}'")
            return

        width = max(len(r["key"]) for r in results)
        for r in results:
            line = f"{r['key']:<{width}}  {r['source']}"
            if values and r.get("value") is not None:
                line += f"  = {r['value']}"
            if r["description"]:
                line += f"  # {r['description']}"
            if sources and r.get("file"):
                line += f"  [{r['file']}]"
            click.echo(line)
    except Exception as e:
        output_error(e, json_output, debug)
