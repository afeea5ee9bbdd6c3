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
from fnox.errors import SecretNotFoundError
from fnox.secret_resolver import resolve_secret
from fnox.suggest import suggest


@click.command(name="get")
@click.argument("key")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option(
    "--if-missing",
    type=click.Choice(["error", "warn", "ignore"], case_sensitive=False),
    help="What to do when the secret has no value",
)
@click.option("--age-key-file", type=click.Path(dir_okay=False), help="Age identity file")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def get_secret(
    key: str,
    profile: Optional[str],
    config_path: Optional[str],
    if_missing: Optional[str],
    age_key_file: Optional[str],
    json_output: bool,
    debug: bool,
) -> None:
    """Print the resolved value of a secret.

    \b
    Examples:
        fnox get DATABASE_URL
        fnox get API_KEY --profile prod
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile, if_missing, age_key_file)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)

        secrets = config.get_secrets(active)
        secret = secrets.get(key)
        if secret is None:
            raise SecretNotFoundError(
                key,
                active,
                config_path=config.secret_source(key, active),
                suggestion=suggest(key, secrets),
            )

        value = run_async(resolve_secret(config, active, key, secret, settings))
        if value is None:
            return
        if json_output:
            output_result({"key": key, "value": value}, json_output, debug)
        else:
            click.echo(value)
    except Exception as e:
        output_error(e, json_output, debug)
