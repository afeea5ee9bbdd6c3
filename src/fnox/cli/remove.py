from typing import Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    output_error,
    output_result,
    target_config_path,
)
from fnox.config import Config, load_config_file, save_config
from fnox.errors import ConfigError, SecretNotFoundError
from fnox.suggest import suggest


@click.command(name="remove")
@click.argument("key")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to edit")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def remove_secret(
    key: str, profile: Optional[str], config_path: Optional[str], json_output: bool, debug: bool
) -> None:
    """Remove a secret from the config file.

    Only the target file is edited; secrets inherited from parent
    directories or imports are left alone.
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile)
        active = Config.get_profile(profile, settings)
        path = target_config_path(config_path)
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")

        config = load_config_file(path)
        secrets = config.get_secrets_mut(active)
        if key not in secrets:
            raise SecretNotFoundError(
                key, active, config_path=path, suggestion=suggest(key, secrets)
            )
        del secrets[key]
        save_config(config, path)

        if json_output:
            output_result({"key": key, "profile": active, "file": str(path)}, json_output, debug)
        else:
            click.echo(f"Removed secret '{key}' from {path}")
    except Exception as e:
        output_error(e, json_output, debug)
