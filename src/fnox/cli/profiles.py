from typing import Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    output_error,
    output_result,
)
from fnox.config import Config


@click.command(name="profiles")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def list_profiles(config_path: Optional[str], json_output: bool, debug: bool) -> None:
    """List the profiles defined in the configuration."""
    configure_logging(debug)

    try:
        settings = build_settings()
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(None, settings)

        results = [
            {"name": name, "secrets": len(config.get_secrets(name)), "active": name == active}
            for name in config.list_profiles()
        ]
        if json_output:
            output_result(results, json_output, debug)
            return
        for r in results:
            marker = "*" if r["active"] else " "
            click.echo(f"{marker} {r['name']} ({r['secrets']} secrets)")
    except Exception as e:
        output_error(e, json_output, debug)
