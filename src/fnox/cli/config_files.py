from typing import Optional

import click

from fnox.cli.utils import build_settings, configure_logging, output_error, output_result
from fnox.config import find_config_files


@click.command(name="config-files")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def config_files(profile: Optional[str], json_output: bool, debug: bool) -> None:
    """Show the config files that apply to the current directory.

    Files are listed nearest first; the global config, if present, is last.
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile)
        paths = [str(path) for path in find_config_files(settings=settings)]
        if not paths and not json_output:
            click.echo("No config files found")
            return
        output_result(paths, json_output, debug)
    except Exception as e:
        output_error(e, json_output, debug)
