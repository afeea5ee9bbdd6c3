from typing import Optional

import click

from fnox.cli.utils import configure_logging, output_error, target_config_path
from fnox.errors import ConfigError

CONFIG_TEMPLATE = """\
# fnox configuration
#
# Providers store or encrypt secrets; secrets reference them by name.
#
#   [providers]
#   age = { type = "age", recipients = ["age1..."] }
#
#   [secrets]
#   DATABASE_URL = { provider = "age", value = "..." }

[providers]

[secrets]
"""


@click.command(name="init")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="File to create")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def init(config_path: Optional[str], force: bool, debug: bool) -> None:
    """Create a new fnox.toml in the current directory."""
    configure_logging(debug)

    try:
        path = target_config_path(config_path)
        if path.exists() and not force:
            raise ConfigError(
                f"{path} already exists", help="Use --force to overwrite the existing file"
            )
        path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
        click.echo(f"Created {path}")
    except Exception as e:
        output_error(e, False, debug)
