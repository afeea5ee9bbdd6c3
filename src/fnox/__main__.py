import click

from fnox.cli.check import check
from fnox.cli.config_files import config_files
from fnox.cli.export import export
from fnox.cli.get import get_secret
from fnox.cli.init import init
from fnox.cli.list import list_secrets
from fnox.cli.profiles import list_profiles
from fnox.cli.provider import provider
from fnox.cli.remove import remove_secret
from fnox.cli.set import set_secret
from fnox.version import PACKAGE_VERSION


@click.group(invoke_without_command=True)
@click.version_option(PACKAGE_VERSION, prog_name="fnox")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """fnox: layered secret management"""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(get_secret)
cli.add_command(list_secrets)
cli.add_command(set_secret)
cli.add_command(remove_secret)
cli.add_command(check)
cli.add_command(export)
cli.add_command(list_profiles)
cli.add_command(config_files)
cli.add_command(provider)
cli.add_command(init)


if __name__ == "__main__":
    cli()
