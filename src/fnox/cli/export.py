import json
import shlex
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import click
import tomlkit
import yaml

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    output_error,
    run_async,
)
from fnox.config import Config
from fnox.secret_resolver import resolve_secrets_batch
from fnox.version import PACKAGE_VERSION

EXPORT_FORMATS = ("env", "json", "yaml", "toml")


def export_metadata(profile: str, count: int) -> dict[str, Any]:
    return {
        "profile": profile,
        "exported_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "total_secrets": count,
        "fnox_version": PACKAGE_VERSION,
    }


def render_export(values: dict[str, str], metadata: dict[str, Any], fmt: str) -> str:
    """Serialize resolved secrets in one of the export formats."""
    if fmt == "env":
        lines = [f"# {name}: {value}" for name, value in metadata.items()]
        lines += [f"export {key}={shlex.quote(value)}" for key, value in values.items()]
        return "\n".join(lines) + "\n"
    if fmt == "json":
        return json.dumps({"metadata": metadata, "secrets": values}, indent=2) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(
            {"metadata": metadata, "secrets": values}, default_flow_style=False, sort_keys=False
        )
    if fmt == "toml":
        doc = tomlkit.document()
        doc.add("metadata", _table(metadata))
        doc.add("secrets", _table(values))
        return tomlkit.dumps(doc)
    raise ValueError(f"Unknown export format: {fmt}")


def _table(data: dict[str, Any]) -> Any:
    table = tomlkit.table()
    for key, value in data.items():
        table[key] = value
    return table


@click.command(name="export")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(EXPORT_FORMATS),
    default="env",
    show_default=True,
    help="Output format",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@click.option(
    "--if-missing",
    type=click.Choice(["error", "warn", "ignore"], case_sensitive=False),
    help="What to do when a secret has no value",
)
@click.option("--age-key-file", type=click.Path(dir_okay=False), help="Age identity file")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def export(
    profile: Optional[str],
    config_path: Optional[str],
    fmt: str,
    output: Optional[str],
    if_missing: Optional[str],
    age_key_file: Optional[str],
    debug: bool,
) -> None:
    """Resolve every secret of a profile and export them.

    \b
    Examples:
        fnox export > .env
        fnox export --format json --output secrets.json
        fnox export --profile prod --format yaml
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile, if_missing, age_key_file)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)

        resolved = run_async(
            resolve_secrets_batch(config, active, config.get_secrets(active), settings)
        )
        values = {key: value for key, value in resolved.items() if value is not None}
        text = render_export(values, export_metadata(active, len(values)), fmt)

        if output:
            Path(output).write_text(text, encoding="utf-8")
            click.echo(f"Exported {len(values)} secrets to {output}", err=True)
        else:
            click.echo(text, nl=False)
    except Exception as e:
        output_error(e, False, debug)
