import os
from typing import Any, Optional

import click

from fnox.cli.utils import (
    build_settings,
    configure_logging,
    load_effective_config,
    output_error,
    output_result,
)
from fnox.config import Config
from fnox.config.models import IfMissing
from fnox.errors import ConfigValidationError, ValidationIssue
from fnox.secret_resolver import resolve_if_missing_behavior
from fnox.settings import Settings


def secret_issues(
    config: Config, profile: str, settings: Settings
) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
    """Secrets with no value source, split into (errors, warnings) by policy."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    for key, secret in config.get_secrets(profile).items():
        if secret.has_value() or key in os.environ:
            continue
        policy = resolve_if_missing_behavior(secret, config, settings)
        if policy is IfMissing.IGNORE:
            continue
        issue = ValidationIssue(
            f"Secret '{key}' has no provider, value or default and is not set in the environment",
            f"Run 'fnox set {key}' or export {key}",
        )
        (errors if policy is IfMissing.ERROR else warnings).append(issue)
    return errors, warnings


@click.command(name="check")
@click.option("--profile", "-P", help="Profile name to use")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False), help="Config file to use")
@click.option(
    "--if-missing",
    type=click.Choice(["error", "warn", "ignore"], case_sensitive=False),
    help="Policy applied to secrets without a value source",
)
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.option("--debug", is_flag=True, help="Show detailed debug information")
def check(
    profile: Optional[str],
    config_path: Optional[str],
    if_missing: Optional[str],
    json_output: bool,
    debug: bool,
) -> None:
    """Validate the configuration and report secrets without a value source.

    Exits with status 1 when any error is found.
    """
    configure_logging(debug)

    try:
        settings = build_settings(profile, if_missing)
        config = load_effective_config(config_path, settings)
        active = Config.get_profile(profile, settings)

        errors = config.collect_issues()
        missing, warnings = secret_issues(config, active, settings)
        errors.extend(missing)

        if not json_output:
            for issue in warnings:
                click.echo(f"warning: {issue.message}", err=True)
        if errors:
            raise ConfigValidationError(errors)

        summary: dict[str, Any] = {
            "profile": active,
            "secrets": len(config.get_secrets(active)),
            "warnings": [issue.message for issue in warnings],
        }
        if json_output:
            output_result(summary, json_output, debug)
        else:
            click.echo(f"✓ Configuration is valid ({summary['secrets']} secrets in profile '{active}')")
    except Exception as e:
        output_error(e, json_output, debug)
