import asyncio
import json
import logging
import os
import traceback
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar

import click

from fnox.config import Config, load_config, load_config_file
from fnox.config.loader import CONFIG_FILENAME
from fnox.errors import FnoxError
from fnox.settings import Settings

T = TypeVar("T")


def get_env_flag(env_var: str, default: bool = False) -> bool:
    """Get a boolean flag from an environment variable.

    Args:
        env_var: Name of the environment variable
        default: Default value if environment variable is not set

    Returns:
        True if the environment variable is set to "1", "true", or "yes" (case insensitive)
        False otherwise
    """
    value = os.environ.get(env_var, "").lower()
    return value in ("1", "true", "yes") if value else default


def configure_logging(debug: bool = False) -> None:
    """Configure logging for all modules.

    Args:
        debug: Whether to enable debug logging
    """
    if not debug:
        debug = get_env_flag("FNOX_DEBUG")

    log_level = logging.DEBUG if debug else logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers to avoid duplicate messages
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    root_logger.addHandler(handler)

    for logger_name in logging.root.manager.loggerDict:
        if not logger_name.startswith("fnox"):
            continue
        logger = logging.getLogger(logger_name)
        logger.setLevel(log_level)
        logger.propagate = True


def build_settings(
    profile: Optional[str] = None,
    if_missing: Optional[str] = None,
    age_key_file: Optional[str] = None,
) -> Settings:
    """Settings for one command: environment plus the command's flags."""
    return Settings.load(
        profile=profile,
        if_missing=if_missing,
        age_key_file=Path(age_key_file) if age_key_file else None,
    )


def load_effective_config(config_path: Optional[str], settings: Settings) -> Config:
    """The explicit ``--config`` file, or the merged hierarchy from the cwd."""
    return load_config(path=Path(config_path) if config_path else None, settings=settings)


def target_config_path(config_path: Optional[str]) -> Path:
    """File that editing commands write to."""
    return Path(config_path) if config_path else Path.cwd() / CONFIG_FILENAME


def load_target_config(path: Path) -> Config:
    """Only the target file itself, so edits never copy inherited layers into it."""
    if path.is_file():
        return load_config_file(path)
    return Config()


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def format_error(error: Exception, debug: bool = False) -> Dict[str, Any]:
    """Format an error for output.

    Args:
        error: The exception that occurred
        debug: Whether to include debug information

    Returns:
        Dict containing error information
    """
    error_info: Dict[str, Any] = {"error": str(error)}
    if isinstance(error, FnoxError):
        error_info["rendered"] = error.render()
        if error.help:
            error_info["help"] = error.help

    if debug:
        error_info["traceback"] = traceback.format_exc()
        error_info["type"] = error.__class__.__name__

    return error_info


def output_result(result: Any, json_output: bool = False, debug: bool = False) -> None:
    """Output a result in either JSON or human-readable format.

    Args:
        result: The result to output
        json_output: Whether to output in JSON format
        debug: Whether to include debug information
    """
    if json_output:
        click.echo(json.dumps({"status": "ok", "result": result}, indent=2, default=str))
    elif isinstance(result, list):
        for row in result:
            click.echo(row)
    else:
        click.echo(result)


def output_error(error: Exception, json_output: bool = False, debug: bool = False) -> None:
    """Output an error in either JSON or human-readable format and abort.

    Args:
        error: The exception that occurred
        json_output: Whether to output in JSON format
        debug: Whether to include debug information
    """
    error_info = format_error(error, debug)

    if json_output:
        click.echo(json.dumps({"status": "error", **error_info}, indent=2))
    else:
        click.echo(f"Error: {error_info.get('rendered', error_info['error'])}", err=True)
        if debug and "traceback" in error_info:
            click.echo("\nTraceback:", err=True)
            click.echo(error_info["traceback"], err=True)

    raise click.Abort()
