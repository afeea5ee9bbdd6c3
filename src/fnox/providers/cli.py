"""Helpers for providers that shell out to a vendor command line tool."""

import asyncio
import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from typing import Optional, Union

from fnox.errors import ProviderAuthError, ProviderCliFailedError, ProviderCliNotFoundError

logger = logging.getLogger(__name__)

AUTH_ERROR_MARKERS = (
    "not signed in",
    "not logged in",
    "unauthenticated",
    "authenticate",
    "authorization",
    "permission denied",
    "session expired",
    "invalid session",
    "vault is locked",
    "missing client token",
)


def _run(
    args: Sequence[str],
    env: Optional[Mapping[str, str]],
    input: Optional[bytes],
) -> subprocess.CompletedProcess:
    full_env = {**os.environ, **env} if env else None
    return subprocess.run(list(args), input=input, capture_output=True, env=full_env, check=False)


async def run_cli_raw(
    args: Sequence[str],
    *,
    env: Optional[Mapping[str, str]] = None,
    input: Union[str, bytes, None] = None,
    install_hint: Optional[str] = None,
    auth_hint: Optional[str] = None,
) -> bytes:
    """Run a CLI tool off the event loop and return its raw stdout.

    Raises:
        ProviderCliNotFoundError: the executable is not installed.
        ProviderAuthError: stderr looks like an authentication failure.
        ProviderCliFailedError: any other non-zero exit.
    """
    cli = args[0]
    payload = input.encode("utf-8") if isinstance(input, str) else input
    logger.debug(f"Running '{cli}' with {len(args) - 1} argument(s)")
    try:
        result = await asyncio.to_thread(_run, args, env, payload)
    except FileNotFoundError as e:
        raise ProviderCliNotFoundError(cli, install_hint) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        if any(marker in stderr.lower() for marker in AUTH_ERROR_MARKERS):
            raise ProviderAuthError(f"{cli}: {stderr}", help=auth_hint)
        raise ProviderCliFailedError(cli, stderr or f"exit status {result.returncode}")
    return result.stdout


async def run_cli(args: Sequence[str], **kwargs) -> str:
    """Like :func:`run_cli_raw` but returns decoded, stripped stdout."""
    output = await run_cli_raw(args, **kwargs)
    return output.decode("utf-8").strip()
