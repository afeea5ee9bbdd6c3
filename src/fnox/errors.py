"""
Error types raised by fnox.

All errors derive from :class:`FnoxError`. Each carries structured
attributes so callers can branch on them, plus an optional ``help`` text
that the CLI prints below the message.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

Span = tuple[int, int]


class FnoxError(Exception):
    """Base class for all fnox errors."""

    help: Optional[str] = None

    def __init__(self, message: str, help: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if help is not None:
            self.help = help

    def render(self) -> str:
        """Render the error for terminal output."""
        if self.help:
            return f"{self.message}\n  help: {self.help}"
        return self.message


def _line_col(source: str, offset: int) -> tuple[int, int, str]:
    """Translate a byte offset into (line, column, line_text), all 1-based."""
    data = source.encode("utf-8")
    offset = max(0, min(offset, len(data)))
    prefix = data[:offset].decode("utf-8", errors="replace")
    line = prefix.count("\n") + 1
    line_start = prefix.rfind("\n") + 1
    column = len(prefix) - line_start + 1
    lines = source.splitlines()
    text = lines[line - 1] if 0 < line <= len(lines) else ""
    return line, column, text


def render_span(path: Optional[Path], source: Optional[str], span: Optional[Span]) -> str:
    """Render a source snippet with a caret marker under ``span``.

    Returns an empty string when either the source text or the span is
    unavailable.
    """
    if source is None or span is None:
        return ""
    start, end = span
    line, column, text = _line_col(source, start)
    width = max(1, len(source.encode("utf-8")[start:end].decode("utf-8", errors="replace")))
    width = min(width, max(1, len(text) - column + 1))
    location = f"{path}:{line}:{column}" if path else f"{line}:{column}"
    gutter = " " * len(str(line))
    return (
        f"  --> {location}\n"
        f"{gutter} |\n"
        f"{line} | {text}\n"
        f"{gutter} | {' ' * (column - 1)}{'^' * width}"
    )


class ConfigError(FnoxError):
    """Generic configuration error."""


class ConfigParseError(ConfigError):
    """A config file could not be parsed or did not match the schema."""

    def __init__(
        self,
        message: str,
        path: Optional[Path] = None,
        span: Optional[Span] = None,
        source: Optional[str] = None,
    ):
        super().__init__(message)
        self.path = path
        self.span = span
        self.source = source

    def __str__(self) -> str:
        if self.path:
            return f"Failed to parse {self.path}: {self.message}"
        return f"Failed to parse configuration: {self.message}"

    def render(self) -> str:
        snippet = render_span(self.path, self.source, self.span)
        return f"{self}\n{snippet}" if snippet else str(self)


class ConfigNotFoundError(ConfigError):
    """No configuration file exists in the directory chain."""

    help = "Run 'fnox init' to create a new configuration file"


@dataclass(frozen=True)
class ValidationIssue:
    message: str
    help: Optional[str] = None


class ConfigValidationError(ConfigError):
    """One or more independent validation issues were found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = list(issues)
        count = len(self.issues)
        noun = "issue" if count == 1 else "issues"
        super().__init__(f"Configuration validation failed with {count} {noun}")

    def render(self) -> str:
        lines = [self.message]
        for issue in self.issues:
            lines.append(f"  - {issue.message}")
            if issue.help:
                lines.append(f"    help: {issue.help}")
        return "\n".join(lines)


class SecretNotFoundError(FnoxError):
    """A secret key is not declared in the active profile."""

    def __init__(
        self,
        key: str,
        profile: str,
        config_path: Optional[Path] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(f"Secret '{key}' not found in profile '{profile}'", help=suggestion)
        self.key = key
        self.profile = profile
        self.config_path = config_path
        self.suggestion = suggestion


class SecretMissingError(FnoxError):
    """A declared secret produced no value and its policy is ``error``."""

    def __init__(self, key: str):
        super().__init__(f"Secret '{key}' not found and no default provided")
        self.key = key


class ProviderNotConfiguredError(FnoxError):
    """A secret or provider field references an unknown provider."""

    def __init__(
        self,
        provider: str,
        profile: str,
        config_path: Optional[Path] = None,
        suggestion: Optional[str] = None,
        span: Optional[Span] = None,
        source: Optional[str] = None,
    ):
        super().__init__(
            f"Provider '{provider}' not configured in profile '{profile}'",
            help=suggestion or "Add the provider to the [providers] section of your config",
        )
        self.provider = provider
        self.profile = profile
        self.config_path = config_path
        self.suggestion = suggestion
        self.span = span
        self.source = source

    def render(self) -> str:
        snippet = render_span(self.config_path, self.source, self.span)
        base = super().render()
        return f"{base}\n{snippet}" if snippet else base


class DefaultProviderNotFoundError(FnoxError):
    """``default_provider`` names a provider that does not exist."""

    def __init__(
        self,
        provider: str,
        profile: str,
        config_path: Optional[Path] = None,
        span: Optional[Span] = None,
        source: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(
            f"Default provider '{provider}' not found in profile '{profile}'",
            help=suggestion or "Define the provider under [providers] or fix default_provider",
        )
        self.provider = provider
        self.profile = profile
        self.config_path = config_path
        self.span = span
        self.source = source

    def render(self) -> str:
        snippet = render_span(self.config_path, self.source, self.span)
        base = super().render()
        return f"{base}\n{snippet}" if snippet else base


class ProviderConfigCycleError(FnoxError):
    """Provider configuration references form a cycle."""

    def __init__(self, provider: str, cycle: str):
        super().__init__(
            f"Circular dependency detected while resolving provider '{provider}': {cycle}",
            help=f"Resolution path: {cycle}",
        )
        self.provider = provider
        self.cycle = cycle


class ProviderConfigResolutionError(FnoxError):
    """A secret referenced from a provider config could not be resolved."""

    def __init__(self, provider: str, secret: str, details: str):
        super().__init__(
            f"Failed to resolve secret '{secret}' for provider '{provider}': {details}"
        )
        self.provider = provider
        self.secret = secret
        self.details = details


class ProviderError(FnoxError):
    """A backend provider failed."""


class ProviderCliNotFoundError(ProviderError):
    """A provider's command line tool is not installed."""

    def __init__(self, cli: str, install_hint: Optional[str] = None):
        super().__init__(
            f"'{cli}' command not found",
            help=install_hint or f"Install '{cli}' and make sure it is on your PATH",
        )
        self.cli = cli


class ProviderCliFailedError(ProviderError):
    """A provider's command line tool exited with an error."""

    def __init__(self, cli: str, details: str):
        super().__init__(f"'{cli}' failed: {details}")
        self.cli = cli
        self.details = details


class ProviderAuthError(ProviderError):
    """Authentication against a provider failed."""


class ProviderSecretNotFoundError(ProviderError):
    """The provider does not hold the requested secret."""

    def __init__(self, provider: str, reference: str, details: Optional[str] = None):
        message = f"Secret '{reference}' not found in {provider}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)
        self.provider = provider
        self.reference = reference


class ProviderUnsupportedError(ProviderError):
    """The provider does not support the requested operation."""
