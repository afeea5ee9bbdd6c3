"""
Configuration models.

A ``Config`` is what a single ``fnox.toml`` contains; the loader merges
many of them into the effective configuration for a directory. Provenance
(which file declared a secret or provider, and where ``default_provider``
was written) is held in private attributes so it never reaches the
serialized form.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from fnox.config import source_registry
from fnox.config.spanned import SpannedValue, unwrap
from fnox.errors import ConfigValidationError, DefaultProviderNotFoundError, ValidationIssue
from fnox.providers.config import ProviderConfig
from fnox.settings import DEFAULT_PROFILE, Settings
from fnox.suggest import suggest

logger = logging.getLogger(__name__)


class IfMissing(str, Enum):
    """What to do when a secret resolves to nothing."""

    ERROR = "error"
    WARN = "warn"
    IGNORE = "ignore"

    @classmethod
    def parse(cls, value: Any, origin: str = "config") -> IfMissing:
        """Lenient parse: unknown values become ``WARN`` with a warning."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(
                "Invalid if_missing value '%s' from %s, using 'warn' (expected error, warn or ignore)",
                value,
                origin,
            )
            return cls.WARN


def _lenient_if_missing(value: Any, origin: str) -> Optional[IfMissing]:
    if value is None:
        return None
    return IfMissing.parse(value, origin)


class SecretConfig(BaseModel):
    """One declared secret.

    ``provider``/``value`` carry the byte span they were read from.
    A secret with no provider, value or default resolves from the
    environment variable of the same name.
    """

    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = None
    default: Optional[str] = None
    if_missing: Optional[IfMissing] = None
    provider: Optional[SpannedValue[str]] = None
    value: Optional[SpannedValue[str]] = None

    _source_path: Optional[Path] = PrivateAttr(default=None)

    @field_validator("if_missing", mode="before")
    @classmethod
    def _parse_if_missing(cls, value: Any) -> Optional[IfMissing]:
        return _lenient_if_missing(value, "secret config")

    @property
    def source_path(self) -> Optional[Path]:
        return self._source_path

    @source_path.setter
    def source_path(self, path: Optional[Path]) -> None:
        self._source_path = path

    @property
    def provider_name(self) -> Optional[str]:
        return unwrap(self.provider)

    @property
    def stored_value(self) -> Optional[str]:
        return unwrap(self.value)

    def has_value(self) -> bool:
        return self.provider is not None or self.value is not None or self.default is not None


class ProfileConfig(BaseModel):
    """Providers, secrets and default provider layered over the top level."""

    model_config = ConfigDict(extra="forbid")

    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    default_provider: Optional[SpannedValue[str]] = None
    secrets: dict[str, SecretConfig] = Field(default_factory=dict)

    _provider_sources: dict[str, Path] = PrivateAttr(default_factory=dict)
    _secret_sources: dict[str, Path] = PrivateAttr(default_factory=dict)
    _default_provider_source: Optional[Path] = PrivateAttr(default=None)

    def is_empty(self) -> bool:
        return not self.providers and not self.secrets and self.default_provider is None


def _merge_profile(base: ProfileConfig, overlay: ProfileConfig) -> ProfileConfig:
    merged = ProfileConfig(
        providers={**base.providers, **overlay.providers},
        secrets={**base.secrets, **overlay.secrets},
        default_provider=(
            overlay.default_provider
            if overlay.default_provider is not None
            else base.default_provider
        ),
    )
    merged._provider_sources = {**base._provider_sources, **overlay._provider_sources}
    merged._secret_sources = {**base._secret_sources, **overlay._secret_sources}
    merged._default_provider_source = (
        overlay._default_provider_source
        if overlay.default_provider is not None
        else base._default_provider_source
    )
    return merged


class Config(BaseModel):
    """Root of a fnox config file.

    Example:
        >>> config = Config.model_validate({
        ...     "providers": {"plain": {"type": "plain"}},
        ...     "secrets": {"API_KEY": {"provider": "plain", "value": "abc"}},
        ... })
        >>> config.get_default_provider("default")
        'plain'
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    imports: list[str] = Field(default_factory=list, alias="import")
    root: bool = False
    providers: dict[str, ProviderConfig] = Field(default_factory=dict)
    default_provider: Optional[SpannedValue[str]] = None
    secrets: dict[str, SecretConfig] = Field(default_factory=dict)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)
    age_key_file: Optional[Path] = None
    if_missing: Optional[IfMissing] = None
    prompt_auth: Optional[bool] = None

    _provider_sources: dict[str, Path] = PrivateAttr(default_factory=dict)
    _secret_sources: dict[str, Path] = PrivateAttr(default_factory=dict)
    _default_provider_source: Optional[Path] = PrivateAttr(default=None)

    @field_validator("if_missing", mode="before")
    @classmethod
    def _parse_if_missing(cls, value: Any) -> Optional[IfMissing]:
        return _lenient_if_missing(value, "config")

    # -- provenance ---------------------------------------------------------

    def set_source_paths(self, path: Path) -> None:
        """Record ``path`` as the origin of every entry in this config."""
        for name in self.providers:
            self._provider_sources[name] = path
        for name, secret in self.secrets.items():
            self._secret_sources[name] = path
            secret.source_path = path
        if self.default_provider is not None:
            self._default_provider_source = path
        for profile in self.profiles.values():
            for name in profile.providers:
                profile._provider_sources[name] = path
            for name, secret in profile.secrets.items():
                profile._secret_sources[name] = path
                secret.source_path = path
            if profile.default_provider is not None:
                profile._default_provider_source = path

    def provider_source(self, name: str, profile: str = DEFAULT_PROFILE) -> Optional[Path]:
        profile_config = self._profile_config(profile)
        if profile_config is not None and name in profile_config._provider_sources:
            return profile_config._provider_sources[name]
        return self._provider_sources.get(name)

    def secret_source(self, key: str, profile: str = DEFAULT_PROFILE) -> Optional[Path]:
        profile_config = self._profile_config(profile)
        if profile_config is not None and key in profile_config._secret_sources:
            return profile_config._secret_sources[key]
        return self._secret_sources.get(key)

    # -- profile views ------------------------------------------------------

    @staticmethod
    def get_profile(flag: Optional[str] = None, settings: Optional[Settings] = None) -> str:
        """Active profile: explicit flag, then settings (FNOX_PROFILE), then "default"."""
        if flag:
            return flag
        settings = settings or Settings.load()
        return settings.profile or DEFAULT_PROFILE

    def _profile_config(self, profile: str) -> Optional[ProfileConfig]:
        if profile == DEFAULT_PROFILE:
            return None
        return self.profiles.get(profile)

    def get_secrets(self, profile: str = DEFAULT_PROFILE) -> dict[str, SecretConfig]:
        """Top-level secrets extended by the profile's own secrets."""
        secrets = dict(self.secrets)
        profile_config = self._profile_config(profile)
        if profile_config is not None:
            secrets.update(profile_config.secrets)
        return secrets

    def get_secrets_mut(self, profile: str = DEFAULT_PROFILE) -> dict[str, SecretConfig]:
        """The secrets mapping that edits for ``profile`` should modify."""
        if profile == DEFAULT_PROFILE:
            return self.secrets
        return self.profiles.setdefault(profile, ProfileConfig()).secrets

    def get_providers(self, profile: str = DEFAULT_PROFILE) -> dict[str, ProviderConfig]:
        providers = dict(self.providers)
        profile_config = self._profile_config(profile)
        if profile_config is not None:
            providers.update(profile_config.providers)
        return providers

    def list_profiles(self) -> list[str]:
        return sorted({DEFAULT_PROFILE, *self.profiles})

    def get_default_provider(self, profile: str = DEFAULT_PROFILE) -> Optional[str]:
        """Name of the provider used by secrets that do not pick one.

        A profile-level ``default_provider`` beats the top-level one; either
        must name an existing provider. With no default declared, a sole
        configured provider is chosen.
        """
        providers = self.get_providers(profile)
        profile_config = self._profile_config(profile)

        candidates = []
        if profile_config is not None and profile_config.default_provider is not None:
            candidates.append(
                (profile_config.default_provider, profile_config._default_provider_source)
            )
        if self.default_provider is not None:
            candidates.append((self.default_provider, self._default_provider_source))

        if candidates:
            spanned, source_path = candidates[0]
            name = spanned.value
            if name not in providers:
                raise DefaultProviderNotFoundError(
                    name,
                    profile,
                    config_path=source_path,
                    span=spanned.span,
                    source=source_registry.get_source(source_path),
                    suggestion=suggest(name, providers),
                )
            return name

        if len(providers) == 1:
            return next(iter(providers))
        return None

    # -- validation ---------------------------------------------------------

    def is_empty_root(self) -> bool:
        return (
            self.root
            and not self.providers
            and not self.secrets
            and not self.profiles
            and self.default_provider is None
        )

    def collect_issues(self) -> list[ValidationIssue]:
        if self.is_empty_root():
            return []

        issues: list[ValidationIssue] = []
        for profile in self.list_profiles():
            issues.extend(self._profile_issues(profile))
        return issues

    def _profile_issues(self, profile: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        providers = self.get_providers(profile)
        secrets = self.get_secrets(profile)
        where = "" if profile == DEFAULT_PROFILE else f" in profile '{profile}'"

        default_provider: Optional[str] = None
        try:
            default_provider = self.get_default_provider(profile)
        except DefaultProviderNotFoundError as e:
            issues.append(ValidationIssue(str(e), e.help))

        needs_provider = [key for key, s in secrets.items() if s.value is not None]
        if needs_provider and not providers:
            issues.append(
                ValidationIssue(
                    f"Secrets with values are defined{where} but no providers are configured",
                    "Add a provider under [providers], e.g. [providers.plain] type = \"plain\"",
                )
            )

        for key, secret in secrets.items():
            provider_name = secret.provider_name or default_provider
            if secret.provider_name is not None and secret.provider_name not in providers:
                issues.append(
                    ValidationIssue(
                        f"Secret '{key}'{where} uses unknown provider '{secret.provider_name}'",
                        suggest(secret.provider_name, providers),
                    )
                )
                continue
            if secret.stored_value == "" and provider_name is not None:
                provider = providers.get(provider_name)
                if provider is not None and provider.type != "plain":
                    issues.append(
                        ValidationIssue(
                            f"Secret '{key}'{where} has an empty value for provider '{provider_name}'",
                            "Set a value or remove the 'value' key",
                        )
                    )
        return issues

    def validate_config(self) -> None:
        """Raise ``ConfigValidationError`` listing every issue found."""
        issues = self.collect_issues()
        if issues:
            raise ConfigValidationError(issues)


def merge_configs(base: Config, overlay: Config) -> Config:
    """Merge two configs; ``overlay`` wins every conflict.

    Imports are unioned in order, ``root`` is OR'ed, scalars are taken from
    the overlay when set, providers/secrets are overwritten per key and
    profiles are merged per key.
    """
    imports = list(base.imports)
    for path in overlay.imports:
        if path not in imports:
            imports.append(path)

    profiles = dict(base.profiles)
    for name, profile in overlay.profiles.items():
        if name in profiles:
            profiles[name] = _merge_profile(profiles[name], profile)
        else:
            profiles[name] = profile

    merged = Config(
        imports=imports,
        root=base.root or overlay.root,
        providers={**base.providers, **overlay.providers},
        default_provider=(
            overlay.default_provider
            if overlay.default_provider is not None
            else base.default_provider
        ),
        secrets={**base.secrets, **overlay.secrets},
        profiles=profiles,
        age_key_file=overlay.age_key_file if overlay.age_key_file is not None else base.age_key_file,
        if_missing=overlay.if_missing if overlay.if_missing is not None else base.if_missing,
        prompt_auth=overlay.prompt_auth if overlay.prompt_auth is not None else base.prompt_auth,
    )
    merged._provider_sources = {**base._provider_sources, **overlay._provider_sources}
    merged._secret_sources = {**base._secret_sources, **overlay._secret_sources}
    merged._default_provider_source = (
        overlay._default_provider_source
        if overlay.default_provider is not None
        else base._default_provider_source
    )
    return merged
