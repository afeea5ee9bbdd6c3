"""
Runtime settings for a single fnox invocation.

Settings are layered: built-in defaults, then ``FNOX_*`` environment
variables, then explicit overrides (normally CLI flags). The resulting
object is passed explicitly to the loader and the resolvers.
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROFILE = "default"

ENV_PROFILE = "FNOX_PROFILE"
ENV_CONFIG_DIR = "FNOX_CONFIG_DIR"
ENV_AGE_KEY_FILE = "FNOX_AGE_KEY_FILE"
ENV_IF_MISSING = "FNOX_IF_MISSING"
ENV_IF_MISSING_DEFAULT = "FNOX_IF_MISSING_DEFAULT"

_ENV_FIELDS = {
    "profile": ENV_PROFILE,
    "config_dir": ENV_CONFIG_DIR,
    "age_key_file": ENV_AGE_KEY_FILE,
    "if_missing": ENV_IF_MISSING,
    "if_missing_default": ENV_IF_MISSING_DEFAULT,
}


def default_config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    env = os.environ if environ is None else environ
    base = env.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "fnox"


class Settings(BaseModel):
    """Effective settings: defaults < environment < explicit overrides.

    ``if_missing`` and ``if_missing_default`` are kept as raw strings so
    that an unrecognized value can be reported at the point it is used.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    profile: str = DEFAULT_PROFILE
    config_dir: Path = Field(default_factory=default_config_dir)
    age_key_file: Optional[Path] = None
    if_missing: Optional[str] = None
    if_missing_default: Optional[str] = None

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "Settings":
        """Build settings from the environment plus non-None overrides."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {"config_dir": default_config_dir(env)}
        for field, var in _ENV_FIELDS.items():
            value = env.get(var)
            if value:
                values[field] = value
        for field, value in overrides.items():
            if value is not None:
                values[field] = value
        return cls(**values)

    @property
    def global_config_path(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def default_age_key_file(self) -> Path:
        return self.config_dir / "age.txt"
