"""Configuration models, loading, merging and persistence."""

from fnox.config.loader import (
    all_config_filenames,
    find_config_files,
    load_config,
    load_config_file,
    load_with_recursion,
    parse_config,
)
from fnox.config.models import Config, IfMissing, ProfileConfig, SecretConfig, merge_configs
from fnox.config.spanned import SpannedValue
from fnox.config.writer import save_config

__all__ = [
    "Config",
    "IfMissing",
    "ProfileConfig",
    "SecretConfig",
    "SpannedValue",
    "all_config_filenames",
    "find_config_files",
    "load_config",
    "load_config_file",
    "load_with_recursion",
    "merge_configs",
    "parse_config",
    "save_config",
]
