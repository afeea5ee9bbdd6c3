"""
Config file discovery, parsing and hierarchical merging.

Starting from a directory, every candidate file in that directory is
merged (later names win), imports are layered underneath, and the result
is merged over the parent directory's effective config. Ascension stops
at a config declaring ``root = true``; the global config at
``<config-dir>/config.toml`` is always the lowest layer.
"""

import logging
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from fnox.config import source_registry
from fnox.config.models import Config, merge_configs
from fnox.config.spans import (
    find_default_provider_span,
    find_secret_field_span,
    parse_error_message,
    parse_error_span,
)
from fnox.errors import ConfigError, ConfigNotFoundError, ConfigParseError
from fnox.settings import DEFAULT_PROFILE, Settings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "fnox.toml"


def all_config_filenames(profile: Optional[str] = None) -> list[str]:
    """Candidate filenames for one directory, lowest precedence first."""
    names = ["fnox.toml", ".fnox.toml"]
    if profile and profile != DEFAULT_PROFILE:
        names += [f"fnox.{profile}.toml", f".fnox.{profile}.toml"]
    names += ["fnox.local.toml", ".fnox.local.toml"]
    return names


def _attach_spans(config: Config, text: str) -> None:
    if config.default_provider is not None:
        config.default_provider = config.default_provider.with_span(
            find_default_provider_span(text)
        )
    for key, secret in config.secrets.items():
        if secret.provider is not None:
            secret.provider = secret.provider.with_span(find_secret_field_span(text, key, "provider"))
        if secret.value is not None:
            secret.value = secret.value.with_span(find_secret_field_span(text, key, "value"))
    for name, profile in config.profiles.items():
        if profile.default_provider is not None:
            profile.default_provider = profile.default_provider.with_span(
                find_default_provider_span(text, name)
            )
        for key, secret in profile.secrets.items():
            if secret.provider is not None:
                secret.provider = secret.provider.with_span(
                    find_secret_field_span(text, key, "provider", name)
                )
            if secret.value is not None:
                secret.value = secret.value.with_span(
                    find_secret_field_span(text, key, "value", name)
                )


def _validation_error_span(text: str, error: ValidationError) -> Optional[tuple[int, int]]:
    """Point at the secret field named by the first pydantic error, if possible."""
    for detail in error.errors():
        loc = [str(part) for part in detail.get("loc", ())]
        if len(loc) >= 3 and loc[0] == "secrets":
            return find_secret_field_span(text, loc[1], loc[2])
        if len(loc) >= 5 and loc[0] == "profiles" and loc[2] == "secrets":
            return find_secret_field_span(text, loc[3], loc[4], loc[1])
        if loc and loc[0] == "default_provider":
            return find_default_provider_span(text)
    return None


def parse_config(text: str, path: Optional[Path] = None) -> Config:
    """Parse TOML text into a ``Config`` with spans attached.

    Raises:
        ConfigParseError: on TOML syntax errors or schema violations.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(
            parse_error_message(e), path=path, span=parse_error_span(text, e), source=text
        ) from e

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first['msg']}" if location else first["msg"]
        raise ConfigParseError(
            message, path=path, span=_validation_error_span(text, e), source=text
        ) from e

    _attach_spans(config, text)
    return config


def load_config_file(path: Path) -> Config:
    """Load one config file and record its provenance."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e

    source_registry.register(path, text)
    config = parse_config(text, path)
    config.set_source_paths(path)
    logger.debug(f"Loaded config file {path}")
    return config


def _resolve_import_path(base_dir: Path, entry: str) -> Path:
    candidate = Path(entry).expanduser()
    return candidate if candidate.is_absolute() else base_dir / candidate


def _apply_imports(config: Config, base_dir: Path) -> Config:
    """Layer ``config``'s imports underneath it; a missing import is an error."""
    result = config
    for entry in config.imports:
        import_path = _resolve_import_path(base_dir, entry)
        if not import_path.is_file():
            raise ConfigError(f"Import file not found: {import_path} (imported from {base_dir})")
        imported = load_config_file(import_path)
        result = merge_configs(imported, result)
    return result


def _load_global(settings: Settings) -> Optional[Config]:
    path = settings.global_config_path
    if not path.is_file():
        return None
    return load_config_file(path)


def _load_directory(directory: Path, filenames: list[str]) -> tuple[Optional[Config], bool]:
    config: Optional[Config] = None
    for name in filenames:
        path = directory / name
        if path.is_file():
            loaded = load_config_file(path)
            config = loaded if config is None else merge_configs(config, loaded)
    return config, config is not None


def _load_recursive(
    directory: Path, filenames: list[str], settings: Settings
) -> tuple[Config, bool]:
    config, found = _load_directory(directory, filenames)
    is_root = config is not None and config.root
    if config is not None:
        config = _apply_imports(config, directory)

    if config is not None and is_root:
        global_config = _load_global(settings)
        if global_config is not None:
            config = merge_configs(global_config, config)
        return config, True

    parent = directory.parent
    if parent != directory:
        parent_config, parent_found = _load_recursive(parent, filenames, settings)
        if config is None:
            return parent_config, parent_found
        return merge_configs(parent_config, config), True

    # filesystem root
    global_config = _load_global(settings)
    if global_config is not None:
        if config is None:
            return global_config, True
        return merge_configs(global_config, config), True
    return config or Config(), found


def load_with_recursion(
    start_dir: Optional[Path] = None, settings: Optional[Settings] = None
) -> tuple[Config, bool]:
    """Effective config for ``start_dir`` and whether any file was found."""
    settings = settings or Settings.load()
    start = Path(start_dir or Path.cwd()).resolve()
    filenames = all_config_filenames(settings.profile)
    return _load_recursive(start, filenames, settings)


def load_config(
    path: Optional[Path] = None,
    start_dir: Optional[Path] = None,
    settings: Optional[Settings] = None,
) -> Config:
    """Load an explicit config file, or the merged hierarchy from ``start_dir``.

    Raises:
        ConfigNotFoundError: if no config file exists anywhere in the chain.
    """
    settings = settings or Settings.load()
    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigNotFoundError(f"Config file '{path}' not found")
        config = load_config_file(path)
        return _apply_imports(config, path.resolve().parent)

    config, found = load_with_recursion(start_dir, settings)
    if not found:
        raise ConfigNotFoundError(
            f"No configuration file found in {Path(start_dir or Path.cwd())} or any parent directory"
        )
    return config


def _read_partial(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def find_config_files(
    start_dir: Optional[Path] = None, settings: Optional[Settings] = None
) -> list[Path]:
    """Files the loader would read, nearest directory first, global last."""
    settings = settings or Settings.load()
    filenames = all_config_filenames(settings.profile)
    directory = Path(start_dir or Path.cwd()).resolve()
    found: list[Path] = []

    while True:
        stop = False
        for name in filenames:
            path = directory / name
            if not path.is_file() or path in found:
                continue
            found.append(path)
            partial = _read_partial(path)
            for entry in partial.get("import", []):
                import_path = _resolve_import_path(directory, entry)
                if import_path.is_file() and import_path not in found:
                    found.append(import_path)
            if partial.get("root", False):
                stop = True
        if stop or directory.parent == directory:
            break
        directory = directory.parent

    global_path = settings.global_config_path
    if global_path.is_file() and global_path not in found:
        found.append(global_path)
    return found
