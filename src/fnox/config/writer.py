"""
Writing a config back to disk.

Existing files are edited in place with tomlkit so that comments and
unrelated keys survive. Providers and secrets are written as inline
tables, one per line, to keep diffs small. Empty profiles are pruned.
"""

import logging
from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.items import InlineTable, Table

from fnox.config import source_registry
from fnox.config.models import Config, ProfileConfig
from fnox.errors import ConfigError

logger = logging.getLogger(__name__)

_SCALAR_KEYS = ("default_provider", "age_key_file", "if_missing", "prompt_auth")


def _inline(data: dict[str, Any]) -> InlineTable:
    table = tomlkit.inline_table()
    for key, value in data.items():
        table[key] = _inline(value) if isinstance(value, dict) else value
    return table


def _entries_table(entries: dict[str, Any]) -> Table:
    table = tomlkit.table()
    for name, model in entries.items():
        data = model.model_dump(mode="json", by_alias=True, exclude_none=True)
        table.add(name, _inline(data))
    return table


def _set_or_remove(container: Any, key: str, value: Any) -> None:
    if value is None or value == []:
        if key in container:
            del container[key]
    else:
        container[key] = value


def _profile_table(profile: ProfileConfig) -> Table:
    table = tomlkit.table()
    if profile.default_provider is not None:
        table["default_provider"] = profile.default_provider.value
    if profile.providers:
        table.add("providers", _entries_table(profile.providers))
    if profile.secrets:
        table.add("secrets", _entries_table(profile.secrets))
    return table


def render_config(config: Config, existing: str = "") -> str:
    """Render ``config`` as TOML, editing ``existing`` text if given."""
    doc = tomlkit.parse(existing) if existing.strip() else tomlkit.document()

    _set_or_remove(doc, "import", list(config.imports))
    _set_or_remove(doc, "root", True if config.root else None)
    scalars = config.model_dump(mode="json", include=set(_SCALAR_KEYS), exclude_none=True)
    for key in _SCALAR_KEYS:
        _set_or_remove(doc, key, scalars.get(key))

    for key, entries in (("providers", config.providers), ("secrets", config.secrets)):
        if key in doc:
            del doc[key]
        if entries:
            doc.add(key, _entries_table(entries))

    if "profiles" in doc:
        del doc["profiles"]
    profiles = {name: p for name, p in config.profiles.items() if not p.is_empty()}
    if profiles:
        profiles_table = tomlkit.table(is_super_table=True)
        for name, profile in profiles.items():
            profiles_table.add(name, _profile_table(profile))
        doc.add("profiles", profiles_table)

    return tomlkit.dumps(doc)


def save_config(config: Config, path: Path) -> None:
    """Persist ``config`` to ``path``, keeping unrelated content intact."""
    path = Path(path)
    existing = ""
    if path.is_file():
        existing = path.read_text(encoding="utf-8")
    try:
        text = render_config(config, existing)
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}") from e
    source_registry.register(path, text)
    logger.debug(f"Saved config to {path}")
