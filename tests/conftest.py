"""
Global pytest configuration and fixtures.
"""

import logging
import os
import textwrap
from pathlib import Path
from typing import Optional

import pytest

from fnox.config import source_registry
from fnox.errors import ProviderSecretNotFoundError
from fnox.providers import PROVIDER_BUILDERS, Provider, ProviderCapability
from fnox.providers.config import PROVIDER_CONFIG_TYPES


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test without the caller's fnox environment.

    FNOX_* and provider credential variables are removed and the global
    config directory is pointed at an empty temporary directory, so neither
    a developer's ~/.config/fnox/config.toml nor their shell settings
    leak into tests.
    The source registry is cleared around each test.
    """
    for name in list(os.environ):
        if name.startswith("FNOX_") or name == "XDG_CONFIG_HOME":
            monkeypatch.delenv(name, raising=False)
    # batch resolution exports provider credentials; setenv first so that
    # teardown also removes values set during the test
    for config_cls in PROVIDER_CONFIG_TYPES:
        for name in config_cls.env_dependencies:
            monkeypatch.setenv(name, "")
            monkeypatch.delenv(name)

    global_dir = tmp_path / "global-config"
    global_dir.mkdir()
    monkeypatch.setenv("FNOX_CONFIG_DIR", str(global_dir))

    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level

    source_registry.clear()
    yield
    source_registry.clear()

    # CLI commands reconfigure logging; undo that for the next test
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def global_dir(tmp_path) -> Path:
    return tmp_path / "global-config"


@pytest.fixture
def write_config():
    """Write dedented TOML to a path, creating parent directories."""

    def _write(path: Path, text: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return path

    return _write


class FakeProvider(Provider):
    """In-memory provider serving a fixed mapping of references."""

    display_name = "fake"

    def __init__(
        self,
        values: dict[str, str],
        capabilities: Optional[set[ProviderCapability]] = None,
    ):
        self.values = dict(values)
        self.calls: list[str] = []
        self._capabilities = capabilities or {ProviderCapability.REMOTE_READ}

    def capabilities(self) -> set[ProviderCapability]:
        return self._capabilities

    async def get_secret(self, reference: str) -> str:
        self.calls.append(reference)
        if reference not in self.values:
            raise ProviderSecretNotFoundError(self.display_name, reference)
        return self.values[reference]


@pytest.fixture
def install_fake(monkeypatch):
    """Replace the builder for a provider type with one returning a FakeProvider.

    Returns a callable ``install(provider_type, values=None, error=None)``
    which itself returns the list of resolved configs the builder received.
    Passing ``error`` makes building the provider fail with that exception.
    """

    def _install(provider_type: str, values: Optional[dict[str, str]] = None, error=None):
        built: list = []

        def builder(config, age_key_file):
            built.append(config)
            if error is not None:
                raise error
            return FakeProvider(values or {})

        monkeypatch.setitem(PROVIDER_BUILDERS, provider_type, builder)
        return built

    return _install
