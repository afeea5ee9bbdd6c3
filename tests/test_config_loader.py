from pathlib import Path

import pytest

from fnox.config import (
    all_config_filenames,
    find_config_files,
    load_config,
    load_with_recursion,
    parse_config,
)
from fnox.config import source_registry
from fnox.errors import ConfigError, ConfigNotFoundError, ConfigParseError
from fnox.settings import Settings


def _value(config, key, profile="default"):
    return config.get_secrets(profile)[key].stored_value


class TestCandidateFilenames:
    """Per-directory filename order."""

    def test_default_profile(self):
        assert all_config_filenames("default") == [
            "fnox.toml",
            ".fnox.toml",
            "fnox.local.toml",
            ".fnox.local.toml",
        ]

    def test_named_profile_sits_between_base_and_local(self):
        assert all_config_filenames("prod") == [
            "fnox.toml",
            ".fnox.toml",
            "fnox.prod.toml",
            ".fnox.prod.toml",
            "fnox.local.toml",
            ".fnox.local.toml",
        ]


class TestDirectoryMerge:
    """Files in one directory fold together, later names winning."""

    def test_local_beats_dotfile_beats_plain(self, tmp_path, write_config):
        project = tmp_path / "project"
        write_config(
            project / "fnox.toml",
            """
            [providers]
            plain = { type = "plain" }

            [secrets]
            A = { provider = "plain", value = "plain" }
            B = { provider = "plain", value = "plain" }
            C = { provider = "plain", value = "plain" }
            """,
        )
        write_config(
            project / ".fnox.toml",
            """
            [secrets]
            B = { provider = "plain", value = "dot" }
            C = { provider = "plain", value = "dot" }
            """,
        )
        write_config(
            project / "fnox.local.toml",
            """
            [secrets]
            C = { provider = "plain", value = "local" }
            """,
        )

        config, found = load_with_recursion(project, Settings.load())

        assert found
        assert _value(config, "A") == "plain"
        assert _value(config, "B") == "dot"
        assert _value(config, "C") == "local"
        assert config.secret_source("C") == project / "fnox.local.toml"
        assert "plain" in config.providers

    def test_profile_file_only_read_for_that_profile(self, tmp_path, write_config):
        project = tmp_path / "project"
        write_config(project / "fnox.toml", 'root = true\n[secrets]\nA = { default = "base" }\n')
        write_config(project / "fnox.prod.toml", '[secrets]\nA = { default = "prod" }\n')

        default_config, _ = load_with_recursion(project, Settings.load())
        prod_config, _ = load_with_recursion(project, Settings.load(profile="prod"))

        assert default_config.secrets["A"].default == "base"
        assert prod_config.secrets["A"].default == "prod"


class TestHierarchy:
    """Parent directories are merged underneath child directories."""

    def test_child_overrides_parent(self, tmp_path, write_config):
        parent = tmp_path / "parent"
        child = parent / "child"
        write_config(parent / "fnox.toml", '[secrets]\nA = { default = "p" }\nB = { default = "p" }\n')
        write_config(child / "fnox.toml", '[secrets]\nB = { default = "c" }\nC = { default = "c" }\n')

        config, found = load_with_recursion(child, Settings.load())

        assert found
        assert config.secrets["A"].default == "p"
        assert config.secrets["B"].default == "c"
        assert config.secrets["C"].default == "c"
        assert config.secret_source("A") == parent / "fnox.toml"
        assert config.secret_source("B") == child / "fnox.toml"

    def test_directory_without_config_inherits_parent(self, tmp_path, write_config):
        parent = tmp_path / "parent"
        nested = parent / "a" / "b"
        nested.mkdir(parents=True)
        write_config(parent / "fnox.toml", '[secrets]\nA = { default = "p" }\n')

        config, found = load_with_recursion(nested, Settings.load())

        assert found
        assert config.secrets["A"].default == "p"

    def test_root_stops_ascent(self, tmp_path, write_config):
        outer = tmp_path / "outer"
        project = outer / "project"
        child = project / "child"
        write_config(outer / "fnox.toml", '[secrets]\nOUTER = { default = "o" }\n')
        write_config(project / "fnox.toml", 'root = true\n[secrets]\nPROJECT = { default = "p" }\n')
        write_config(child / "fnox.toml", '[secrets]\nCHILD = { default = "c" }\n')

        config, _ = load_with_recursion(child, Settings.load())

        assert set(config.secrets) == {"PROJECT", "CHILD"}
        assert config.root

    def test_global_config_merged_under_root(self, tmp_path, global_dir, write_config):
        project = tmp_path / "project"
        write_config(
            global_dir / "config.toml",
            '[secrets]\nGLOBAL = { default = "g" }\nSHARED = { default = "g" }\n',
        )
        write_config(project / "fnox.toml", 'root = true\n[secrets]\nSHARED = { default = "p" }\n')

        config, _ = load_with_recursion(project, Settings.load())

        assert config.secrets["GLOBAL"].default == "g"
        assert config.secrets["SHARED"].default == "p"

    def test_global_config_alone_counts_as_found(self, tmp_path, global_dir, write_config):
        empty = tmp_path / "empty"
        empty.mkdir()
        write_config(global_dir / "config.toml", '[secrets]\nGLOBAL = { default = "g" }\n')

        config, found = load_with_recursion(empty, Settings.load())

        assert found
        assert config.secrets["GLOBAL"].default == "g"

    def test_nothing_found(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()

        config, found = load_with_recursion(empty, Settings.load())

        assert not found
        assert config.secrets == {}
        with pytest.raises(ConfigNotFoundError) as exc_info:
            load_config(start_dir=empty)
        assert "fnox init" in exc_info.value.render()


class TestImports:
    """Imports are layered underneath the importing file."""

    def test_import_order_and_precedence(self, tmp_path, write_config):
        project = tmp_path / "project"
        write_config(
            project / "shared" / "first.toml",
            '[secrets]\nA = { default = "first" }\nB = { default = "first" }\n',
        )
        write_config(
            project / "shared" / "second.toml",
            '[secrets]\nB = { default = "second" }\nC = { default = "second" }\n',
        )
        write_config(
            project / "fnox.toml",
            """
            root = true
            import = ["shared/first.toml", "shared/second.toml"]

            [secrets]
            A = { default = "project" }
            """,
        )

        config, _ = load_with_recursion(project, Settings.load())

        assert config.secrets["A"].default == "project"
        assert config.secrets["B"].default == "first"
        assert config.secrets["C"].default == "second"
        assert config.imports == ["shared/first.toml", "shared/second.toml"]

    def test_imports_then_parent(self, tmp_path, write_config):
        parent = tmp_path / "parent"
        child = parent / "child"
        write_config(parent / "fnox.toml", '[secrets]\nX = { default = "parent" }\n')
        write_config(child / "extra.toml", '[secrets]\nX = { default = "import" }\n')
        write_config(child / "fnox.toml", 'import = ["extra.toml"]\n')

        config, _ = load_with_recursion(child, Settings.load())

        # the child's import still outranks the parent directory
        assert config.secrets["X"].default == "import"

    def test_missing_import_is_an_error(self, tmp_path, write_config):
        project = tmp_path / "project"
        write_config(project / "fnox.toml", 'import = ["nope.toml"]\n')

        with pytest.raises(ConfigError, match="Import file not found"):
            load_with_recursion(project, Settings.load())


class TestParsing:
    """Parse failures carry a span into the registered source."""

    def test_syntax_error_has_span(self, tmp_path, write_config):
        path = write_config(tmp_path / "p" / "fnox.toml", '[secrets]\nA = { default = \n')

        with pytest.raises(ConfigParseError) as exc_info:
            load_config(path=path)

        error = exc_info.value
        assert error.path == path
        assert error.span is not None
        assert error.source == source_registry.get_source(path)
        rendered = error.render()
        assert str(path) in rendered
        assert "^" in rendered

    def test_unknown_provider_type_is_rejected(self):
        with pytest.raises(ConfigParseError):
            parse_config('[providers]\nx = { type = "nonexistent" }\n')

    def test_unknown_top_level_key_is_rejected(self):
        with pytest.raises(ConfigParseError, match="bogus"):
            parse_config("bogus = 1\n")

    def test_spans_recorded_for_inline_secret(self):
        text = '[secrets]\nAPI = { provider = "plain", value = "abc" }\n'
        config = parse_config(text)

        start, end = config.secrets["API"].value.span
        assert text.encode()[start:end] == b'"abc"'
        start, end = config.secrets["API"].provider.span
        assert text.encode()[start:end] == b'"plain"'

    def test_spans_recorded_for_secret_table(self):
        text = '[secrets.API]\nprovider = "plain"\nvalue = "abc"\n'
        config = parse_config(text)

        start, end = config.secrets["API"].value.span
        assert text.encode()[start:end] == b'"abc"'

    def test_secret_ref_fields_parse(self):
        config = parse_config(
            """
[providers]
vault = { type = "vault", address = "http://vault:8200", token = { secret = "VAULT_TOKEN" } }
"""
        )
        vault = config.providers["vault"]
        assert vault.address == "http://vault:8200"
        assert vault.token.secret == "VAULT_TOKEN"
        assert vault.secret_refs() == {"token": "VAULT_TOKEN"}


class TestExplicitPathAndDiscovery:
    def test_explicit_path_skips_hierarchy(self, tmp_path, write_config):
        parent = tmp_path / "parent"
        write_config(parent / "fnox.toml", '[secrets]\nPARENT = { default = "p" }\n')
        path = write_config(parent / "child" / "custom.toml", '[secrets]\nONLY = { default = "x" }\n')

        config = load_config(path=path)

        assert set(config.secrets) == {"ONLY"}

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ConfigNotFoundError):
            load_config(path=tmp_path / "missing.toml")

    def test_find_config_files_order(self, tmp_path, global_dir, write_config):
        project = tmp_path / "project"
        child = project / "child"
        write_config(global_dir / "config.toml", "")
        write_config(project / "fnox.toml", 'root = true\nimport = ["lib.toml"]\n')
        write_config(project / "lib.toml", "")
        write_config(child / "fnox.toml", "")
        write_config(child / "fnox.local.toml", "")

        files = find_config_files(child, Settings.load())

        assert files == [
            child / "fnox.toml",
            child / "fnox.local.toml",
            project / "fnox.toml",
            project / "lib.toml",
            global_dir / "config.toml",
        ]
