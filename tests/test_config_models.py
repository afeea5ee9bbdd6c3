import logging

import pytest

from fnox.config import Config, IfMissing, merge_configs, parse_config
from fnox.errors import ConfigValidationError, DefaultProviderNotFoundError
from fnox.settings import Settings


class TestMergeConfigs:
    """The two-way merge: overlay wins every conflict."""

    def test_scalars_only_replaced_when_set(self):
        base = parse_config('age_key_file = "/base/age.txt"\nif_missing = "error"\nprompt_auth = true\n')
        overlay = parse_config('if_missing = "ignore"\n')

        merged = merge_configs(base, overlay)

        assert str(merged.age_key_file) == "/base/age.txt"
        assert merged.if_missing is IfMissing.IGNORE
        assert merged.prompt_auth is True

    def test_imports_unioned_without_duplicates(self):
        base = parse_config('import = ["a.toml", "b.toml"]\n')
        overlay = parse_config('import = ["b.toml", "c.toml"]\n')

        assert merge_configs(base, overlay).imports == ["a.toml", "b.toml", "c.toml"]

    def test_root_is_ored(self):
        assert merge_configs(parse_config("root = true\n"), Config()).root
        assert merge_configs(Config(), parse_config("root = true\n")).root
        assert not merge_configs(Config(), Config()).root

    def test_providers_and_secrets_overwritten_per_key(self):
        base = parse_config(
            """
[providers]
one = { type = "plain" }
two = { type = "age", recipients = ["age1base"] }

[secrets]
A = { default = "base" }
B = { default = "base" }
"""
        )
        overlay = parse_config(
            """
[providers]
two = { type = "age", recipients = ["age1overlay"] }

[secrets]
B = { default = "overlay" }
"""
        )

        merged = merge_configs(base, overlay)

        assert set(merged.providers) == {"one", "two"}
        assert merged.providers["two"].recipients == ["age1overlay"]
        assert merged.secrets["A"].default == "base"
        assert merged.secrets["B"].default == "overlay"

    def test_profiles_merged_per_key(self):
        base = parse_config(
            """
[profiles.prod]
default_provider = "one"

[profiles.prod.providers]
one = { type = "plain" }

[profiles.prod.secrets]
A = { default = "base" }

[profiles.staging.secrets]
S = { default = "staging" }
"""
        )
        overlay = parse_config(
            """
[profiles.prod.secrets]
B = { default = "overlay" }

[profiles.dev.secrets]
D = { default = "dev" }
"""
        )

        merged = merge_configs(base, overlay)

        prod = merged.profiles["prod"]
        assert set(prod.secrets) == {"A", "B"}
        assert prod.default_provider.value == "one"
        assert "one" in prod.providers
        assert set(merged.profiles) == {"prod", "staging", "dev"}

    def test_default_provider_follows_scalar_rule(self):
        base = parse_config('default_provider = "a"\n')
        assert merge_configs(base, Config()).default_provider.value == "a"
        overlay = parse_config('default_provider = "b"\n')
        assert merge_configs(base, overlay).default_provider.value == "b"


class TestProfileViews:
    CONFIG = """
[providers]
plain = { type = "plain" }

[secrets]
SHARED = { default = "top" }
OVERRIDDEN = { default = "top" }

[profiles.prod.providers]
extra = { type = "plain" }

[profiles.prod.secrets]
OVERRIDDEN = { default = "prod" }
PROD_ONLY = { default = "prod" }
"""

    def test_profile_extends_top_level(self):
        config = parse_config(self.CONFIG)

        secrets = config.get_secrets("prod")
        assert set(secrets) == {"SHARED", "OVERRIDDEN", "PROD_ONLY"}
        assert secrets["OVERRIDDEN"].default == "prod"
        assert set(config.get_providers("prod")) == {"plain", "extra"}

    def test_default_profile_ignores_profiles(self):
        config = parse_config(self.CONFIG)

        assert set(config.get_secrets("default")) == {"SHARED", "OVERRIDDEN"}
        assert set(config.get_providers()) == {"plain"}

    def test_unknown_profile_falls_back_to_top_level(self):
        config = parse_config(self.CONFIG)

        assert set(config.get_secrets("nope")) == {"SHARED", "OVERRIDDEN"}

    def test_list_profiles(self):
        assert parse_config(self.CONFIG).list_profiles() == ["default", "prod"]

    def test_get_profile_precedence(self, monkeypatch):
        assert Config.get_profile("cli", Settings.load()) == "cli"
        monkeypatch.setenv("FNOX_PROFILE", "env")
        assert Config.get_profile(None, Settings.load()) == "env"
        assert Config.get_profile("cli", Settings.load()) == "cli"
        monkeypatch.delenv("FNOX_PROFILE")
        assert Config.get_profile(None, Settings.load()) == "default"

    def test_get_secrets_mut_creates_profile(self):
        config = parse_config(self.CONFIG)

        config.get_secrets_mut("dev")["NEW"] = config.secrets["SHARED"]

        assert "NEW" in config.profiles["dev"].secrets
        assert config.get_secrets_mut() is config.secrets


class TestDefaultProvider:
    def test_sole_provider_is_selected(self):
        config = parse_config('[providers]\nonly = { type = "plain" }\n')
        assert config.get_default_provider() == "only"

    def test_no_providers(self):
        assert Config().get_default_provider() is None

    def test_ambiguous_without_default(self):
        config = parse_config('[providers]\na = { type = "plain" }\nb = { type = "plain" }\n')
        assert config.get_default_provider() is None

    def test_profile_default_beats_top_level(self):
        config = parse_config(
            """
default_provider = "a"

[providers]
a = { type = "plain" }
b = { type = "plain" }

[profiles.prod]
default_provider = "b"
"""
        )
        assert config.get_default_provider() == "a"
        assert config.get_default_provider("prod") == "b"

    def test_dangling_default_reports_span_and_suggestion(self, tmp_path, write_config):
        from fnox.config import load_config

        path = write_config(
            tmp_path / "p" / "fnox.toml",
            """
            default_provider = "plian"

            [providers]
            plain = { type = "plain" }
            """,
        )
        config = load_config(path=path)

        with pytest.raises(DefaultProviderNotFoundError) as exc_info:
            config.get_default_provider()

        error = exc_info.value
        assert error.provider == "plian"
        assert error.config_path == path
        assert "Did you mean 'plain'?" in error.render()
        assert '"plian"' in error.render()


class TestValidation:
    def test_empty_root_is_valid(self):
        parse_config("root = true\n").validate_config()

    def test_collects_every_issue(self):
        config = parse_config(
            """
default_provider = "missing"

[providers]
age = { type = "age", recipients = ["age1x"] }

[secrets]
EMPTY = { provider = "age", value = "" }
TYPO = { provider = "agee", value = "abc" }

[profiles.bare.secrets]
X = { value = "abc" }
"""
        )

        with pytest.raises(ConfigValidationError) as exc_info:
            config.validate_config()

        messages = [issue.message for issue in exc_info.value.issues]
        assert any("Default provider 'missing'" in m for m in messages)
        assert any("empty value" in m and "EMPTY" in m for m in messages)
        assert any("unknown provider 'agee'" in m for m in messages)
        helps = [issue.help for issue in exc_info.value.issues if issue.help]
        assert any("Did you mean 'age'?" in h for h in helps)

    def test_values_without_providers(self):
        config = parse_config('[secrets]\nX = { value = "abc" }\n')

        issues = config.collect_issues()

        assert len(issues) == 1
        assert "no providers are configured" in issues[0].message

    def test_plain_provider_allows_empty_value(self):
        config = parse_config(
            '[providers]\nplain = { type = "plain" }\n[secrets]\nX = { provider = "plain", value = "" }\n'
        )
        assert config.collect_issues() == []


class TestIfMissingParsing:
    def test_case_insensitive(self):
        assert IfMissing.parse("ERROR") is IfMissing.ERROR
        assert IfMissing.parse(" ignore ") is IfMissing.IGNORE

    def test_unknown_value_warns_and_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert IfMissing.parse("sometimes", "test") is IfMissing.WARN
        assert "sometimes" in caplog.text

    def test_unknown_value_in_config_is_lenient(self):
        config = parse_config('if_missing = "bogus"\n[secrets]\nA = { if_missing = "bogus" }\n')
        assert config.if_missing is IfMissing.WARN
        assert config.secrets["A"].if_missing is IfMissing.WARN

    def test_has_value(self):
        config = parse_config(
            '[secrets]\nENV_ONLY = { description = "x" }\nDEF = { default = "d" }\n'
        )
        assert not config.secrets["ENV_ONLY"].has_value()
        assert config.secrets["DEF"].has_value()
