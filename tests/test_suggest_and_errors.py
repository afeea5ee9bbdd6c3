from pathlib import Path

from fnox.errors import (
    ConfigParseError,
    ConfigValidationError,
    ProviderNotConfiguredError,
    ValidationIssue,
    render_span,
)
from fnox.suggest import find_similar, format_suggestions, suggest


class TestSuggestions:
    def test_close_match(self):
        assert find_similar("plian", ["plain", "vault", "age"]) == ["plain"]

    def test_case_insensitive(self):
        assert find_similar("DATABASE_URL", ["database_url"]) == ["database_url"]

    def test_no_match_below_threshold(self):
        assert find_similar("zzz", ["plain", "vault"]) == []
        assert suggest("zzz", ["plain"]) is None

    def test_top_three_best_first(self):
        candidates = ["api_key_1", "api_key_2", "api_key_3", "api_key", "unrelated"]
        result = find_similar("api_key", candidates)
        assert len(result) == 3
        assert result[0] == "api_key"
        assert "unrelated" not in result

    def test_formatting(self):
        assert format_suggestions([]) is None
        assert format_suggestions(["a"]) == "Did you mean 'a'?"
        assert format_suggestions(["a", "b"]) == "Did you mean one of: 'a', 'b'?"


class TestRendering:
    SOURCE = 'root = true\n[secrets]\nA = { provider = "plian", value = "x" }\n'

    def test_render_span_points_at_value(self):
        start = self.SOURCE.index('"plian"')
        snippet = render_span(Path("fnox.toml"), self.SOURCE, (start, start + 7))

        lines = snippet.splitlines()
        assert lines[0] == "  --> fnox.toml:3:18"
        assert lines[2] == '3 | A = { provider = "plian", value = "x" }'
        assert lines[3] == "  | " + " " * 17 + "^" * 7

    def test_render_span_without_source(self):
        assert render_span(None, None, (0, 1)) == ""
        assert render_span(None, "x", None) == ""

    def test_provider_not_configured_render(self):
        start = self.SOURCE.index('"plian"')
        error = ProviderNotConfiguredError(
            "plian",
            "default",
            config_path=Path("fnox.toml"),
            suggestion="Did you mean 'plain'?",
            span=(start, start + 7),
            source=self.SOURCE,
        )

        rendered = error.render()
        assert rendered.startswith("Provider 'plian' not configured in profile 'default'")
        assert "help: Did you mean 'plain'?" in rendered
        assert "fnox.toml:3:18" in rendered

    def test_parse_error_message(self):
        error = ConfigParseError("Invalid value", path=Path("fnox.toml"))
        assert str(error) == "Failed to parse fnox.toml: Invalid value"
        assert error.render() == str(error)

    def test_validation_error_lists_issues(self):
        error = ConfigValidationError(
            [ValidationIssue("first problem", "fix it"), ValidationIssue("second problem")]
        )
        assert error.message == "Configuration validation failed with 2 issues"
        assert error.render().splitlines() == [
            "Configuration validation failed with 2 issues",
            "  - first problem",
            "    help: fix it",
            "  - second problem",
        ]
