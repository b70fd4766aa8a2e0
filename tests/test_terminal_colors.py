"""Tests for ANSI styling of error messages."""

import re

import pytest

from kiln.environment import terminal
from kiln.environment.exceptions import SourceSnippet, UndefinedError

ANSI = re.compile(r"\x1b\[[0-9;]*m")


@pytest.fixture
def colors_on(monkeypatch):
    monkeypatch.setattr(terminal, "_USE_COLORS", True)


class TestColorDetection:
    """Environment variables decide whether styling is applied."""

    def test_no_color_disables(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setenv("NO_COLOR", "1")
        assert not terminal._should_use_colors()

    def test_force_color_overrides_no_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        monkeypatch.setenv("FORCE_COLOR", "1")
        assert terminal._should_use_colors()

    def test_stream_without_isatty(self, monkeypatch):
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setattr("sys.stdout", object())
        assert not terminal._should_use_colors()


class TestStyle:
    def test_plain_when_disabled(self):
        assert terminal.style("K-RUN-001", "code") == "K-RUN-001"

    @pytest.mark.parametrize(
        ("role", "sgr"),
        [
            ("code", "91;1"),
            ("location", "36"),
            ("gutter", "33"),
            ("offending", "91"),
            ("hint", "32"),
            ("match", "92;1"),
            ("muted", "2"),
            ("link", "94"),
        ],
    )
    def test_role_sequences(self, colors_on, role, sgr):
        assert terminal.style("x", role) == f"\033[{sgr}mx\033[0m"


class TestErrorFormatting:
    def test_format_error_header(self):
        assert terminal.format_error_header("K-RUN-001", "Broken") == "K-RUN-001: Broken"
        assert terminal.format_error_header(None, "Broken") == "Broken"

    def test_format_source_line(self):
        assert terminal.format_source_line(42, "<%= user %>") == "  42 | <%= user %>"
        assert terminal.format_source_line(7, "<%= x %>", is_error=True) == ">  7 | <%= x %>"

    def test_format_source_line_colored(self, colors_on):
        normal = terminal.format_source_line(1, "a")
        error = terminal.format_source_line(1, "a", is_error=True)
        assert "\033[2ma\033[0m" in normal
        assert "\033[91ma\033[0m" in error
        assert ANSI.sub("", error) == ">  1 | a"

    def test_snippet_layout_survives_colors(self, colors_on):
        snippet = SourceSnippet(lines=((1, "<ul>"), (2, "<%= x %>")), error_line=2)
        assert ANSI.sub("", snippet.format()) == "   |\n   1 | <ul>\n>  2 | <%= x %>\n   |"

    def test_exception_messages_readable_without_colors(self):
        error = UndefinedError("undefined_var", template_name="test.html", lineno=5)
        error_str = str(error)
        assert "undefined_var" in error_str
        assert "test.html:5" in error_str
        assert "Suggestion:" in error_str
        assert "\033[" not in error_str

    def test_did_you_mean_highlighted(self, colors_on):
        error = UndefinedError("titel", available_names=frozenset({"title"}))
        assert "Did you mean '\033[92;1mtitle\033[0m'?" in error.message
