"""Tests for runtime error context: lines, snippets and template stacks."""

import pytest

from kiln import DictLoader, Environment, FileSystemLoader, Tag, TagKind
from kiln.environment.exceptions import (
    ErrorCode,
    IncludeDepthError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    UndefinedError,
    build_source_snippet,
    format_template_stack,
)


class TestDebugRuntimeErrors:
    """Debug-mode templates convert failures into TemplateRuntimeError."""

    def test_line_and_snippet(self, env_debug):
        source = "<ul>\n<% for x in it['xs']: %>\n<li><%= 1 // x %></li>\n<% end %>\n</ul>"
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env_debug.render_string(source, {"xs": [1, 0]})

        error = exc_info.value
        assert error.lineno == 3
        assert "ZeroDivisionError" in error.message
        assert error.source_snippet is not None
        assert error.source_snippet.error_line == 3
        assert ">  3 | <li><%= 1 // x %></li>" in str(error)

    def test_original_exception_chained(self, env_debug):
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env_debug.render_string("<%= it['missing'] %>")
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert "KeyError: 'missing'" in exc_info.value.message

    def test_name_error_becomes_undefined_error(self, env_debug):
        with pytest.raises(UndefinedError) as exc_info:
            env_debug.render_string("line one\n<%= undefined_var %>")
        error = exc_info.value
        assert error.name == "undefined_var"
        assert error.lineno == 2
        assert error.code is ErrorCode.UNDEFINED_VARIABLE

    def test_location_uses_template_name(self):
        env = Environment(DictLoader({"cart.html": "<%= 1 / 0 %>"}), debug=True)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render("cart.html")
        assert exc_info.value.template_name == "cart.html"
        assert "Location: cart.html:1" in str(exc_info.value)

    def test_location_prefers_filepath(self, tmp_path):
        (tmp_path / "cart.html").write_text("ok\n<%= 1 / 0 %>")
        env = Environment(FileSystemLoader(tmp_path), debug=True)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render("cart.html")
        assert exc_info.value.template_name == str(tmp_path / "cart.html")
        assert f"{tmp_path / 'cart.html'}:2" in str(exc_info.value)

    def test_template_errors_pass_through(self, env_debug):
        def fail():
            raise TemplateNotFoundError("custom failure")

        template = env_debug.from_string("<%= it['fail']() %>")
        with pytest.raises(TemplateNotFoundError, match="custom failure"):
            template.render(fail=fail)

    def test_non_debug_errors_are_raw(self, env):
        with pytest.raises(ZeroDivisionError):
            env.render_string("<%= 1 // 0 %>")
        with pytest.raises(NameError):
            env.render_string("<%= undefined_var %>")

    def test_state_starts_on_first_line(self, env_debug):
        assert env_debug.new_state("x").line == 1

    def test_failure_before_first_marker_points_at_line_one(self):
        class InjectCheck:
            def process_ast(self, ast, config):
                return (Tag(TagKind.EXECUTE, "assert it['ok'], 'not ok'"), *ast)

        env = Environment(debug=True, plugins=(InjectCheck(),))
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render_string("first\n<%= 1 %>", {"ok": False})
        error = exc_info.value
        assert error.lineno == 1
        assert error.source_snippet is not None
        assert ">  1 | first" in str(error)

    def test_error_before_any_tag_has_no_line(self):
        error = Environment(debug=True).runtime_error(ValueError("boom"), "x", 0, None)
        assert error.lineno is None
        assert error.source_snippet is None
        assert error.message == "ValueError: boom"

    def test_empty_message_described(self):
        error = Environment(debug=True).runtime_error(StopIteration(), None, 0, None)
        assert error.message == "StopIteration (no details available)"


class TestTemplateStackTraces:
    """Errors inside included templates list the include chain."""

    def test_single_template_no_stack(self, env_debug):
        with pytest.raises(UndefinedError) as exc_info:
            env_debug.render_string("<%= undefined_var %>")
        assert exc_info.value.template_stack == []
        assert "Template stack:" not in str(exc_info.value)

    def test_nested_include_shows_stack(self, tmp_path):
        (tmp_path / "base.html").write_text("<html>\n<%~ include('nav.html') %>\n</html>")
        (tmp_path / "nav.html").write_text("<nav><%= undefined_var %></nav>")

        env = Environment(loader=FileSystemLoader(str(tmp_path)), debug=True)
        with pytest.raises(UndefinedError) as exc_info:
            env.render("base.html")

        error = exc_info.value
        assert error.template_stack == ["base.html"]
        assert "Template stack:" in str(error)
        assert "nav.html:1" in str(error)

    def test_deeply_nested_includes_full_stack(self):
        loader = DictLoader(
            {
                "page.html": "<%~ include('layout.html') %>",
                "layout.html": "<%~ include('sidebar.html') %>",
                "sidebar.html": "<%= 1 // 0 %>",
            }
        )
        env = Environment(loader=loader, debug=True)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render("page.html")

        error = exc_info.value
        assert error.template_stack == ["page.html", "layout.html"]
        assert error.template_name == "sidebar.html"

    def test_layout_appears_in_stack(self):
        loader = DictLoader(
            {
                "base.html": "<%= it['title'].upper() %><%~ it['body'] %>",
                "page.html": "<% layout('base.html') %>body",
            }
        )
        env = Environment(loader=loader, debug=True)
        with pytest.raises(TemplateRuntimeError) as exc_info:
            env.render("page.html", {"title": None})
        assert exc_info.value.template_stack == ["page.html"]
        assert exc_info.value.template_name == "base.html"

    def test_format_template_stack(self):
        assert format_template_stack([]) == ""
        assert format_template_stack(["a.html", "b.html"]) == (
            "Template stack:\n  • a.html\n  • b.html"
        )


class TestIncludeDepth:
    def test_self_include_stops(self):
        env = Environment(DictLoader({"loop.html": "x<%~ include('loop.html') %>"}), max_include_depth=5)
        with pytest.raises(IncludeDepthError) as exc_info:
            env.render("loop.html")

        error = exc_info.value
        assert "Maximum include depth exceeded (5)" in error.message
        assert len(error.template_stack) == 5
        assert error.code is ErrorCode.INCLUDE_DEPTH

    def test_circular_layouts_stop(self):
        loader = DictLoader(
            {
                "a.html": "<% layout('b.html') %>a",
                "b.html": "<% layout('a.html') %>b",
            }
        )
        env = Environment(loader, debug=True, max_include_depth=4)
        with pytest.raises(IncludeDepthError):
            env.render("a.html")

    def test_depth_within_limit_renders(self):
        loader = DictLoader(
            {"n.html": "<%= it['n'] %><% if it['n']: %><%~ include('n.html', {'n': it['n'] - 1}) %><% end %>"}
        )
        env = Environment(loader, max_include_depth=5)
        assert env.render("n.html", {"n": 5}) == "543210"


class TestErrorFormatting:
    def test_undefined_suggestion(self):
        error = UndefinedError("titel", frozenset({"title", "body"}))
        assert "Did you mean 'title'?" in str(error)
        assert "it.get('titel')" in str(error)

    def test_undefined_without_match(self):
        error = UndefinedError("zzz", frozenset({"title"}))
        assert "Did you mean" not in str(error)

    def test_format_compact_runtime(self):
        snippet = build_source_snippet("a\nb\nc", 2)
        error = TemplateRuntimeError(
            "boom",
            template_name="page.html",
            lineno=2,
            suggestion="check b",
            source_snippet=snippet,
        )
        compact = error.format_compact()
        assert compact.startswith("K-RUN-007: boom")
        assert "Location: page.html:2" in compact
        assert ">  2 | b" in compact
        assert "Hint: check b" in compact
        assert ErrorCode.RUNTIME_ERROR.docs_url in compact

    def test_format_compact_base(self):
        error = TemplateNotFoundError("missing.html")
        assert error.format_compact() == (
            f"K-TPL-001: missing.html\n  Docs: {ErrorCode.TEMPLATE_NOT_FOUND.docs_url}"
        )

    def test_snippet_context_window(self):
        source = "\n".join(f"line {i}" for i in range(1, 11))
        snippet = build_source_snippet(source, 5, context_lines=1)
        assert snippet.lines == ((4, "line 4"), (5, "line 5"), (6, "line 6"))

    def test_snippet_clamped_at_edges(self):
        snippet = build_source_snippet("only", 1)
        assert snippet.lines == ((1, "only"),)

    def test_error_codes(self):
        assert ErrorCode.UNDEFINED_VARIABLE.category == "runtime"
        assert ErrorCode.INVALID_CONFIG.category == "config"
        assert ErrorCode.SYNTAX_ERROR.category == "template"
        assert ErrorCode.INCLUDE_DEPTH.docs_url.endswith("#k-run-006")

    def test_all_errors_are_template_errors(self):
        for error_type in (TemplateRuntimeError, UndefinedError, IncludeDepthError, TemplateNotFoundError):
            assert issubclass(error_type, TemplateError)
