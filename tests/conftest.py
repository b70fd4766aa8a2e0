"""Pytest configuration and fixtures for Kiln tests."""

import pytest

from kiln import DictLoader, Environment
from kiln.environment import terminal


@pytest.fixture(autouse=True)
def _plain_terminal(monkeypatch):
    """Render error messages without ANSI colours unless a test opts in."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def env():
    """Create a basic Kiln Environment."""
    return Environment()


@pytest.fixture
def env_raw():
    """Create an Environment with auto_escape disabled."""
    return Environment(auto_escape=False)


@pytest.fixture
def env_debug():
    """Create an Environment with debug instrumentation."""
    return Environment(debug=True)


@pytest.fixture
def env_with_loader():
    """Create a Kiln Environment with DictLoader and test templates."""
    loader = DictLoader(
        {
            "base.html": (
                "<html><title><%= it['title'] %></title>"
                "<body><%~ it['body'] %></body></html>"
            ),
            "page.html": "<% layout('base.html') %><p>Hello World</p>",
            "partial.html": "<p>Partial <%= it.get('name', 'content') %></p>",
            "pages/home.html": "<%~ include('./nav.html') %>|<%~ include('../partial.html') %>",
            "pages/nav.html": "<nav>Home</nav>",
        }
    )
    return Environment(loader=loader)


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace.

    Args:
        template_result: The actual template rendering result.
        expected: The expected output.
    """
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )


def assert_contains(template_result: str, *expected_parts: str) -> None:
    """Assert template result contains all expected parts.

    Args:
        template_result: The actual template rendering result.
        expected_parts: Strings that should all be present in the result.
    """
    for part in expected_parts:
        assert part in template_result, (
            f"Template output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {template_result!r}"
        )
