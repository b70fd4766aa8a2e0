"""Exceptions for the Kiln template system.

Exception Hierarchy:
TemplateError (base)
├── ConfigurationError        # Invalid delimiters, prefixes or options
├── TemplateNotFoundError     # Template not found by loader
├── TemplateSyntaxError       # Generated render function does not compile
└── TemplateRuntimeError      # Render-time error with context (debug mode)
    ├── UndefinedError        # Name not defined in the template or its data
    └── IncludeDepthError     # include()/layout() recursion limit reached

Error Messages:
Runtime errors raised from debug-mode templates carry the template path,
the line of the last tag that ran, and a snippet of the template source:

    ```
    Runtime Error: division by zero
      Location: pages/cart.html:5
       |
      3 | <ul>
      4 | <% for item in it['items']: %>
    > 5 |   <li><%= item.price / item.qty %></li>
       |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from kiln.environment import terminal

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

_KILN_DOCS_BASE = "https://kiln-templates.readthedocs.io/en/latest/errors"


class ErrorCode(Enum):
    """Searchable error codes for Kiln template errors.

    Format: K-{CATEGORY}-{NUMBER}
    Categories: CFG (configuration), RUN (runtime), TPL (template loading)
    """

    # Configuration errors (K-CFG-xxx)
    INVALID_CONFIG = "K-CFG-001"

    # Runtime errors (K-RUN-xxx)
    UNDEFINED_VARIABLE = "K-RUN-001"
    INCLUDE_DEPTH = "K-RUN-006"
    RUNTIME_ERROR = "K-RUN-007"

    # Template loading errors (K-TPL-xxx)
    TEMPLATE_NOT_FOUND = "K-TPL-001"
    SYNTAX_ERROR = "K-TPL-002"

    @property
    def docs_url(self) -> str:
        """Documentation URL for this error code."""
        anchor = self.value.lower()
        return f"{_KILN_DOCS_BASE}/#{anchor}"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'config', 'template')."""
        prefix = self.value.split("-")[1]
        return {
            "CFG": "config",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[str] | None) -> str:
    """Format the include/layout chain for error messages, outermost first.

    Example:
        >>> print(format_template_stack(["page.html", "layout.html"]))
        Template stack:
          • page.html
          • layout.html
    """
    if not stack:
        return ""

    lines = [terminal.style("Template stack:", "muted")]
    for template_name in stack:
        lines.append(f"  • {terminal.style(template_name, 'location')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int

    def format(self) -> str:
        """Format snippet in Rust-inspired diagnostic style with colors."""
        parts: list[str] = [terminal.style("   |", "muted")]
        for lineno, content in self.lines:
            is_error = lineno == self.error_line
            parts.append(terminal.format_source_line(lineno, content, is_error=is_error))
        parts.append(terminal.style("   |", "muted"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
) -> SourceSnippet:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
    """
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line)


class TemplateError(Exception):
    """Base exception for all Kiln template errors.

        >>> try:
        ...     env.render("page.html", data)
        ... except TemplateError as e:
        ...     log.error("Template error: %s", e)

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format error as a short diagnostic with its docs link."""
        parts: list[str] = []

        header = str(self)
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        parts.append(header)

        if self.code:
            parts.append(f"  Docs: {self.code.docs_url}")

        return "\n".join(parts)


class ConfigurationError(TemplateError):
    """Invalid parser or generator configuration.

    Raised before any scanning happens, e.g. when two tag kinds share a
    prefix or a delimiter is empty.
    """

    code: ErrorCode | None = ErrorCode.INVALID_CONFIG


class TemplateNotFoundError(TemplateError):
    """Template not found by any configured loader."""

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


class TemplateSyntaxError(TemplateError):
    """The render function generated for a template does not compile.

    Tag bodies are opaque Python text, so syntax problems inside them only
    show up when the generated function is compiled. ``lineno`` refers to
    the generated code; the offending generated line is kept in ``code_line``.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        filename: str | None = None,
        code_line: str | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.filename = filename
        self.code_line = code_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        location = self.filename or self.name or "<template>"
        header = f"Syntax Error: {self.message}\n  --> {location}"
        if self.code_line:
            header += f"\n   | {self.code_line.strip()}"
        return header


class TemplateRuntimeError(TemplateError):
    """Render-time error with template context.

    Produced by debug-mode templates: the generated function wraps its body
    and converts failures into this error, pointing at the template line of
    the last tag that started executing.

    Attributes:
        message: Error description
        template_name: Name or path of the template
        lineno: Line number in template source
        suggestion: Actionable fix suggestion
        source_snippet: Template lines around ``lineno``
        template_stack: Names of the templates that included this one

    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        lineno: int | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[str] | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.lineno = lineno
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]

        if self.template_name or self.lineno:
            loc = self.template_name or "<template>"
            if self.lineno:
                loc += f":{self.lineno}"
            parts.append(f"  Location: {terminal.style(loc, 'location')}")

        if self.source_snippet:
            parts.append(self.source_snippet.format())

        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))

        if self.suggestion:
            parts.append(f"\n  {terminal.style('Suggestion:', 'hint')} {self.suggestion}")

        return "\n".join(parts)

    def format_compact(self) -> str:
        """Format runtime error as structured terminal diagnostic."""
        parts: list[str] = []

        loc = self.template_name or "<template>"
        if self.lineno:
            loc += f":{self.lineno}"
        parts.append(
            terminal.format_error_header(self.code.value if self.code else None, self.message)
        )
        parts.append(f"  Location: {terminal.style(loc, 'location')}")

        if self.source_snippet:
            parts.append(self.source_snippet.format())

        if self.suggestion:
            parts.append(f"  {terminal.style('Hint:', 'hint')} {self.suggestion}")

        if self.code:
            docs = terminal.style(self.code.docs_url, "link")
            parts.append(f"  {terminal.style('Docs:', 'muted')} {docs}")

        return "\n".join(parts)


class UndefinedError(TemplateRuntimeError):
    """A tag body referenced a name that is neither bound nor in the data.

    If ``available_names`` is provided, a "Did you mean?" suggestion is
    included when a close match is found.
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VARIABLE

    def __init__(
        self,
        name: str,
        available_names: frozenset[str] | None = None,
        **kwargs: Any,
    ):
        self.name = name
        msg = f"Undefined variable '{name}'"
        if available_names:
            from difflib import get_close_matches

            matches = get_close_matches(name, available_names, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{terminal.style(matches[0], 'match')}'?"
        super().__init__(
            msg,
            suggestion=f"Pass '{name}' in the render data, or read it with it.get('{name}')",
            **kwargs,
        )


class IncludeDepthError(TemplateRuntimeError):
    """include() or layout() nested deeper than the environment allows."""

    code: ErrorCode | None = ErrorCode.INCLUDE_DEPTH
