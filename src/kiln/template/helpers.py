"""Runtime records and helpers used by generated render functions.

Generated code sees exactly two runtime objects: the per-render
``RenderState`` (bound to ``__kiln``) and the ``RenderOptions`` the
template was compiled with (bound to ``options``). Everything else goes
through the Environment.

Thread-Safety:
A RenderState is created per render call and never shared. RenderOptions
is frozen.

"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from kiln.environment.exceptions import (
    TemplateRuntimeError,
    UndefinedError,
    build_source_snippet,
)


@dataclass(slots=True)
class RenderState:
    """Mutable per-render record, ``__kiln`` in generated code.

    Attributes:
        res: Output accumulator, joined at return
        e: Escape function
        f: Filter function
        s: Coercion for unescaped output
        line: Template line of the last tag that started (debug mode)
        source: Template source text (debug mode)
        layout: Layout name set by ``layout()``
        layout_data: Data merged over the context for the layout
    """

    e: Callable[[Any], str]
    f: Callable[[Any], Any]
    s: Callable[[Any], str] = str
    res: list[str] = field(default_factory=list)
    line: int = 1
    source: str | None = None
    layout: str | None = None
    layout_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Per-template call options, ``options`` in generated code.

    ``name`` anchors relative include names; ``filepath`` is reported in
    runtime errors.
    """

    name: str | None = None
    filepath: str | None = None
    async_mode: bool = False


def _describe(error: Exception) -> str:
    error_type = type(error).__name__
    error_str = str(error).strip()
    if error_str:
        return f"{error_type}: {error_str}"

    # Empty messages (StopIteration, bare raises)
    non_empty = [str(a) for a in error.args if str(a).strip()]
    if non_empty:
        return f"{error_type}: {', '.join(non_empty)}"
    return f"{error_type} (no details available)"


def build_runtime_error(
    error: Exception,
    source: str | None,
    lineno: int,
    filepath: str | None,
    *,
    template_name: str | None = None,
    template_stack: list[str] | None = None,
) -> TemplateRuntimeError:
    """Convert an exception raised inside a template into a TemplateRuntimeError.

    Args:
        error: The original exception
        source: Template source, for the snippet
        lineno: Template line of the last tag that started, 0 if unknown
        filepath: Template file path, preferred over ``template_name``
        template_name: Template name when there is no file
        template_stack: Names of the including templates, outermost first
    """
    if isinstance(error, TemplateRuntimeError):
        return error

    location = filepath or template_name
    snippet = None
    if source and lineno:
        snippet = build_source_snippet(source, lineno)

    if isinstance(error, NameError) and error.name:
        return UndefinedError(
            error.name,
            template_name=location,
            lineno=lineno or None,
            source_snippet=snippet,
            template_stack=template_stack,
        )

    return TemplateRuntimeError(
        _describe(error),
        template_name=location,
        lineno=lineno or None,
        source_snippet=snippet,
        template_stack=template_stack,
    )
