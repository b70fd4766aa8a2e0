"""Kiln RenderContext — per-render state kept out of the user's data.

Include depth and the include chain live in a ContextVar instead of the
``it`` mapping, so templates never see internal keys and concurrent
renders (threads or asyncio tasks) stay isolated.

Each ``Template.render`` call either opens a root context or, when it runs
inside another render (``include()``, ``layout()``), a child context one
level deeper.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from kiln.environment.exceptions import IncludeDepthError


@dataclass
class RenderContext:
    """Per-render state isolated from user data.

    Attributes:
        template_name: Name of the template being rendered
        filename: Source file path, if file-backed
        include_depth: Nesting level (0 for the outermost render)
        max_include_depth: Depth at which include()/layout() fails
        template_stack: Names of the enclosing templates, outermost first
    """

    template_name: str | None = None
    filename: str | None = None

    # 50 is deep enough for any real layout/include chain while catching
    # circular includes early.
    include_depth: int = 0
    max_include_depth: int = 50

    template_stack: list[str] = field(default_factory=list)

    def check_include_depth(self, template_name: str | None) -> None:
        """Raise IncludeDepthError if one more level would exceed the limit."""
        if self.include_depth >= self.max_include_depth:
            raise IncludeDepthError(
                f"Maximum include depth exceeded ({self.max_include_depth}) "
                f"when including '{template_name or '<string>'}'",
                template_name=self.template_name,
                suggestion="Check for circular includes or layouts: A → B → A",
                template_stack=self.template_stack,
            )

    def child_context(
        self, template_name: str | None = None, filename: str | None = None
    ) -> RenderContext:
        """Create the context for an included template, one level deeper."""
        new_stack = self.template_stack.copy()
        new_stack.append(self.template_name or "<string>")

        return RenderContext(
            template_name=template_name,
            filename=filename,
            include_depth=self.include_depth + 1,
            max_include_depth=self.max_include_depth,
            template_stack=new_stack,
        )


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "kiln_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Current render context, or None outside a render."""
    return _render_context.get()


@contextmanager
def render_context(
    template_name: str | None = None,
    filename: str | None = None,
    max_include_depth: int = 50,
) -> Iterator[RenderContext]:
    """Open a context for a render, nested under the current one if any.

    Raises:
        IncludeDepthError: If the current context is already at its limit
    """
    parent = _render_context.get()
    if parent is None:
        ctx = RenderContext(
            template_name=template_name,
            filename=filename,
            max_include_depth=max_include_depth,
        )
    else:
        parent.check_include_depth(template_name)
        ctx = parent.child_context(template_name, filename)

    token = set_render_context(ctx)
    try:
        yield ctx
    finally:
        reset_render_context(token)


def set_render_context(ctx: RenderContext) -> Token[RenderContext | None]:
    """Set a RenderContext and return the reset token."""
    return _render_context.set(ctx)


def reset_render_context(token: Token[RenderContext | None]) -> None:
    """Restore the context that was current before ``set_render_context``."""
    _render_context.reset(token)
