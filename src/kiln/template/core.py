"""Kiln Template — a compiled render function ready for rendering.

The Environment compiles the generated body wrapped as

    ```python
    def __kiln_render(it, options):
        __kiln = __kiln_env.new_state()
        __kiln_append = __kiln.res.append
        __kiln_append('Hello, ')
        __kiln_append(__kiln.e(it['name']))
        ...
        return ''.join(__kiln.res)
    ```

and a Template binds the resulting function to its name, file and
RenderOptions. Output is collected in a list and joined once at the end.

Thread-Safety:
- Template objects are immutable after construction
- Each ``render()`` call creates its own RenderState
- Include depth is tracked in a ContextVar, per thread and per task

"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from kiln.environment.exceptions import TemplateRuntimeError
from kiln.render_context import render_context
from kiln.template.helpers import RenderOptions

if TYPE_CHECKING:
    from kiln.environment import Environment

RENDER_FUNCTION_NAME = "__kiln_render"


def wrap_render_function(body: str, *, async_mode: bool = False, var_name: str = "it") -> str:
    """Wrap a generated body in the render function signature.

    Only ``\\n`` separates lines; other characters ``str.splitlines()``
    breaks on may appear inside string literals of the body.
    """
    keyword = "async def" if async_mode else "def"
    header = f"{keyword} {RENDER_FUNCTION_NAME}({var_name}, options):\n"
    return header + "\n".join("    " + line if line else line for line in body.split("\n"))


class Template:
    """Compiled template ready for rendering.

    Attributes:
        name: Template identifier (for relative includes and errors)
        filename: Source file path (for error messages)
        source_code: Full text of the generated render function
        is_async: True if compiled as ``async def``

    Example:
            >>> from kiln import Environment
            >>> t = Environment().from_string("Hello, <%= it['name'] %>!")
            >>> t.render(name="World")
            'Hello, World!'
            >>> t.render({"name": "<World>"})
            'Hello, &lt;World&gt;!'

    """

    __slots__ = (
        "_env",
        "_filename",
        "_is_async",
        "_name",
        "_options",
        "_render_func",
        "_source",
        "_source_code",
    )

    def __init__(
        self,
        env: Environment,
        render_func: Callable[[Any, RenderOptions], str | Awaitable[str]],
        *,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        source_code: str = "",
        is_async: bool = False,
    ):
        self._env = env
        self._render_func = render_func
        self._name = name
        self._filename = filename
        self._source = source
        self._source_code = source_code
        self._is_async = is_async
        self._options = RenderOptions(name=name, filepath=filename, async_mode=is_async)

    @property
    def name(self) -> str | None:
        """Template name."""
        return self._name

    @property
    def filename(self) -> str | None:
        """Source filename."""
        return self._filename

    @property
    def source(self) -> str | None:
        """Template source text."""
        return self._source

    @property
    def source_code(self) -> str:
        """Generated Python source of the render function."""
        return self._source_code

    @property
    def is_async(self) -> bool:
        return self._is_async

    @property
    def options(self) -> RenderOptions:
        return self._options

    def _context(self, data: Mapping[str, Any] | None, kwargs: dict[str, Any]) -> Any:
        if kwargs:
            return {**(data or {}), **kwargs}
        return data if data is not None else {}

    def render(self, data: Mapping[str, Any] | None = None, /, **kwargs: Any) -> str:
        """Render the template against ``data`` (and keyword overrides).

        The mapping is passed through as the context variable unless
        keyword arguments are given, in which case a merged copy is used.

        Raises:
            TemplateRuntimeError: If the template was compiled in async mode
        """
        if self._is_async:
            raise TemplateRuntimeError(
                f"Template '{self._name or '(inline)'}' was compiled in async mode",
                template_name=self._name,
                suggestion="Use render_async(), or include_async() from another template",
            )

        it = self._context(data, kwargs)
        with render_context(self._name, self._filename, self._env.max_include_depth):
            return self._render_func(it, self._options)

    async def render_async(self, data: Mapping[str, Any] | None = None, /, **kwargs: Any) -> str:
        """Render an async template natively; sync templates render inline."""
        if not self._is_async:
            return self.render(data, **kwargs)

        it = self._context(data, kwargs)
        with render_context(self._name, self._filename, self._env.max_include_depth):
            return await self._render_func(it, self._options)

    def __repr__(self) -> str:
        mode = " async" if self._is_async else ""
        return f"<Template {self._name or '(inline)'}{mode}>"
