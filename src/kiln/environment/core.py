"""Kiln Environment — central configuration and template management hub.

The Environment owns the parser and generator configuration, the loader,
and the escape/filter primitives. It drives the pipeline:

    source → Parser → TemplateAst → Compiler → body → compile()/exec() → Template

Generated render functions call back into the Environment for
``include()``, ``layout()``, new render state and error conversion, so a
Template always renders with the configuration it was compiled under.

Configuration:
Options are keyword arguments, split between ``ParserConfig`` and
``GeneratorConfig`` (``debug`` and ``plugins`` go to both):

    >>> env = Environment(tags=("{{", "}}"), auto_escape=False, debug=True)
    >>> env.parser_config.tags
    ('{{', '}}')

``configure(**overrides)`` returns a new Environment with the merged
configuration; the original is never mutated.

Compilation is not cached: every ``get_template()`` call loads and compiles
the template again.

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from kiln.environment.exceptions import (
    ConfigurationError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
)
from kiln.environment.loaders import Loader, resolve_name
from kiln.render_context import get_render_context
from kiln.utils.html import html_escape

if TYPE_CHECKING:
    from kiln.nodes import TemplateAst
    from kiln.template import RenderOptions, RenderState, Template

logger = logging.getLogger(__name__)


class Environment:
    """Central configuration and template management hub.

    Attributes:
        loader: Template source provider (FileSystemLoader, DictLoader, ...)
        escape: Applied to interpolate output when auto_escape is on
        filter: Applied to raw and interpolate output when auto_filter is on
        globals: Names visible to every template as module globals
        max_include_depth: include()/layout() nesting limit
        parser_config: Scanner options
        generator_config: Code generator options

    Example:
            >>> env = Environment(loader=DictLoader({
            ...     "base.html": "<h1><%= it['title'] %></h1><%~ it['body'] %>",
            ...     "page.html": "<% layout('base.html') %><p>Hi</p>",
            ... }))
            >>> env.render("page.html", {"title": "Home"})
            '<h1>Home</h1><p>Hi</p>'

    """

    # Generated code re-raises these unchanged in debug mode
    TemplateError = TemplateError

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        escape: Callable[[Any], str] = html_escape,
        filter: Callable[[Any], Any] = str,
        globals: Mapping[str, Any] | None = None,
        max_include_depth: int = 50,
        **options: Any,
    ):
        from kiln.config import GENERATOR_OPTIONS, PARSER_OPTIONS, GeneratorConfig, ParserConfig

        unknown = set(options) - PARSER_OPTIONS - GENERATOR_OPTIONS
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s): {', '.join(sorted(unknown))}. "
                f"Valid options: {', '.join(sorted(PARSER_OPTIONS | GENERATOR_OPTIONS))}"
            )
        if max_include_depth < 1:
            raise ConfigurationError(
                f"max_include_depth must be at least 1, got {max_include_depth}"
            )

        self.loader = loader
        self.escape = escape
        self.filter = filter
        self.globals: dict[str, Any] = dict(globals or {})
        self.max_include_depth = max_include_depth
        self._options = dict(options)
        self.parser_config = ParserConfig(
            **{k: v for k, v in options.items() if k in PARSER_OPTIONS}
        )
        self.generator_config = GeneratorConfig(
            **{k: v for k, v in options.items() if k in GENERATOR_OPTIONS}
        )

    def configure(self, **overrides: Any) -> Environment:
        """Return a new Environment with ``overrides`` merged over this one's options.

            >>> strict = env.configure(debug=True, auto_escape=False)
        """
        settings: dict[str, Any] = {
            "escape": self.escape,
            "filter": self.filter,
            "globals": self.globals,
            "max_include_depth": self.max_include_depth,
            **self._options,
            **overrides,
        }
        loader = settings.pop("loader", self.loader)
        return Environment(loader, **settings)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def parse(self, source: str) -> TemplateAst:
        """Scan ``source`` into a TemplateAst."""
        from kiln.parser import Parser

        return Parser(self.parser_config).parse(source)

    def compile_to_string(self, source: str, *, async_mode: bool | None = None) -> str:
        """Generate the render-function body for ``source``."""
        from kiln.compiler import Compiler

        config = self.generator_config
        if async_mode is not None and async_mode != config.async_mode:
            config = replace(config, async_mode=async_mode)
        return Compiler(config).generate(self.parse(source), source=source)

    def compile(
        self,
        source: str,
        *,
        name: str | None = None,
        filename: str | None = None,
        async_mode: bool | None = None,
    ) -> Template:
        """Compile ``source`` into a Template.

        Raises:
            TemplateSyntaxError: If the generated function does not compile
        """
        from kiln.template import Template, wrap_render_function
        from kiln.template.core import RENDER_FUNCTION_NAME

        if async_mode is None:
            async_mode = self.generator_config.async_mode
        body = self.compile_to_string(source, async_mode=async_mode)
        source_code = wrap_render_function(
            body, async_mode=async_mode, var_name=self.generator_config.var_name
        )

        try:
            code = compile(source_code, filename or name or "<template>", "exec")
        except SyntaxError as e:
            raise TemplateSyntaxError(
                e.msg,
                lineno=e.lineno,
                name=name,
                filename=filename,
                code_line=e.text,
            ) from e

        namespace: dict[str, Any] = {**self.globals, "__kiln_env": self}
        exec(code, namespace)
        logger.debug(
            "Compiled template %s (%s, %d lines)",
            name or "<string>",
            "async" if async_mode else "sync",
            source_code.count("\n"),
        )
        return Template(
            self,
            namespace[RENDER_FUNCTION_NAME],
            name=name,
            filename=filename,
            source=source,
            source_code=source_code,
            is_async=async_mode,
        )

    def from_string(self, source: str, *, name: str | None = None) -> Template:
        """Compile a template from a string."""
        return self.compile(source, name=name)

    def get_template(
        self,
        name: str,
        *,
        parent: str | None = None,
        async_mode: bool | None = None,
    ) -> Template:
        """Load and compile a template by name.

        Args:
            name: Template name; ``./`` and ``../`` names resolve against
                ``parent``
            parent: Name of the template asking for ``name``
            async_mode: Compile as ``async def``

        Raises:
            TemplateNotFoundError: If there is no loader or it lacks ``name``
        """
        if self.loader is None:
            raise TemplateNotFoundError(f"Cannot load '{name}': environment has no loader")

        resolved = resolve_name(name, parent)
        source, filename = self.loader.get_source(resolved)
        logger.debug("Loaded template %s from %s", resolved, filename or "memory")
        return self.compile(source, name=resolved, filename=filename, async_mode=async_mode)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _resolve(
        self,
        template: str | Template,
        options: RenderOptions | None,
        *,
        async_mode: bool,
    ) -> Template:
        from kiln.template import Template

        if isinstance(template, Template):
            return template
        parent = options.name if options is not None else None
        return self.get_template(template, parent=parent, async_mode=async_mode)

    def render(
        self,
        template: str | Template,
        data: Mapping[str, Any] | None = None,
        options: RenderOptions | None = None,
    ) -> str:
        """Render a template by name (or a compiled Template) synchronously.

        ``options`` are the calling template's options; ``include()`` passes
        them so relative names resolve against the caller.
        """
        return self._resolve(template, options, async_mode=False).render(data)

    async def render_async(
        self,
        template: str | Template,
        data: Mapping[str, Any] | None = None,
        options: RenderOptions | None = None,
    ) -> str:
        """Render a template by name (or a compiled Template) in async mode."""
        tmpl = self._resolve(template, options, async_mode=True)
        return await tmpl.render_async(data)

    def render_string(self, source: str, data: Mapping[str, Any] | None = None) -> str:
        """Compile ``source`` and render it once."""
        return self.compile(source, async_mode=False).render(data)

    async def render_string_async(
        self, source: str, data: Mapping[str, Any] | None = None
    ) -> str:
        """Compile ``source`` as an async template and render it once."""
        return await self.compile(source, async_mode=True).render_async(data)

    # ------------------------------------------------------------------
    # Hooks called by generated code
    # ------------------------------------------------------------------

    def new_state(self, source: str | None = None) -> RenderState:
        """Fresh per-render state carrying this environment's primitives."""
        from kiln.template import RenderState

        return RenderState(e=self.escape, f=self.filter, source=source)

    def runtime_error(
        self,
        error: Exception,
        source: str | None,
        lineno: int,
        filepath: str | None,
    ) -> TemplateRuntimeError:
        """Convert an exception raised in a debug-mode template."""
        from kiln.template import build_runtime_error

        render_ctx = get_render_context()
        template_name = render_ctx.template_name if render_ctx else None
        stack = render_ctx.template_stack if render_ctx else None
        logger.debug(
            "Template %s failed at line %d: %r", filepath or template_name, lineno, error
        )
        return build_runtime_error(
            error,
            source,
            lineno,
            filepath,
            template_name=template_name,
            template_stack=stack,
        )

    def __repr__(self) -> str:
        loader = type(self.loader).__name__ if self.loader else None
        return f"<Environment loader={loader} options={self._options!r}>"
