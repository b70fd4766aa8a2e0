"""Kiln — a tag-template compiler that turns templates into Python functions.

Templates are literal text with three kinds of tags whose bodies are plain
Python:

    ```
    <% for user in it['users']: %>     execute a statement
      <li><%= user.name %></li>        interpolate, escaped
      <%~ user.bio_html %>             raw, unescaped
    <% end %>
    ```

Quickstart:
    >>> from kiln import Environment
    >>> env = Environment()
    >>> env.render_string("Hello, <%= it['name'] %>!", {"name": "World"})
    'Hello, World!'

File-based templates:
    >>> from kiln import Environment, FileSystemLoader
    >>> env = Environment(loader=FileSystemLoader("templates/"))
    >>> env.render("index.html", {"page": page})

Architecture:
Template Source → Parser → TemplateAst → Compiler → instructions → Python
source → compile()/exec() → Template

Pipeline stages:
1. **Parser**: One regex scan into Literal/Tag nodes, with whitespace control
2. **Compiler**: Lowers nodes into instructions (escape/filter/debug policy)
   and renders them through a backend into a render-function body
3. **Template**: Wraps the compiled function with render()/render_async()

Block Structure:
Python blocks have no closing token, so a statement ending in ``:`` opens
a block and ``<% end %>`` closes it. ``else``/``elif``/``except``/``finally``
continue the open block.

Thread-Safety:
Parsing and code generation are pure. Rendering uses only per-call state,
and include depth is tracked in a ContextVar.

"""

from kiln._types import TagKind, TrimMode
from kiln.compiler import Compiler, generate
from kiln.config import GeneratorConfig, ParserConfig
from kiln.environment import (
    ChoiceLoader,
    ConfigurationError,
    DictLoader,
    Environment,
    ErrorCode,
    FileSystemLoader,
    IncludeDepthError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
)
from kiln.nodes import AstNode, Literal, Tag, TemplateAst
from kiln.parser import Parser, parse
from kiln.plugins import TransformsAst, TransformsCode
from kiln.render_context import RenderContext, get_render_context, render_context
from kiln.template import Markup, RenderOptions, RenderState, Template
from kiln.utils.html import html_escape

__version__ = "0.1.0"

__all__ = [
    "AstNode",
    "ChoiceLoader",
    "Compiler",
    "ConfigurationError",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "GeneratorConfig",
    "IncludeDepthError",
    "Literal",
    "Markup",
    "Parser",
    "ParserConfig",
    "RenderContext",
    "RenderOptions",
    "RenderState",
    "SourceSnippet",
    "Tag",
    "TagKind",
    "Template",
    "TemplateAst",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "TransformsAst",
    "TransformsCode",
    "TrimMode",
    "UndefinedError",
    "generate",
    "get_render_context",
    "html_escape",
    "parse",
    "render_context",
    "__version__",
]
