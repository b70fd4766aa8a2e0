"""Kiln Compiler Core — AST to render-function source.

The Compiler lowers a TemplateAst into an instruction sequence, hands it to
a backend (Python source by default), then runs the code plugins.

Design Principles:
1. **Policy in lowering**: escape/filter/debug decisions become explicit
   instructions; the backend only translates them
2. **StringBuilder**: output via ``__kiln_append(...)``, joined at return
3. **Deterministic**: same AST + config → byte-identical code
4. **Total**: never fails on parser output; broken tag bodies surface when
   the code is compiled or run

Lowering:
    ```
    Literal            → AppendLiteral
    Tag(RAW)           → [SetLine] AppendExpression(filtered=auto_filter, escaped=False)
    Tag(INTERPOLATE)   → [SetLine] AppendExpression(filtered=auto_filter, escaped=auto_escape)
    Tag(EXECUTE)       → [SetLine] ExecuteStatement
    (end of template)  → CheckLayout
    ```

"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kiln._types import TagKind
from kiln.compiler.backend import Backend, PythonSourceBackend
from kiln.compiler.instructions import (
    AppendExpression,
    AppendLiteral,
    CheckLayout,
    ExecuteStatement,
    Instruction,
    SetLine,
)
from kiln.config import GeneratorConfig
from kiln.nodes import Literal, Tag
from kiln.plugins import run_code_plugins

if TYPE_CHECKING:
    from kiln.nodes import TemplateAst

logger = logging.getLogger(__name__)


class Compiler:
    """Compile a TemplateAst into the body of a render function.

    Example:
            >>> from kiln.parser import parse
            >>> compiler = Compiler(GeneratorConfig(auto_escape=False))
            >>> print(compiler.generate(parse("Hi <%= it['name'] %>")))
            def include(__kiln_name, __kiln_data=None):
            ...
            __kiln_append('Hi ')
            __kiln_append(__kiln.s(it['name']))
            ...

    """

    __slots__ = ("_backend", "_config")

    def __init__(self, config: GeneratorConfig, backend: Backend | None = None):
        self._config = config
        self._backend = backend or PythonSourceBackend()

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    def lower(self, ast: TemplateAst) -> tuple[Instruction, ...]:
        """Translate nodes into instructions, applying escape/filter/debug policy."""
        config = self._config
        program: list[Instruction] = []

        for node in ast:
            if isinstance(node, Literal):
                program.append(AppendLiteral(node.value))
                continue
            if not isinstance(node, Tag):
                raise TypeError(f"Cannot compile {type(node).__name__} node: {node!r}")

            if config.debug and node.lineno is not None:
                program.append(SetLine(node.lineno))

            if node.kind is TagKind.EXECUTE:
                program.append(ExecuteStatement(node.body))
            elif node.kind is TagKind.RAW:
                program.append(AppendExpression(node.body, config.auto_filter, False))
            else:
                program.append(
                    AppendExpression(node.body, config.auto_filter, config.auto_escape)
                )

        program.append(CheckLayout(config.async_mode))
        return tuple(program)

    def generate(self, ast: TemplateAst, *, source: str | None = None) -> str:
        """Lower, render through the backend, then apply code plugins.

        Args:
            ast: Parser output
            source: Original template text, embedded in debug builds for
                runtime error snippets
        """
        program = self.lower(ast)
        code = self._backend.render(program, self._config, source=source)
        logger.debug(
            "Generated %d lines from %d instructions", code.count("\n"), len(program)
        )
        return run_code_plugins(code, self._config.plugins, self._config)


def generate(
    ast: TemplateAst,
    config: GeneratorConfig | None = None,
    *,
    source: str | None = None,
) -> str:
    """Generate render-function body text from a TemplateAst."""
    return Compiler(config or GeneratorConfig()).generate(ast, source=source)
