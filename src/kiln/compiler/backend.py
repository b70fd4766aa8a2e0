"""Python source backend for the Kiln compiler.

Renders an instruction sequence into the body of a render function. The
orchestration layer wraps the body as

    def __kiln_render(it, options):      # async def in async mode
        <body>

and executes it in a namespace providing ``__kiln_env`` (the Environment).

Generated Shape (debug mode, default options):
    ```python
    def include(__kiln_name, __kiln_data=None):
        return __kiln_env.render(__kiln_name, __kiln_data, options)
    def include_async(__kiln_name, __kiln_data=None):
        return __kiln_env.render_async(__kiln_name, __kiln_data, options)
    __kiln = __kiln_env.new_state('Hi <%= it["name"] %>')
    __kiln_append = __kiln.res.append
    def layout(__kiln_path, __kiln_data=None):
        __kiln.layout = __kiln_path
        __kiln.layout_data = __kiln_data or {}
    try:
        __kiln_append('Hi ')
        __kiln.line = 1
        __kiln_append(__kiln.e(it["name"]))
        if __kiln.layout is not None:
            __kiln.res[:] = [include(__kiln.layout, {**it, 'body': ''.join(__kiln.res), **__kiln.layout_data})]
    except __kiln_env.TemplateError:
        raise
    except Exception as __kiln_exc:
        raise __kiln_env.runtime_error(__kiln_exc, __kiln.source, __kiln.line, options.filepath) from __kiln_exc
    return ''.join(__kiln.res)
    ```

Block Structure:
Python marks blocks by indentation, so execute tags follow the bottle/stpl
convention:

- a statement whose last token is ``:`` opens a block
- ``<% end %>`` closes the innermost block
- ``else``/``elif``/``except``/``finally`` close the current block and open
  the next clause at the same level; ``case`` does the same after another
  ``case``, and ``end`` after a ``case`` also closes its ``match``
- empty blocks get ``pass``; blocks still open at the end are closed
  before the layout check
- between ``match`` and its first ``case`` only whitespace may appear; it
  is dropped along with debug line markers

A multi-line execute tag is emitted line by line at the tag's indentation.
Its body is dedented as one unit when the first line opens a block or a
later line sits at column 0; otherwise the lines below the first are
dedented on their own. If the last line opens a block, ``end`` returns to
the indentation the tag started at.

"""

from __future__ import annotations

import io
import logging
import re
import textwrap
import tokenize
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from kiln.compiler.ambient import bind_ambient_names
from kiln.compiler.instructions import (
    AppendExpression,
    AppendLiteral,
    CheckLayout,
    ExecuteStatement,
    Instruction,
    SetLine,
)
from kiln.config import GeneratorConfig
from kiln.nodes import Literal

logger = logging.getLogger(__name__)

_FIRST_WORD = re.compile(r"[A-Za-z_]\w*")
_CONTINUATIONS = frozenset({"else", "elif", "except", "finally"})
_IGNORED_TOKENS = frozenset(
    {
        tokenize.COMMENT,
        tokenize.NL,
        tokenize.NEWLINE,
        tokenize.INDENT,
        tokenize.DEDENT,
        tokenize.ENDMARKER,
    }
)


class Backend(Protocol):
    """Turns an instruction sequence into executable form."""

    def render(
        self,
        program: Sequence[Instruction],
        config: GeneratorConfig,
        *,
        source: str | None = None,
    ) -> str: ...


class CodeBuilder:
    """Accumulate source lines; ``indent_level`` counts spaces."""

    INDENT_STEP = 4

    __slots__ = ("indent_level", "lines")

    def __init__(self, indent: int = 0):
        self.lines: list[str] = []
        self.indent_level = indent

    def add_line(self, line: str) -> None:
        self.lines.append(" " * self.indent_level + line)

    def indent(self) -> None:
        self.indent_level += self.INDENT_STEP

    def dedent(self) -> None:
        self.indent_level -= self.INDENT_STEP

    def __str__(self) -> str:
        return "\n".join(self.lines) + "\n"


def opens_block(line: str) -> bool:
    """True if the last significant token of ``line`` is a colon."""
    try:
        tokens = [
            tok
            for tok in tokenize.generate_tokens(io.StringIO(line).readline)
            if tok.type not in _IGNORED_TOKENS
        ]
    except (tokenize.TokenError, SyntaxError):
        return line.rstrip().endswith(":")
    return bool(tokens) and tokens[-1].type == tokenize.OP and tokens[-1].string == ":"


def statement_lines(code: str) -> list[str]:
    """Split an execute body into lines indented relative to its first line."""
    first, _, rest = code.strip().partition("\n")
    first = first.strip()
    tail = [line.rstrip() for line in rest.splitlines() if line.strip()]
    if not tail:
        return [first]
    if opens_block(first) or any(not line[0].isspace() for line in tail):
        return [first, *tail]
    return [first, *textwrap.dedent("\n".join(tail)).splitlines()]


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


@dataclass(slots=True)
class _Block:
    keyword: str
    base_indent: int
    statements: int = 0


class _Emitter:
    """Per-render state: the builder plus the open-block stack."""

    __slots__ = ("_builder", "_blocks", "_config", "_dispatch")

    def __init__(self, builder: CodeBuilder, config: GeneratorConfig):
        self._builder = builder
        self._config = config
        self._blocks: list[_Block] = []
        self._dispatch: dict[type, Callable[..., None]] = {
            AppendLiteral: self._emit_literal,
            AppendExpression: self._emit_expression,
            ExecuteStatement: self._emit_statement,
            SetLine: self._emit_set_line,
            CheckLayout: self._emit_layout_check,
        }

    def emit(self, instruction: Instruction) -> None:
        self._dispatch[type(instruction)](instruction)

    def _line(self, line: str) -> None:
        self._builder.add_line(line)
        if self._blocks:
            self._blocks[-1].statements += 1

    def _in_bare_match(self) -> bool:
        # Only case clauses may follow ``match x:``
        return bool(self._blocks) and self._blocks[-1].keyword == "match"

    def _emit_literal(self, instruction: AppendLiteral) -> None:
        if self._in_bare_match() and not Literal(instruction.value).text.strip():
            return
        self._line(f"__kiln_append('{instruction.value}')")

    def _emit_expression(self, instruction: AppendExpression) -> None:
        expr = instruction.expr
        if instruction.filtered:
            expr = f"__kiln.f({expr})"
        if instruction.escaped:
            expr = f"__kiln.e({expr})"
        else:
            expr = f"__kiln.s({expr})"
        self._line(f"__kiln_append({expr})")

    def _emit_set_line(self, instruction: SetLine) -> None:
        if self._in_bare_match():
            return
        self._line(f"__kiln.line = {instruction.lineno}")

    def _emit_layout_check(self, instruction: CheckLayout) -> None:
        self.close_all()
        var = self._config.var_name
        call = "await include_async" if instruction.async_mode else "include"
        builder = self._builder
        builder.add_line("if __kiln.layout is not None:")
        builder.indent()
        builder.add_line(
            f"__kiln.res[:] = [{call}(__kiln.layout, "
            f"{{**{var}, 'body': ''.join(__kiln.res), **__kiln.layout_data}})]"
        )
        builder.dedent()

    def _emit_statement(self, instruction: ExecuteStatement) -> None:
        lines = statement_lines(instruction.code)
        if not lines[0]:
            return

        head = lines[0]
        if head == "end":
            self._close_end()
            return

        match = _FIRST_WORD.match(head)
        word = match.group(0) if match else ""
        top = self._blocks[-1] if self._blocks else None
        if top is not None and (
            word in _CONTINUATIONS or (word == "case" and top.keyword == "case")
        ):
            self._close(self._blocks.pop())

        builder = self._builder
        base = builder.indent_level
        for line in lines:
            self._line(line)

        last = lines[-1]
        if opens_block(last.strip()):
            if len(lines) > 1:
                match = _FIRST_WORD.match(last.lstrip())
                word = match.group(0) if match else ""
            self._blocks.append(_Block(word, base))
            builder.indent_level = base + _indent_of(last) + CodeBuilder.INDENT_STEP
        else:
            builder.indent_level = base

    def _close(self, block: _Block) -> None:
        if block.statements == 0:
            self._builder.add_line("pass")
        self._builder.indent_level = block.base_indent

    def _close_end(self) -> None:
        if not self._blocks:
            logger.warning("Unmatched 'end' tag in template")
            self._line("raise SyntaxError(\"unmatched 'end' tag\")")
            return
        block = self._blocks.pop()
        self._close(block)
        if block.keyword == "case" and self._blocks and self._blocks[-1].keyword == "match":
            self._close(self._blocks.pop())

    def close_all(self) -> None:
        if self._blocks:
            logger.debug("Closing %d unterminated block(s)", len(self._blocks))
        while self._blocks:
            self._close(self._blocks.pop())


class PythonSourceBackend:
    """Render instructions as the body of a Python render function."""

    def render(
        self,
        program: Sequence[Instruction],
        config: GeneratorConfig,
        *,
        source: str | None = None,
    ) -> str:
        builder = CodeBuilder()

        for line in config.function_header.splitlines():
            builder.add_line(line)
        builder.add_line("def include(__kiln_name, __kiln_data=None):")
        builder.add_line("    return __kiln_env.render(__kiln_name, __kiln_data, options)")
        builder.add_line("def include_async(__kiln_name, __kiln_data=None):")
        builder.add_line("    return __kiln_env.render_async(__kiln_name, __kiln_data, options)")
        if config.debug:
            builder.add_line(f"__kiln = __kiln_env.new_state({source or ''!r})")
        else:
            builder.add_line("__kiln = __kiln_env.new_state()")
        builder.add_line("__kiln_append = __kiln.res.append")
        builder.add_line("def layout(__kiln_path, __kiln_data=None):")
        builder.add_line("    __kiln.layout = __kiln_path")
        builder.add_line("    __kiln.layout_data = __kiln_data or {}")

        if config.debug:
            builder.add_line("try:")
            builder.indent()

        emitter = _Emitter(builder, config)
        for instruction in program:
            emitter.emit(instruction)
        emitter.close_all()

        if config.debug:
            builder.indent_level = 0
            builder.add_line("except __kiln_env.TemplateError:")
            builder.add_line("    raise")
            builder.add_line("except Exception as __kiln_exc:")
            builder.add_line(
                "    raise __kiln_env.runtime_error("
                "__kiln_exc, __kiln.source, __kiln.line, options.filepath"
                ") from __kiln_exc"
            )
        builder.add_line("return ''.join(__kiln.res)")

        code = str(builder)
        if config.use_with:
            code = bind_ambient_names(code, config.var_name)
        return code
