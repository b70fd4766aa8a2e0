"""Kiln compiler: TemplateAst → instructions → render-function source."""

from __future__ import annotations

from kiln.compiler.ambient import bind_ambient_names
from kiln.compiler.backend import Backend, CodeBuilder, PythonSourceBackend
from kiln.compiler.core import Compiler, generate
from kiln.compiler.instructions import (
    AppendExpression,
    AppendLiteral,
    CheckLayout,
    ExecuteStatement,
    Instruction,
    SetLine,
)

__all__ = [
    "AppendExpression",
    "AppendLiteral",
    "Backend",
    "CheckLayout",
    "CodeBuilder",
    "Compiler",
    "ExecuteStatement",
    "Instruction",
    "PythonSourceBackend",
    "SetLine",
    "bind_ambient_names",
    "generate",
]
