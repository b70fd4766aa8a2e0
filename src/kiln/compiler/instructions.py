"""Instruction set between the Kiln compiler and its backends.

The compiler lowers a TemplateAst into a flat sequence of these
instructions; a backend turns the sequence into executable form. Keeping
the escape/filter/debug policy in the lowering step means backends only
translate, they never decide.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppendLiteral:
    """Append literal text (already escaped for a single-quoted string)."""

    value: str


@dataclass(frozen=True, slots=True)
class AppendExpression:
    """Append the value of ``expr``.

    ``filtered`` wraps it in the filter primitive, then ``escaped`` wraps
    that in the escape primitive.
    """

    expr: str
    filtered: bool
    escaped: bool


@dataclass(frozen=True, slots=True)
class ExecuteStatement:
    """Run ``code`` as one or more statements."""

    code: str


@dataclass(frozen=True, slots=True)
class SetLine:
    """Record the template line about to execute (debug only)."""

    lineno: int


@dataclass(frozen=True, slots=True)
class CheckLayout:
    """Render the requested layout, if any, around the output so far."""

    async_mode: bool


Instruction = AppendLiteral | AppendExpression | ExecuteStatement | SetLine | CheckLayout
