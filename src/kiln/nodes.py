"""AST nodes produced by the Kiln parser.

A template parses into a flat, ordered tuple of nodes. There is no nesting:
block structure in execute tags is resolved later by the code generator.

Nodes are immutable for thread-safety.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from kiln._types import TagKind

# Inverse of the escaping applied by the parser before a literal is pushed
_UNESCAPE_RE = re.compile(r"\\(\\|'|n|r|x00)")
_UNESCAPE_MAP = {"\\": "\\", "'": "'", "n": "\n", "r": "\r", "x00": "\x00"}


@dataclass(frozen=True, slots=True)
class Literal:
    """Text between tags.

    ``value`` is already whitespace-trimmed and escaped so it can be placed
    verbatim between single quotes in generated code. Never empty.
    """

    value: str

    @property
    def text(self) -> str:
        """The literal's original characters (escaping undone)."""
        return _UNESCAPE_RE.sub(lambda m: _UNESCAPE_MAP[m.group(1)], self.value)


@dataclass(frozen=True, slots=True)
class Tag:
    """A delimited region whose body is evaluated or executed.

    Attributes:
        kind: What the tag does with its body
        body: Inner content with surrounding whitespace stripped
        lineno: 1-based line the tag opens on (debug parses only)
    """

    kind: TagKind
    body: str
    lineno: int | None = None


AstNode = Literal | Tag
TemplateAst = tuple[AstNode, ...]
