"""Kiln tag scanner.

Turns template source into a flat tuple of Literal and Tag nodes in one
left-to-right regex scan.

Tag Grammar (default configuration):
    ```
    <%  stmt  %>      execute (empty prefix)
    <%= expr  %>      interpolate
    <%~ expr  %>      raw
    <%- ... -%>       trim one adjacent newline
    <%_ ... _%>       trim all adjacent whitespace
    ```

Inside a tag body, quoted strings ('…', "…", `…`) and /* … */ comments are
opaque: a close delimiter inside them does not end the tag. Quoted strings
allow backslash escapes but no raw line breaks; comments may span lines.
A quote that opens a complete string always does so, even when the close
delimiter only appears inside that string.

Unterminated tags are not an error. The scan simply never matches them and
their text becomes part of the trailing literal.

Thread-Safety:
Parsing uses only local state. Compiled patterns are cached per delimiter
and prefix set via ``functools.lru_cache``.

"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from kiln._types import TagKind
from kiln.config import ParserConfig
from kiln.nodes import AstNode, Literal, Tag, TemplateAst
from kiln.parser.whitespace import EdgeMarker, trim_whitespace
from kiln.plugins import run_ast_plugins

logger = logging.getLogger(__name__)

# Opaque spans inside a tag body: quoted literals and block comments
_STRING_ESCAPE = r"""\\[\s\w"'\\`]"""
_OPAQUE = (
    rf"""'(?:{_STRING_ESCAPE}|[^\n\r'\\])*?'"""
    rf"""|"(?:{_STRING_ESCAPE}|[^\n\r"\\])*?\""""
    rf"""|`(?:{_STRING_ESCAPE}|[^\\`])*?`"""
    r"""|/\*.*?\*/"""
)

# Backslash and single quote are escaped before trimming, line breaks after
_QUOTE_RE = re.compile(r"[\\']")
_LINE_BREAKS = str.maketrans({"\n": "\\n", "\r": "\\r", "\x00": "\\x00"})


@lru_cache(maxsize=64)
def compile_tag_pattern(open_tag: str, close_tag: str, prefixes: str) -> re.Pattern[str]:
    """Build the scanner regex for a delimiter pair and prefix characters.

    Groups: ``ltrim``, ``prefix``, ``body``, ``rtrim``.
    """
    if prefixes:
        prefix_group = "(?P<prefix>[" + "".join(re.escape(p) for p in prefixes) + "])?"
    else:
        prefix_group = "(?P<prefix>(?!))?"
    # Atomic steps: a quote that opens a complete string is never re-read
    # as a lone character
    body = rf"""(?P<body>(?>[^'"`/]|{_OPAQUE}|['"`/])*?)"""
    return re.compile(
        re.escape(open_tag)
        + r"(?P<ltrim>[-_])?\s*"
        + prefix_group
        + r"\s*"
        + body
        + r"\s*(?P<rtrim>[-_])?"
        + re.escape(close_tag),
        re.DOTALL,
    )


class Parser:
    """Scan template source into a TemplateAst.

    Example:
            >>> Parser(ParserConfig()).parse("Hi <%= it['name'] %>!")
            (Literal(value='Hi '), Tag(kind=<TagKind.INTERPOLATE: 'i'>, body="it['name']", lineno=None), Literal(value='!'))

    """

    __slots__ = ("_config", "_pattern", "_prefixes", "_default_kind")

    def __init__(self, config: ParserConfig):
        config.validate()
        self._config = config
        self._prefixes = config.prefixes
        self._default_kind = config.resolved_default_kind
        open_tag, close_tag = config.tags
        self._pattern = compile_tag_pattern(open_tag, close_tag, "".join(self._prefixes))

    def parse(self, source: str) -> TemplateAst:
        """Scan ``source`` and run the AST plugin pipeline."""
        config = self._config
        nodes: list[AstNode] = []
        trim_next_start: EdgeMarker = False
        last_end = 0
        lineno = 1

        for match in self._pattern.finditer(source):
            start = match.start()
            self._push_literal(nodes, source[last_end:start], trim_next_start, match["ltrim"])
            trim_next_start = match["rtrim"]

            prefix = match["prefix"]
            kind = self._prefixes[prefix] if prefix else self._default_kind

            if config.debug:
                lineno += source.count("\n", last_end, start)
                tag = Tag(kind, match["body"], lineno)
                lineno += source.count("\n", start, match.end())
            else:
                tag = Tag(kind, match["body"])
            nodes.append(tag)
            last_end = match.end()

        trailing = source[last_end:]
        if config.tags[0] in trailing:
            logger.warning(
                "Unterminated %r tag kept as literal text (offset %d)",
                config.tags[0],
                last_end + trailing.index(config.tags[0]),
            )
        self._push_literal(nodes, trailing, trim_next_start, False)

        ast: TemplateAst = tuple(nodes)
        logger.debug("Scanned %d nodes from %d characters", len(ast), len(source))
        return run_ast_plugins(ast, config.plugins, config)

    def _push_literal(
        self,
        nodes: list[AstNode],
        text: str,
        trim_start: EdgeMarker,
        trim_end: EdgeMarker,
    ) -> None:
        if not text:
            return
        value = _QUOTE_RE.sub(r"\\\g<0>", text)
        value = trim_whitespace(value, self._config, trim_start, trim_end)
        value = value.translate(_LINE_BREAKS)
        if value:
            nodes.append(Literal(value))


def parse(source: str, config: ParserConfig | None = None) -> TemplateAst:
    """Parse template source into an ordered tuple of nodes.

    Args:
        source: Template text
        config: Parser options (defaults to ``ParserConfig()``)

    Returns:
        Tuple of Literal and Tag nodes in source order
    """
    return Parser(config or ParserConfig()).parse(source)
