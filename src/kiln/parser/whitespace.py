"""Whitespace control for literals adjacent to tags.

A literal sits between two tags. The tag before it may trim the literal's
start; the tag after it may trim the literal's end. Each edge resolves to a
TrimMode:

- explicit marker on the adjacent tag (``-`` or ``_``) wins
- ``False`` means "no adjacent tag here", never trim
- ``None`` falls back to the global ``auto_trim`` setting
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Literal

from kiln._types import TRIM_MARKERS, TrimMode

if TYPE_CHECKING:
    from kiln.config import ParserConfig

_LEADING_NEWLINE = re.compile(r"^(?:\r\n|\n|\r)")
_TRAILING_NEWLINE = re.compile(r"(?:\r\n|\n|\r)\Z")

EdgeMarker = str | None | Literal[False]


def _resolve(marker: EdgeMarker, default: TrimMode) -> TrimMode:
    if marker is False:
        return TrimMode.OFF
    if marker:
        return TRIM_MARKERS[marker]
    return default


def trim_whitespace(
    text: str,
    config: ParserConfig,
    trim_start: EdgeMarker = None,
    trim_end: EdgeMarker = None,
) -> str:
    """Trim a literal according to adjacent tag markers and global mode.

    Args:
        text: Literal text
        config: Parser configuration (supplies ``auto_trim``)
        trim_start: Right-hand marker of the tag before the literal
        trim_end: Left-hand marker of the tag after the literal

    Example:
        >>> trim_whitespace("a\\n", ParserConfig(), trim_end="_")
        'a'
        >>> trim_whitespace("\\nb", ParserConfig())  # default trims one newline after a tag
        'b'
    """
    before_tag, after_tag = config.trim_pair
    start = _resolve(trim_start, after_tag)
    end = _resolve(trim_end, before_tag)

    if start is TrimMode.OFF and end is TrimMode.OFF:
        return text
    if start is TrimMode.SLURP and end is TrimMode.SLURP:
        return text.strip()

    if start is TrimMode.SLURP:
        text = text.lstrip()
    elif start is TrimMode.NEWLINE:
        text = _LEADING_NEWLINE.sub("", text, count=1)

    if end is TrimMode.SLURP:
        text = text.rstrip()
    elif end is TrimMode.NEWLINE:
        text = _TRAILING_NEWLINE.sub("", text, count=1)

    return text
