"""HTML escaping primitive used as the default ``escape`` of an Environment.

Values implementing ``__html__`` (such as Markup) are trusted and emitted
as-is; everything else is converted with ``str()`` and escaped in a single
pass with ``str.translate()``.
"""

from __future__ import annotations

from typing import Any

_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#39;",
    }
)


class Markup(str):
    """A string that is already safe to emit without escaping.

        >>> html_escape(Markup("<b>bold</b>"))
        '<b>bold</b>'
    """

    __slots__ = ()

    def __html__(self) -> str:
        return self


def html_escape(value: Any) -> str:
    """Escape ``& < > " '`` unless ``value`` provides ``__html__``.

        >>> html_escape("<script>")
        '&lt;script&gt;'
    """
    if hasattr(value, "__html__"):
        return str(value.__html__())
    return str(value).translate(_ESCAPE_TABLE)
