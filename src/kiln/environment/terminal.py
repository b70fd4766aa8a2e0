"""ANSI styling for Kiln diagnostics.

Every piece of an error report has a role (the error code, the template
location, a snippet gutter...) and each role maps to one SGR sequence.
Styling is enabled for a TTY stdout; ``NO_COLOR`` disables it and
``FORCE_COLOR`` enables it regardless.
"""

from __future__ import annotations

import os
import sys
from typing import Literal

Role = Literal["code", "location", "gutter", "offending", "hint", "match", "muted", "link"]

_SGR: dict[str, str] = {
    "code": "91;1",
    "location": "36",
    "gutter": "33",
    "offending": "91",
    "hint": "32",
    "match": "92;1",
    "muted": "2",
    "link": "94",
}


def _should_use_colors() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


# Decided once at import
_USE_COLORS = _should_use_colors()


def style(text: str, role: Role) -> str:
    """Wrap ``text`` in the SGR sequence for ``role`` when colors are on.

    Example:
        >>> style("K-RUN-001", "code")
        '\033[91;1mK-RUN-001\033[0m'  # colors on
        'K-RUN-001'  # colors off
    """
    if not _USE_COLORS:
        return text
    return f"\033[{_SGR[role]}m{text}\033[0m"


def format_error_header(code: str | None, message: str) -> str:
    if code:
        return f"{style(code, 'code')}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """One snippet row: ``>  7 | <%= x %>`` for the failing line, blank marker otherwise."""
    marker = ">" if is_error else " "
    gutter = style(f"{marker}{lineno:>3}", "gutter")
    return f"{gutter} | {style(content, 'offending' if is_error else 'muted')}"
