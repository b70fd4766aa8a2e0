"""Shared enums for Kiln.

Kept in a leaf module so that nodes, configuration and the parser can all
import them without cycles.
"""

from __future__ import annotations

from enum import Enum


class TagKind(Enum):
    """What a tag does with its body.

    - INTERPOLATE: evaluate, filter/escape per policy, append to output
    - RAW: evaluate, filter per policy, append without escaping
    - EXECUTE: run as a statement, no output
    """

    RAW = "r"
    INTERPOLATE = "i"
    EXECUTE = "e"


class TrimMode(Enum):
    """Whitespace trimming applied to one edge of a literal.

    Tag markers map onto these modes: ``-`` is NEWLINE, ``_`` is SLURP.
    """

    OFF = "off"
    NEWLINE = "nl"
    SLURP = "slurp"


# Marker character written just inside a delimiter -> trim mode
TRIM_MARKERS: dict[str, TrimMode] = {
    "-": TrimMode.NEWLINE,
    "_": TrimMode.SLURP,
}
