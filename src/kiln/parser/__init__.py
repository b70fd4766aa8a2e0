"""Kiln parser: template source → tuple of Literal/Tag nodes."""

from __future__ import annotations

from kiln.parser.core import Parser, compile_tag_pattern, parse
from kiln.parser.whitespace import trim_whitespace

__all__ = ["Parser", "compile_tag_pattern", "parse", "trim_whitespace"]
