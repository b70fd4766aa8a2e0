"""Kiln Template package — compiled templates and their runtime records."""

from kiln.template.core import Template, wrap_render_function
from kiln.template.helpers import RenderOptions, RenderState, build_runtime_error
from kiln.utils.html import Markup

__all__ = [
    "Markup",
    "RenderOptions",
    "RenderState",
    "Template",
    "build_runtime_error",
    "wrap_render_function",
]
