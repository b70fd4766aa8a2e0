"""Kiln Environment — configuration, loaders and template errors.

Public API:
    Environment: Central configuration and template management
    FileSystemLoader / DictLoader / ChoiceLoader: Template source providers
    TemplateError and subclasses: Error hierarchy with error codes

Example:
    >>> from kiln.environment import Environment, FileSystemLoader
    >>> env = Environment(loader=FileSystemLoader("templates/"), debug=True)
    >>> env.render("index.html", {"title": "Home"})

"""

from kiln.environment.exceptions import (
    ConfigurationError,
    ErrorCode,
    IncludeDepthError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    build_source_snippet,
)
from kiln.environment.loaders import (
    ChoiceLoader,
    DictLoader,
    FileSystemLoader,
    Loader,
    resolve_name,
)
from kiln.environment.core import Environment

__all__ = [
    "ChoiceLoader",
    "ConfigurationError",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "IncludeDepthError",
    "Loader",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UndefinedError",
    "build_source_snippet",
    "resolve_name",
]
