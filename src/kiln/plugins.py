"""Plugin protocols and the ordered plugin pipeline.

A plugin is any object exposing one or both hooks:

- ``process_ast(ast, config) -> ast`` runs after parsing
- ``process_code(code, config) -> code`` runs after code generation

Hooks run in registration order, each seeing the previous result; the last
plugin's output is final. Plugins are trusted: their exceptions propagate.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kiln.config import GeneratorConfig, ParserConfig
    from kiln.nodes import AstNode, TemplateAst


@runtime_checkable
class TransformsAst(Protocol):
    def process_ast(self, ast: TemplateAst, config: ParserConfig) -> Iterable[AstNode]: ...


@runtime_checkable
class TransformsCode(Protocol):
    def process_code(self, code: str, config: GeneratorConfig) -> str: ...


def run_ast_plugins(
    ast: TemplateAst, plugins: Iterable[Any], config: ParserConfig
) -> TemplateAst:
    """Apply every ``process_ast`` hook in order."""
    for plugin in plugins:
        if isinstance(plugin, TransformsAst):
            ast = tuple(plugin.process_ast(ast, config))
    return ast


def run_code_plugins(code: str, plugins: Iterable[Any], config: GeneratorConfig) -> str:
    """Apply every ``process_code`` hook in order."""
    for plugin in plugins:
        if isinstance(plugin, TransformsCode):
            code = plugin.process_code(code, config)
    return code
