"""Ambient-scope binding for generated render code.

With ``use_with`` enabled, tag bodies may name context entries directly
(``<%= title %>`` instead of ``<%= it['title'] %>``). Python has no
dynamic-scope block, so the generated body is rewritten instead: every
load of a free name becomes

    (it['title'] if 'title' in it else title)

which reads the context first and falls back to ordinary name resolution
(globals, then NameError).

A name counts as free when nothing in the generated body binds it
(assignment, loop target, parameter, import, def/class, except/with/match
capture, global/nonlocal) and it is not a builtin, the context variable,
a runtime-owned ``__kiln*`` name, or one of the names the render function
provides (``include``, ``include_async``, ``layout``, ``options``). This is
an approximation of dynamic scoping: a name bound anywhere in the template
is never looked up in the context, and shadowing a builtin through the
context has no effect.

The body is parsed as module code; ``return`` and ``await`` outside a
function are only rejected when compiling, so parsing succeeds.
"""

from __future__ import annotations

import ast
import builtins
import logging

from kiln.config import RESERVED_NAMES, RESERVED_PREFIX

logger = logging.getLogger(__name__)

_BUILTIN_NAMES = frozenset(dir(builtins))


def _bound_names(tree: ast.AST) -> set[str]:
    """Collect every name the code binds, in any scope."""
    bound: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and not isinstance(node.ctx, ast.Load):
            bound.add(node.id)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            bound.add(node.name)
        elif isinstance(node, ast.arg):
            bound.add(node.arg)
        elif isinstance(node, ast.alias):
            bound.add(node.asname or node.name.split(".")[0])
        elif isinstance(node, (ast.Global, ast.Nonlocal)):
            bound.update(node.names)
        elif isinstance(node, ast.ExceptHandler) and node.name:
            bound.add(node.name)
        elif isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
            bound.add(node.name)
        elif isinstance(node, ast.MatchMapping) and node.rest:
            bound.add(node.rest)
    return bound


class _AmbientRewriter(ast.NodeTransformer):
    def __init__(self, names: frozenset[str], var_name: str):
        self._names = names
        self._var_name = var_name

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if not isinstance(node.ctx, ast.Load) or node.id not in self._names:
            return node
        key = ast.Constant(value=node.id)
        lookup = ast.IfExp(
            test=ast.Compare(
                left=key,
                ops=[ast.In()],
                comparators=[ast.Name(id=self._var_name, ctx=ast.Load())],
            ),
            body=ast.Subscript(
                value=ast.Name(id=self._var_name, ctx=ast.Load()),
                slice=ast.Constant(value=node.id),
                ctx=ast.Load(),
            ),
            orelse=node,
        )
        return ast.copy_location(lookup, node)


def free_names(tree: ast.AST, var_name: str) -> frozenset[str]:
    """Names in ``tree`` that should resolve against the context."""
    bound = _bound_names(tree)
    loaded = {
        node.id
        for node in ast.walk(tree)
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load)
    }
    return frozenset(
        name
        for name in loaded - bound
        if name != var_name
        and name not in _BUILTIN_NAMES
        and name not in RESERVED_NAMES
        and not name.startswith(RESERVED_PREFIX)
    )


def bind_ambient_names(code: str, var_name: str) -> str:
    """Rewrite free-name loads in ``code`` into context lookups.

    Code that does not parse is returned unchanged; compiling it later
    reports the syntax error against the template.
    """
    try:
        tree = ast.parse(code)
    except SyntaxError as e:
        logger.warning("Ambient scope skipped, generated code does not parse: %s", e)
        return code

    names = free_names(tree, var_name)
    if not names:
        return code

    logger.debug("Binding %d names to %r: %s", len(names), var_name, ", ".join(sorted(names)))
    tree = _AmbientRewriter(names, var_name).visit(tree)
    ast.fix_missing_locations(tree)
    return ast.unparse(tree) + "\n"
