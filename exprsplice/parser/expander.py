"""
Expansion engine for expression bindings.

Walks an expression tree and replaces every symbol that resolves to an
expression binding with the expansion of that expression. Symbols bound to
plain data, and symbols that do not resolve at all, are left alone so a
later evaluation step can deal with them.
"""

import sys
from typing import List, Optional

from .ast_nodes import Compound, Expression, Opaque, Symbol
from ..scope import ExpressionValue, Scope, resolve


class ExpansionError(Exception):
    """Base class for expansion failures; NAME is the offending symbol."""

    def __init__(self, message: str, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


class CycleError(ExpansionError):
    """Expanding NAME would re-enter its own unfinished expansion."""

    def __init__(self, name: str, chain: Optional[List[str]] = None):
        self.chain = list(chain or []) + [name]
        super().__init__(
            f"cyclic expansion of '{name}': {' -> '.join(self.chain)}", name
        )


class DepthExceeded(ExpansionError):
    """Expression plus binding nesting went past the configured limit."""

    def __init__(self, max_depth: int, name: Optional[str] = None):
        self.max_depth = max_depth
        where = f" while expanding '{name}'" if name else ""
        super().__init__(f"expansion depth limit of {max_depth} exceeded{where}", name)


class _ExpansionFrame:
    """State for a single expand() call. Never shared between calls."""

    def __init__(self):
        self.active: List[str] = []  # symbols being expanded, outermost first
        self.depth = 0
        self.overflow: Optional[str] = None  # innermost symbol at interpreter overflow

    @property
    def innermost(self) -> Optional[str]:
        return self.active[-1] if self.active else None


class Expander:
    """Expands expression bindings inside an expression tree.

    An Expander only holds configuration, so one instance can serve any
    number of expand() calls, including concurrent ones, as long as the
    scopes passed in are safe to read concurrently.
    """

    DEFAULT_MAX_DEPTH = 200

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH, verbose: bool = False):
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self.max_depth = max_depth
        self.verbose = verbose

    def log(self, message: str):
        """Print log message if verbose mode is enabled."""
        if self.verbose:
            print(f"[exprsplice] {message}", file=sys.stderr)

    def expand(self, expr: Expression, scope: Scope) -> Expression:
        """
        Return EXPR with every expression-bound symbol expanded.

        Raises CycleError if a binding refers back to itself (directly or
        through other bindings), DepthExceeded if nesting exceeds max_depth.
        The input tree is never modified; unchanged subtrees are shared.
        """
        frame = _ExpansionFrame()
        try:
            return self._expand_recursive(expr, scope, frame)
        except RecursionError:
            # max_depth was set higher than the interpreter stack allows
            raise DepthExceeded(self.max_depth, frame.overflow) from None

    def _expand_recursive(self, node: Expression, scope: Scope,
                          frame: _ExpansionFrame) -> Expression:
        if isinstance(node, Opaque):
            return node

        frame.depth += 1
        try:
            if frame.depth > self.max_depth:
                raise DepthExceeded(self.max_depth, frame.innermost)

            if isinstance(node, Symbol):
                return self._expand_symbol(node, scope, frame)

            if isinstance(node, Compound):
                new_head = self._expand_recursive(node.head, scope, frame)
                new_values = [self._expand_recursive(arg.value, scope, frame)
                              for arg in node.args]
                return node.with_parts(new_head, new_values)

            # Other node kinds are not interpreted
            return node
        finally:
            frame.depth -= 1

    def _expand_symbol(self, node: Symbol, scope: Scope,
                       frame: _ExpansionFrame) -> Expression:
        found = resolve(scope, node.name)
        if found is None:
            return node

        binding, home = found
        if not isinstance(binding, ExpressionValue):
            return node

        name = node.name
        if name in frame.active:
            raise CycleError(name, frame.active)

        self.log(f"expanding {name} (depth {frame.depth})")
        frame.active.append(name)
        try:
            # Resolve the bound expression where the binding lives,
            # not at the substitution site
            return self._expand_recursive(binding.expression, home, frame)
        except RecursionError:
            if frame.overflow is None:
                frame.overflow = name
            raise
        finally:
            frame.active.pop()


def expand(expr: Expression, scope: Scope,
           max_depth: int = Expander.DEFAULT_MAX_DEPTH) -> Expression:
    """Expand EXPR against SCOPE with a default-configured Expander."""
    return Expander(max_depth=max_depth).expand(expr, scope)
