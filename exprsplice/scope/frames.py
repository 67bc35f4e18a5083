"""
Lookup scopes for symbol resolution.

A scope answers one question, "what is NAME bound to here?", and knows
its enclosing scope. Chains of scopes mirror nested call frames: a name is
looked up in the innermost scope first and then in each enclosing one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from ..parser.ast_nodes import Compound, Expression, Symbol


class Binding:
    """Base class for values found by a scope lookup."""


@dataclass(frozen=True)
class ExpressionValue(Binding):
    """A binding to an expression; the expander substitutes these."""
    expression: Expression


@dataclass(frozen=True)
class OpaqueValue(Binding):
    """A binding to anything else (data, callables); never substituted."""
    value: Any


class Scope(ABC):
    """Abstract lookup context."""

    @abstractmethod
    def lookup(self, name: str) -> Optional[Binding]:
        """Return the binding for NAME in this scope only, or None."""

    @abstractmethod
    def parent(self) -> Optional['Scope']:
        """Return the enclosing scope, or None at the root."""


def resolve(scope: Scope, name: str) -> Optional[Tuple[Binding, Scope]]:
    """
    Find NAME walking from SCOPE toward the root.

    Returns (binding, scope_that_holds_it) for the first match, or None
    if no scope in the chain binds the name.
    """
    current = scope
    while current is not None:
        binding = current.lookup(name)
        if binding is not None:
            return binding, current
        current = current.parent()
    return None


def tag_value(value: Any) -> Binding:
    """Classify a raw Python value as an expression or opaque binding."""
    if isinstance(value, Binding):
        return value
    if isinstance(value, (Symbol, Compound)):
        return ExpressionValue(value)
    return OpaqueValue(value)


class Frame(Scope):
    """Dict-backed scope with an optional parent frame.

    Raw values are tagged on lookup: symbols and compounds are expression
    bindings, anything else (a bare Opaque node included) is opaque data.
    Pass an explicit ExpressionValue to force substitution of a literal.
    """

    def __init__(self, bindings: Optional[Mapping[str, Any]] = None,
                 parent: Optional[Scope] = None, name: str = ""):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self._parent = parent
        self.name = name

    def lookup(self, name: str) -> Optional[Binding]:
        if name not in self.bindings:
            return None
        return tag_value(self.bindings[name])

    def parent(self) -> Optional[Scope]:
        return self._parent

    def bind(self, name: str, value: Any) -> 'Frame':
        """Bind NAME in this frame (replacing any previous value)."""
        self.bindings[name] = value
        return self

    def child(self, bindings: Optional[Mapping[str, Any]] = None, name: str = "") -> 'Frame':
        """Create a new frame enclosed by this one."""
        return Frame(bindings, parent=self, name=name)

    def names(self) -> List[str]:
        return list(self.bindings)

    def ancestors(self) -> Iterator[Scope]:
        """Yield enclosing scopes, nearest first."""
        current = self._parent
        while current is not None:
            yield current
            current = current.parent()

    def __contains__(self, name: str) -> bool:
        return name in self.bindings

    def __repr__(self):
        return f"Frame({self.name or '<anonymous>'}, {len(self.bindings)} bindings)"


def shadowed_expression_bindings(frame: Frame) -> List[str]:
    """Names bound in FRAME that hide an expression binding further out."""
    outer = frame.parent()
    if outer is None:
        return []
    shadowed = []
    for name in frame.names():
        found = resolve(outer, name)
        if found is not None and isinstance(found[0], ExpressionValue):
            shadowed.append(name)
    return shadowed
