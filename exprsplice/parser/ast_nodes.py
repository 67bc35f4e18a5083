"""
Expression tree node definitions.

Each node represents one piece of an unevaluated expression: a symbol,
a call-like compound, or an opaque payload the expander never looks into.
Nodes are immutable; rewriting a tree always builds new nodes.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Tuple
from enum import Enum, auto


class NodeType(Enum):
    """Expression node types."""
    SYMBOL = auto()      # bare name, resolved through a scope
    COMPOUND = auto()    # head(arg1, name = arg2, ...)
    OPAQUE = auto()      # literal constant or host-specific value


@dataclass(frozen=True)
class Expression:
    """Base class for all expression nodes."""

    node_type = None

    def children(self) -> Iterator['Expression']:
        """Yield direct sub-expressions in order (none for leaves)."""
        return iter(())


@dataclass(frozen=True)
class Symbol(Expression):
    """Reference to a name."""
    name: str
    line: int = field(default=0, compare=False, repr=False)
    column: int = field(default=0, compare=False, repr=False)

    node_type = NodeType.SYMBOL

    def __repr__(self):
        return f"Symbol({self.name})"


@dataclass(frozen=True)
class Arg:
    """A compound argument: optional keyword name plus its expression."""
    name: Optional[str]
    value: Expression

    def __repr__(self):
        if self.name is None:
            return repr(self.value)
        return f"{self.name}={self.value!r}"


@dataclass(frozen=True)
class Compound(Expression):
    """Call-like node: head applied to an ordered argument list.

    The head is itself an expression, so computed heads such as
    ``f(x)(y)`` are representable.
    """
    head: Expression
    args: Tuple[Arg, ...] = ()
    line: int = field(default=0, compare=False, repr=False)
    column: int = field(default=0, compare=False, repr=False)

    node_type = NodeType.COMPOUND

    def __post_init__(self):
        # Accept lists and bare expressions for convenience, store a tuple of Arg
        args = tuple(a if isinstance(a, Arg) else Arg(None, a) for a in self.args)
        object.__setattr__(self, 'args', args)

    def children(self) -> Iterator[Expression]:
        yield self.head
        for arg in self.args:
            yield arg.value

    def with_parts(self, head: Expression, values: List[Expression]) -> 'Compound':
        """Return a compound with the given head and argument values.

        Argument names are kept. If every part is the very same object as
        before, ``self`` is returned so unchanged subtrees stay shared.
        """
        if head is self.head and all(v is a.value for v, a in zip(values, self.args)):
            return self
        args = tuple(Arg(a.name, v) for a, v in zip(self.args, values))
        return Compound(head, args, self.line, self.column)

    def __repr__(self):
        return f"Compound({self.head!r}, {list(self.args)!r})"


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


@dataclass(frozen=True, eq=False)
class Opaque(Expression):
    """Literal or foreign node that is passed through untouched."""
    payload: Any
    line: int = field(default=0, repr=False)
    column: int = field(default=0, repr=False)

    node_type = NodeType.OPAQUE

    def __eq__(self, other):
        if not isinstance(other, Opaque):
            return NotImplemented
        # Opaque(1) and Opaque(True) are different literals
        if type(self.payload) is not type(other.payload):
            return False
        if self.payload is other.payload:
            return True
        if _is_nan(self.payload) and _is_nan(other.payload):
            return True
        return self.payload == other.payload

    def __hash__(self):
        if _is_nan(self.payload):
            return hash((float, 'nan'))
        try:
            return hash((type(self.payload), self.payload))
        except TypeError:
            # Unhashable host payloads hash by type; equal payloads share it
            return hash((type(self.payload),))

    def __repr__(self):
        return f"Opaque({self.payload!r})"


def as_expression(value: Any) -> Expression:
    """Wrap a plain Python value as an Opaque node; expressions pass through."""
    if isinstance(value, Expression):
        return value
    return Opaque(value)


def call(head: Any, *args: Any, **kwargs: Any) -> Compound:
    """Build a Compound the short way.

    A string head becomes a Symbol. Argument values that are not already
    expressions become Opaque literals; keyword arguments become named
    arguments, after the positional ones.

        call('==', Symbol('Species'), 'virginica')
    """
    head_expr = Symbol(head) if isinstance(head, str) else as_expression(head)
    arg_list = [Arg(None, as_expression(a)) for a in args]
    arg_list.extend(Arg(k, as_expression(v)) for k, v in kwargs.items())
    return Compound(head_expr, tuple(arg_list))


def walk(expr: Expression) -> Iterator[Expression]:
    """Pre-order traversal of an expression tree."""
    stack = [expr]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children())))


def free_symbols(expr: Expression) -> List[str]:
    """Names of all symbols in the tree, first occurrence order, no repeats."""
    seen = {}
    for node in walk(expr):
        if isinstance(node, Symbol):
            seen.setdefault(node.name, None)
    return list(seen)
