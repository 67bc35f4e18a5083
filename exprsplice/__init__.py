"""
exprsplice - Programmable expression expansion.

Splices expressions bound in a chain of lookup scopes into a larger
expression tree before that tree is handed to an evaluator.
"""

__version__ = "0.1.0"

from .parser.ast_nodes import (
    Arg, Compound, Expression, NodeType, Opaque, Symbol,
    call, free_symbols, walk,
)
from .scope import Binding, ExpressionValue, Frame, OpaqueValue, Scope, resolve
from .parser.expander import CycleError, DepthExceeded, ExpansionError, Expander, expand
from .parser.parser import parse_expression
from .deparse import deparse

__all__ = [
    'Arg', 'Compound', 'Expression', 'NodeType', 'Opaque', 'Symbol',
    'call', 'free_symbols', 'walk',
    'Binding', 'ExpressionValue', 'Frame', 'OpaqueValue', 'Scope', 'resolve',
    'CycleError', 'DepthExceeded', 'ExpansionError', 'Expander', 'expand',
    'parse_expression', 'deparse',
]
