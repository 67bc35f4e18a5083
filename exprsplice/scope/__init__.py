"""Lookup scopes and bindings used to resolve symbols."""

from .frames import (
    Binding, ExpressionValue, OpaqueValue, Scope, Frame,
    resolve, tag_value, shadowed_expression_bindings,
)

__all__ = [
    'Binding', 'ExpressionValue', 'OpaqueValue', 'Scope', 'Frame',
    'resolve', 'tag_value', 'shadowed_expression_bindings',
]
