"""
Test fixtures and helpers for exprsplice tests.

The fluent helper mirrors how expansions are described in prose:

    AssertExpansion('d') \
        .with_binding('b', 'Species == "virginica"') \
        .with_binding('d', 'b & c') \
        .expands_to('(Species == "virginica") & c')
"""

import sys
from pathlib import Path
from typing import Any, List, Optional, Type

import pytest

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from exprsplice.parser import parse_expression
from exprsplice.parser.ast_nodes import Expression
from exprsplice.parser.expander import Expander
from exprsplice.scope import ExpressionValue, Frame, OpaqueValue
from exprsplice.deparse import deparse


class AssertExpansion:
    """Fluent assertions about expanding one expression in a frame chain."""

    def __init__(self, expression: str):
        self.expression = expression
        self.frames: List[Frame] = [Frame(name="global")]
        self.max_depth = Expander.DEFAULT_MAX_DEPTH

    @property
    def scope(self) -> Frame:
        return self.frames[-1]

    def with_binding(self, name: str, source: str) -> 'AssertExpansion':
        """Bind NAME to the expression parsed from SOURCE in the current frame."""
        self.scope.bind(name, ExpressionValue(parse_expression(source)))
        return self

    def with_value(self, name: str, value: Any) -> 'AssertExpansion':
        """Bind NAME to plain data in the current frame."""
        self.scope.bind(name, OpaqueValue(value))
        return self

    def in_child_frame(self, name: str = "") -> 'AssertExpansion':
        """Later bindings go to a new frame nested in the current one."""
        self.frames.append(self.scope.child(name=name))
        return self

    def with_max_depth(self, max_depth: int) -> 'AssertExpansion':
        self.max_depth = max_depth
        return self

    def expand(self) -> Expression:
        return Expander(max_depth=self.max_depth).expand(
            parse_expression(self.expression), self.scope)

    def expands_to(self, expected: str) -> Expression:
        result = self.expand()
        assert result == parse_expression(expected), \
            f"{self.expression} expanded to {deparse(result)}, expected {expected}"
        return result

    def is_unchanged(self) -> Expression:
        return self.expands_to(self.expression)

    def raises(self, error_type: Type[Exception], name: Optional[str] = None) -> Exception:
        with pytest.raises(error_type) as info:
            self.expand()
        if name is not None:
            assert info.value.name == name
        return info.value


@pytest.fixture
def iris_scope() -> Frame:
    """Root frame with the iris filter fragments used across tests."""
    frame = Frame(name="global")
    frame.bind('b', ExpressionValue(parse_expression('Species == "virginica"')))
    frame.bind('c', ExpressionValue(parse_expression('Sepal.Width > 3.6')))
    frame.bind('d', ExpressionValue(parse_expression('b & c')))
    return frame
