"""
Deparser - Renders expression trees back to source text.

Output uses the same operator table as the parser and adds only the
parentheses needed for the text to parse back into the same tree.
"""

import math
import re
from typing import Tuple

from ..parser.ast_nodes import Compound, Expression, Opaque, Symbol
from ..parser.parser import (
    CONSTANTS, POSTFIX_PRECEDENCE, PREFIX_PRECEDENCE, RIGHT_ASSOCIATIVE,
    binary_precedence,
)

ATOM_PRECEDENCE = 1000
SYNTACTIC_NAME = re.compile(r'^[A-Za-z._][A-Za-z0-9._]*$')
STRING_ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t', '\r': '\\r', '\0': '\\0'}
NAME_ESCAPES = {'\\': '\\\\', '`': '\\`', '\n': '\\n', '\t': '\\t', '\r': '\\r', '\0': '\\0'}


def format_name(name: str) -> str:
    """Backtick-quote NAME unless it reads back as the same symbol."""
    if (SYNTACTIC_NAME.match(name) and name not in CONSTANTS
            and not re.match(r'^\.[0-9]', name)):
        return name
    return '`' + ''.join(NAME_ESCAPES.get(ch, ch) for ch in name) + '`'


def format_string(value: str) -> str:
    return '"' + ''.join(STRING_ESCAPES.get(ch, ch) for ch in value) + '"'


class Deparser:
    """Converts expressions to text."""

    def deparse(self, expr: Expression) -> str:
        text, _ = self.render(expr)
        return text

    def render(self, expr: Expression) -> Tuple[str, int]:
        """Return (text, precedence of the outermost construct)."""
        if isinstance(expr, Symbol):
            return format_name(expr.name), ATOM_PRECEDENCE
        if isinstance(expr, Opaque):
            return self.render_opaque(expr.payload)
        if isinstance(expr, Compound):
            return self.render_compound(expr)
        return f"<opaque: {expr!r}>", ATOM_PRECEDENCE

    def render_opaque(self, value) -> Tuple[str, int]:
        if value is True:
            return 'TRUE', ATOM_PRECEDENCE
        if value is False:
            return 'FALSE', ATOM_PRECEDENCE
        if value is None:
            return 'NULL', ATOM_PRECEDENCE
        if isinstance(value, str):
            return format_string(value), ATOM_PRECEDENCE
        if isinstance(value, int):
            return self.signed(str(value), value < 0)
        if isinstance(value, float):
            if math.isnan(value):
                return 'NaN', ATOM_PRECEDENCE
            if math.isinf(value):
                return self.signed('-Inf' if value < 0 else 'Inf', value < 0)
            return self.signed(repr(value), value < 0)
        return f"<opaque: {value!r}>", ATOM_PRECEDENCE

    def signed(self, text: str, negative: bool) -> Tuple[str, int]:
        # A leading minus reads back as the unary operator
        return text, PREFIX_PRECEDENCE['-'] if negative else ATOM_PRECEDENCE

    def render_compound(self, node: Compound) -> Tuple[str, int]:
        head = node.head
        args = node.args
        unnamed = all(a.name is None for a in args)

        if isinstance(head, Symbol) and unnamed:
            op = head.name
            if len(args) == 1 and op in PREFIX_PRECEDENCE:
                prec = PREFIX_PRECEDENCE[op]
                operand = self.wrap(args[0].value, prec, strict=False)
                return f"{op}{operand}", prec

            prec = binary_precedence(op)
            if len(args) == 2 and prec is not None:
                if op == '$' and isinstance(args[1].value, Symbol):
                    left = self.wrap(args[0].value, prec, strict=False)
                    return f"{left}${format_name(args[1].value.name)}", prec
                if op != '$':
                    right_assoc = op in RIGHT_ASSOCIATIVE
                    left = self.wrap(args[0].value, prec, strict=right_assoc)
                    right = self.wrap(args[1].value, prec, strict=not right_assoc)
                    # Tight operators are written without spaces, as R does
                    if op in (':', '^'):
                        return f"{left}{op}{right}", prec
                    return f"{left} {op} {right}", prec

        if isinstance(head, Symbol) and head.name == '[' and args and args[0].name is None:
            target = self.wrap(args[0].value, POSTFIX_PRECEDENCE, strict=False)
            return f"{target}[{self.render_args(args[1:])}]", POSTFIX_PRECEDENCE

        callee = self.wrap(head, POSTFIX_PRECEDENCE, strict=False)
        return f"{callee}({self.render_args(args)})", POSTFIX_PRECEDENCE

    def render_args(self, args) -> str:
        parts = []
        for arg in args:
            value = self.deparse(arg.value)
            if arg.name is None:
                parts.append(value)
            else:
                parts.append(f"{format_name(arg.name)} = {value}")
        return ', '.join(parts)

    def wrap(self, expr: Expression, prec: int, strict: bool) -> str:
        """Render EXPR as an operand of an operator with precedence PREC.

        With STRICT, an operand of equal precedence is parenthesized too.
        """
        text, inner = self.render(expr)
        if inner < prec or (strict and inner == prec):
            return f"({text})"
        return text


def deparse(expr: Expression) -> str:
    """Render EXPR as source text."""
    try:
        return Deparser().deparse(expr)
    except RecursionError:
        raise ValueError("expression nested too deeply to deparse") from None
