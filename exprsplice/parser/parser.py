"""
Expression Parser - Builds expression trees from tokens.

Operators become compounds headed by the operator symbol, so ``a + b``
parses to ``Compound(Symbol('+'), [a, b])`` and ``f(x, n = 2)`` to
``Compound(Symbol('f'), [x, n=2])``. Grouping parentheses leave no trace
in the tree.
"""

from typing import List, Optional

from ..lexer import Lexer, Token, TokenType
from .ast_nodes import Arg, Compound, Expression, Opaque, Symbol


# Binding powers for infix operators; a higher number binds tighter
BINARY_PRECEDENCE = {
    '~': 10,
    '<-': 20,
    '|': 30, '||': 30,
    '&': 40, '&&': 40,
    '==': 60, '!=': 60, '<': 60, '>': 60, '<=': 60, '>=': 60,
    '+': 70, '-': 70,
    '*': 80, '/': 80,
    ':': 100,
    '^': 120,
    '$': 140,
}
USER_OPERATOR_PRECEDENCE = 90   # %op%
PREFIX_PRECEDENCE = {'~': 10, '!': 50, '-': 110, '+': 110}
POSTFIX_PRECEDENCE = 130        # calls f(...) and indexing x[...]
RIGHT_ASSOCIATIVE = frozenset({'<-', '^'})

CONSTANTS = {
    'TRUE': True,
    'FALSE': False,
    'NULL': None,
    'Inf': float('inf'),
    'NaN': float('nan'),
}

STATEMENT_SEPARATORS = (TokenType.NEWLINE, TokenType.SEMICOLON)


def binary_precedence(op: str) -> Optional[int]:
    """Binding power of an infix operator, or None if OP is not infix."""
    if len(op) >= 2 and op.startswith('%') and op.endswith('%'):
        return USER_OPERATOR_PRECEDENCE
    return BINARY_PRECEDENCE.get(op)


class Parser:
    """Parses expression tokens into Expression trees."""

    def __init__(self, tokens: List[Token], filename: str = "<input>"):
        self.tokens = tokens
        self.filename = filename
        self.pos = 0
        self.current_token = self.tokens[0] if tokens else None

    def error(self, message: str):
        """Raise a parser error with location information."""
        if self.current_token:
            raise SyntaxError(
                f"{self.filename}:{self.current_token.line}:{self.current_token.column}: {message}"
            )
        else:
            raise SyntaxError(f"{self.filename}: {message}")

    def peek(self, offset: int = 0) -> Optional[Token]:
        """Peek at token at current position + offset."""
        pos = self.pos + offset
        if pos < len(self.tokens):
            return self.tokens[pos]
        return None

    def advance(self) -> Token:
        """Consume and return current token."""
        token = self.current_token
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
            self.current_token = self.tokens[self.pos]
        return token

    def expect(self, token_type: TokenType) -> Token:
        """Consume token of expected type or raise error."""
        if self.current_token.type != token_type:
            self.error(f"Expected {token_type.name}, got {self.describe(self.current_token)}")
        return self.advance()

    def describe(self, token: Token) -> str:
        if token.type == TokenType.EOF:
            return "end of input"
        if token.type == TokenType.NEWLINE:
            return "end of line"
        return f"{token.type.name} ({token.value!r})"

    def skip_newlines(self):
        while self.current_token.type == TokenType.NEWLINE:
            self.advance()

    def skip_separators(self):
        while self.current_token.type in STATEMENT_SEPARATORS:
            self.advance()

    def parse(self) -> Expression:
        """Parse exactly one expression (surrounding blank lines allowed)."""
        self.skip_separators()
        if self.current_token.type == TokenType.EOF:
            self.error("Empty expression")
        expr = self.parse_top_level()
        self.skip_separators()
        if self.current_token.type != TokenType.EOF:
            self.error(f"Unexpected {self.describe(self.current_token)} after expression")
        return expr

    def parse_statements(self) -> List[Expression]:
        """Parse a script of newline- or ';'-separated expressions."""
        statements = []
        self.skip_separators()
        while self.current_token.type != TokenType.EOF:
            statements.append(self.parse_top_level())
            if self.current_token.type not in STATEMENT_SEPARATORS + (TokenType.EOF,):
                self.error(f"Unexpected {self.describe(self.current_token)} after statement")
            self.skip_separators()
        return statements

    def parse_top_level(self) -> Expression:
        """Parse one expression, reporting runaway nesting as a syntax error."""
        try:
            return self.parse_expression()
        except RecursionError:
            self.error("Expression nested too deeply")

    def parse_expression(self, rbp: int = 0) -> Expression:
        """Parse an expression whose operators bind tighter than RBP."""
        left = self.parse_prefix()

        while True:
            token = self.current_token

            if token.type == TokenType.OPERATOR:
                prec = binary_precedence(token.value)
                if prec is None:
                    self.error(f"'{token.value}' is not a binary operator")
                if prec <= rbp:
                    break
                self.advance()
                if token.value == '$':
                    right = self.parse_member_name()
                else:
                    self.skip_newlines()
                    next_rbp = prec - 1 if token.value in RIGHT_ASSOCIATIVE else prec
                    right = self.parse_expression(next_rbp)
                left = Compound(Symbol(token.value, token.line, token.column),
                                (Arg(None, left), Arg(None, right)),
                                token.line, token.column)

            elif token.type == TokenType.LPAREN and POSTFIX_PRECEDENCE > rbp:
                self.advance()
                args = self.parse_arguments(TokenType.RPAREN)
                left = Compound(left, tuple(args), token.line, token.column)

            elif token.type == TokenType.LBRACKET and POSTFIX_PRECEDENCE > rbp:
                self.advance()
                args = self.parse_arguments(TokenType.RBRACKET)
                left = Compound(Symbol('[', token.line, token.column),
                                tuple([Arg(None, left)] + args),
                                token.line, token.column)

            else:
                break

        return left

    def parse_prefix(self) -> Expression:
        """Parse a primary expression or a prefix operator application."""
        self.skip_newlines()
        token = self.current_token

        if token.type in (TokenType.NUMBER, TokenType.STRING):
            self.advance()
            return Opaque(token.value, token.line, token.column)

        if token.type == TokenType.NAME:
            self.advance()
            if token.value in CONSTANTS:
                return Opaque(CONSTANTS[token.value], token.line, token.column)
            return Symbol(token.value, token.line, token.column)

        if token.type == TokenType.OPERATOR and token.value in PREFIX_PRECEDENCE:
            self.advance()
            operand = self.parse_expression(PREFIX_PRECEDENCE[token.value])
            return Compound(Symbol(token.value, token.line, token.column),
                            (Arg(None, operand),), token.line, token.column)

        if token.type == TokenType.LPAREN:
            self.advance()
            expr = self.parse_expression()
            self.expect(TokenType.RPAREN)
            return expr

        self.error(f"Unexpected {self.describe(token)}")

    def parse_member_name(self) -> Expression:
        """Parse the right side of x$name."""
        token = self.current_token
        if token.type not in (TokenType.NAME, TokenType.STRING):
            self.error(f"Expected a name after '$', got {self.describe(token)}")
        self.advance()
        return Symbol(token.value, token.line, token.column)

    def parse_arguments(self, closer: TokenType) -> List[Arg]:
        """Parse a comma-separated argument list up to CLOSER.

        Arguments may be named: f(x, size = 3, "label" = y).
        """
        args: List[Arg] = []
        if self.current_token.type == closer:
            self.advance()
            return args

        while True:
            name = None
            nxt = self.peek(1)
            if (self.current_token.type in (TokenType.NAME, TokenType.STRING)
                    and nxt is not None and nxt.type == TokenType.EQUALS):
                name = self.advance().value
                self.advance()  # =
            args.append(Arg(name, self.parse_expression()))

            if self.current_token.type == TokenType.COMMA:
                self.advance()
                continue
            self.expect(closer)
            return args


def parse_expression(source: str, filename: str = "<input>") -> Expression:
    """Parse SOURCE as a single expression."""
    tokens = Lexer(source, filename).tokenize()
    return Parser(tokens, filename).parse()


def parse_statements(source: str, filename: str = "<input>") -> List[Expression]:
    """Parse SOURCE as a script of expressions."""
    tokens = Lexer(source, filename).tokenize()
    return Parser(tokens, filename).parse_statements()
