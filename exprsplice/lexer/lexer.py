"""
Expression Lexer - Tokenizes R-style expression source into tokens.

Handles:
- Names (letters, digits, '.', '_') and `backtick quoted` names
- Strings in single or double quotes with backslash escapes
- Integer, float and L-suffixed integer numbers
- Operators, including user-defined %op% operators
- Comments (# to end of line)
- Newlines as statement separators outside brackets
"""

from enum import Enum, auto
from dataclasses import dataclass
from typing import Any, List, Optional


class TokenType(Enum):
    """Expression token types."""
    # Delimiters
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACKET = auto()    # [
    RBRACKET = auto()    # ]
    COMMA = auto()       # ,
    EQUALS = auto()      # = (argument names)
    SEMICOLON = auto()   # ; statement separator

    # Literals
    NAME = auto()        # identifier / symbol
    STRING = auto()      # "text" or 'text'
    NUMBER = auto()      # 1, 2.5, 3L, 1e-3

    OPERATOR = auto()    # + - * / ^ == != < > <= >= & && | || ! ~ : <- $ %op%

    NEWLINE = auto()     # only emitted outside brackets
    EOF = auto()


# Longest first so that '<-' wins over '<'
OPERATORS = ('<-', '<=', '>=', '==', '!=', '&&', '||',
             '+', '-', '*', '/', '^', '<', '>', '&', '|', '!', '~', ':', '$')

ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0',
           '\\': '\\', '"': '"', "'": "'", '`': '`'}


@dataclass
class Token:
    """Represents a single token."""
    type: TokenType
    value: Any
    line: int
    column: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class Lexer:
    """Tokenizes expression source code."""

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        self.bracket_depth = 0  # newlines inside ( ) and [ ] are plain whitespace

    def error(self, message: str):
        """Raise a lexer error with location information."""
        raise SyntaxError(f"{self.filename}:{self.line}:{self.column}: {message}")

    def peek(self, offset: int = 0) -> Optional[str]:
        """Peek at character at current position + offset."""
        pos = self.pos + offset
        if pos < len(self.source):
            return self.source[pos]
        return None

    def advance(self) -> Optional[str]:
        """Consume and return current character."""
        if self.pos >= len(self.source):
            return None

        ch = self.source[self.pos]
        self.pos += 1

        if ch == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1

        return ch

    def skip_whitespace(self):
        """Skip blanks; newlines only when inside brackets."""
        while self.peek() is not None:
            ch = self.peek()
            if ch in ' \t\r\f':
                self.advance()
            elif ch == '\n' and self.bracket_depth > 0:
                self.advance()
            else:
                break

    def skip_comment(self):
        """Skip a # comment up to (not including) the newline."""
        while self.peek() is not None and self.peek() != '\n':
            self.advance()

    def read_string(self) -> str:
        """Read a quoted string; the opening quote is the current character."""
        quote = self.advance()
        chars = []
        while True:
            ch = self.advance()
            if ch is None:
                self.error("Unterminated string")
            if ch == quote:
                break
            if ch == '\\':
                esc = self.advance()
                if esc is None:
                    self.error("Unterminated string")
                if esc not in ESCAPES:
                    self.error(f"Unknown escape sequence \\{esc}")
                chars.append(ESCAPES[esc])
            else:
                chars.append(ch)
        return ''.join(chars)

    def read_backtick_name(self) -> str:
        """Read a `quoted name`; backslash escapes work as in strings."""
        self.advance()  # `
        chars = []
        while True:
            ch = self.advance()
            if ch is None or ch == '\n':
                self.error("Unterminated backtick name")
            if ch == '`':
                break
            if ch == '\\':
                esc = self.advance()
                if esc is None:
                    self.error("Unterminated backtick name")
                if esc not in ESCAPES:
                    self.error(f"Unknown escape sequence \\{esc}")
                chars.append(ESCAPES[esc])
            else:
                chars.append(ch)
        if not chars:
            self.error("Empty backtick name")
        return ''.join(chars)

    def read_number(self):
        """Read a number: 12, 1.5, .5, 1e-3, 0x1F, 10L."""
        start = self.pos
        if self.peek() == '0' and self.peek(1) in ('x', 'X'):
            self.advance()
            self.advance()
            while self.peek() is not None and self.peek() in '0123456789abcdefABCDEF':
                self.advance()
            text = self.source[start:self.pos]
            if len(text) == 2:
                self.error("Malformed hexadecimal number")
            if self.peek() == 'L':
                self.advance()
            return int(text, 16)

        is_float = False
        while self.peek() is not None and self.peek().isdigit():
            self.advance()
        if self.peek() == '.':
            is_float = True
            self.advance()
            while self.peek() is not None and self.peek().isdigit():
                self.advance()
        if self.peek() in ('e', 'E'):
            nxt = self.peek(1)
            if nxt is not None and (nxt.isdigit() or (nxt in '+-' and (self.peek(2) or '').isdigit())):
                is_float = True
                self.advance()
                if self.peek() in '+-':
                    self.advance()
                while self.peek() is not None and self.peek().isdigit():
                    self.advance()

        text = self.source[start:self.pos]
        if self.peek() == 'L':
            self.advance()
            value = float(text)
            if value != int(value):
                self.error(f"Integer literal {text}L has a fractional part")
            return int(value)
        return float(text) if is_float else int(text)

    def read_name(self) -> str:
        """Read a name: letters, digits, '.' and '_'."""
        start = self.pos
        while self.peek() is not None and self.is_name_char(self.peek()):
            self.advance()
        return self.source[start:self.pos]

    def is_name_char(self, ch: str) -> bool:
        """Check if character can appear in a name."""
        return ch.isalnum() or ch in '._'

    def read_user_operator(self) -> str:
        """Read a %op% operator."""
        start = self.pos
        self.advance()  # %
        while True:
            ch = self.advance()
            if ch is None or ch == '\n':
                self.error("Unterminated %operator%")
            if ch == '%':
                break
        return self.source[start:self.pos]

    def add(self, token_type: TokenType, value: Any, line: int, column: int):
        self.tokens.append(Token(token_type, value, line, column))

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source."""
        while True:
            self.skip_whitespace()
            ch = self.peek()
            if ch is None:
                break

            line, column = self.line, self.column

            if ch == '#':
                self.skip_comment()
            elif ch == '\n':
                self.advance()
                # Collapse blank lines into one separator
                if not self.tokens or self.tokens[-1].type != TokenType.NEWLINE:
                    self.add(TokenType.NEWLINE, '\n', line, column)
            elif ch in '([':
                self.advance()
                self.bracket_depth += 1
                self.add(TokenType.LPAREN if ch == '(' else TokenType.LBRACKET, ch, line, column)
            elif ch in ')]':
                self.advance()
                if self.bracket_depth == 0:
                    self.error(f"Unbalanced '{ch}'")
                self.bracket_depth -= 1
                self.add(TokenType.RPAREN if ch == ')' else TokenType.RBRACKET, ch, line, column)
            elif ch == ',':
                self.advance()
                self.add(TokenType.COMMA, ch, line, column)
            elif ch == ';':
                self.advance()
                self.add(TokenType.SEMICOLON, ch, line, column)
            elif ch in '"\'':
                self.add(TokenType.STRING, self.read_string(), line, column)
            elif ch == '`':
                self.add(TokenType.NAME, self.read_backtick_name(), line, column)
            elif ch.isdigit() or (ch == '.' and (self.peek(1) or '').isdigit()):
                self.add(TokenType.NUMBER, self.read_number(), line, column)
            elif ch.isalpha() or ch in '._':
                self.add(TokenType.NAME, self.read_name(), line, column)
            elif ch == '%':
                self.add(TokenType.OPERATOR, self.read_user_operator(), line, column)
            elif ch == '=' and self.peek(1) != '=':
                self.advance()
                self.add(TokenType.EQUALS, ch, line, column)
            else:
                for op in OPERATORS:
                    if self.source.startswith(op, self.pos):
                        for _ in op:
                            self.advance()
                        self.add(TokenType.OPERATOR, op, line, column)
                        break
                else:
                    self.error(f"Unexpected character {ch!r}")

        self.add(TokenType.EOF, None, self.line, self.column)
        return self.tokens


def tokenize(source: str, filename: str = "<input>") -> List[Token]:
    """Convenience function to tokenize source code."""
    lexer = Lexer(source, filename)
    return lexer.tokenize()
