"""Expression Lexer - Turns source text into tokens."""

from .lexer import Lexer, Token, TokenType, tokenize

__all__ = ['Lexer', 'Token', 'TokenType', 'tokenize']
