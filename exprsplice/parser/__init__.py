"""Expression Parser - Builds expression trees from tokens."""

from .parser import Parser, parse_expression, parse_statements
from .ast_nodes import *

__all__ = ['Parser', 'parse_expression', 'parse_statements']
