"""
Main expression splicer.

Coordinates lexing, parsing, binding-frame construction, expansion and
deparsing.
"""

import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from .lexer import Lexer
from .parser import Parser
from .parser.ast_nodes import Compound, Expression, Opaque, Symbol, free_symbols
from .parser.expander import Expander
from .parser.parser import PREFIX_PRECEDENCE, binary_precedence
from .scope import (
    Binding, ExpressionValue, Frame, OpaqueValue, Scope, resolve,
    shadowed_expression_bindings,
)
from .deparse import deparse


_NOT_LITERAL = object()


class ExprSplicer:
    """Main expression splicer class."""

    def __init__(self, max_depth: int = Expander.DEFAULT_MAX_DEPTH, verbose: bool = False):
        self.max_depth = max_depth
        self.verbose = verbose
        self.expander = Expander(max_depth=max_depth, verbose=verbose)
        self.warnings: List[str] = []  # Binding warnings

    def log(self, message: str):
        """Print log message if verbose mode is enabled."""
        if self.verbose:
            print(f"[exprsplice] {message}", file=sys.stderr)

    def warn(self, code: str, message: str):
        """Add a warning with a code."""
        warning = f"{code}: {message}"
        self.warnings.append(warning)
        if self.verbose:
            print(f"[exprsplice] Warning: {warning}", file=sys.stderr)

    def get_warnings(self) -> List[str]:
        """Get all warnings generated so far."""
        return self.warnings.copy()

    def parse(self, text: str, filename: str = "<expr>") -> Expression:
        """Parse TEXT as a single expression."""
        tokens = Lexer(text, filename).tokenize()
        return Parser(tokens, filename).parse()

    def load_bindings(self, source: str, filename: str = "<bindings>",
                      parent: Optional[Scope] = None) -> Frame:
        """
        Build a frame from a binding script.

        Each statement is either ``name <- quote(expr)``, which binds an
        expression, or ``name <- literal``, which binds plain data.

        Args:
            source: Script text
            filename: Name used in messages and as the frame name
            parent: Enclosing scope of the new frame

        Returns:
            The new Frame
        """
        tokens = Lexer(source, filename).tokenize()
        statements = Parser(tokens, filename).parse_statements()

        frame = Frame(parent=parent, name=filename)
        for stmt in statements:
            name, binding = self._binding_from_statement(stmt, filename)
            if name in frame:
                self.warn("XS0101", f"{name} redefined in {filename}")
            frame.bind(name, binding)

        for name in shadowed_expression_bindings(frame):
            self.warn("XS0102", f"{name} in {filename} shadows an expression binding of an enclosing frame")

        self.log(f"Loaded {len(frame.names())} binding(s) from {filename}")
        return frame

    def load_bindings_file(self, path: str, parent: Optional[Scope] = None) -> Frame:
        """Read a binding script from PATH."""
        self.log(f"Reading {path}...")
        with open(path, 'r', encoding='utf-8') as f:
            source = f.read()
        return self.load_bindings(source, str(path), parent)

    def build_scope(self, binding_files: Sequence[str] = (),
                    definitions: Sequence[str] = ()) -> Frame:
        """
        Chain binding files into one scope.

        The first file is the outermost frame; DEFINITIONS (binding
        statements given directly) form the innermost frame.
        """
        scope: Optional[Frame] = None
        for path in binding_files:
            scope = self.load_bindings_file(path, parent=scope)
        if definitions:
            scope = self.load_bindings("\n".join(definitions), "<command line>", parent=scope)
        if scope is None:
            scope = Frame(name="<empty>")
        return scope

    def expand_string(self, text: str, scope: Scope, filename: str = "<expr>") -> Expression:
        """Parse TEXT and expand it against SCOPE."""
        expr = self.parse(text, filename)
        self.log(f"Expanding {filename}...")
        expanded = self.expander.expand(expr, scope)

        if self.verbose:
            unbound = [name for name in free_symbols(expanded)
                       if not self._is_operator(name) and resolve(scope, name) is None]
            if unbound:
                self.log(f"Unbound symbols left for evaluation: {', '.join(unbound)}")
        return expanded

    def expand_to_source(self, text: str, scope: Scope, filename: str = "<expr>") -> str:
        """Expand TEXT and render the result as source text."""
        return deparse(self.expand_string(text, scope, filename))

    def _binding_from_statement(self, stmt: Expression, filename: str) -> Tuple[str, Binding]:
        where = f"{filename}:{getattr(stmt, 'line', 0)}"
        if not (isinstance(stmt, Compound) and stmt.head == Symbol('<-')
                and len(stmt.args) == 2):
            raise ValueError(f"{where}: expected 'name <- value', got {deparse(stmt)}")

        target, value = stmt.args[0].value, stmt.args[1].value
        if not isinstance(target, Symbol):
            raise ValueError(f"{where}: binding target must be a name, got {deparse(target)}")

        if isinstance(value, Compound) and value.head == Symbol('quote'):
            if len(value.args) != 1 or value.args[0].name is not None:
                raise ValueError(f"{where}: quote() takes exactly one expression")
            return target.name, ExpressionValue(value.args[0].value)

        literal = self._literal_value(value)
        if literal is _NOT_LITERAL:
            raise ValueError(
                f"{where}: {target.name} must be bound to quote(...) or a literal, got {deparse(value)}"
            )
        return target.name, OpaqueValue(literal)

    def _literal_value(self, value: Expression) -> Any:
        if isinstance(value, Opaque):
            return value.payload
        # -3 parses as a unary minus applied to 3
        if (isinstance(value, Compound) and value.head == Symbol('-')
                and len(value.args) == 1 and isinstance(value.args[0].value, Opaque)):
            payload = value.args[0].value.payload
            if isinstance(payload, (int, float)) and not isinstance(payload, bool):
                return -payload
        return _NOT_LITERAL

    def _is_operator(self, name: str) -> bool:
        return (binary_precedence(name) is not None or name in PREFIX_PRECEDENCE
                or name == '[')


def main(argv: Optional[List[str]] = None):
    """Command-line interface for the splicer."""
    import argparse

    parser = argparse.ArgumentParser(
        description='exprsplice - Expand expression bindings inside an expression'
    )
    parser.add_argument('expression', nargs='?', help='Expression to expand')
    parser.add_argument('-f', '--file', help='Read the expression from a file')
    parser.add_argument('-b', '--bindings', action='append',
                       help='Binding script; repeat to nest frames, outermost first')
    parser.add_argument('-D', '--define', action='append', metavar='STATEMENT',
                       help="Binding statement such as 'a <- quote(x + 1)' (innermost frame)")
    parser.add_argument('-o', '--output', help='Write the expanded expression to a file')
    parser.add_argument('--max-depth', type=int, default=Expander.DEFAULT_MAX_DEPTH,
                       help=f'Maximum expansion depth (default: {Expander.DEFAULT_MAX_DEPTH})')
    parser.add_argument('--verbose', action='store_true',
                       help='Verbose output')

    args = parser.parse_args(argv)

    if (args.expression is None) == (args.file is None):
        parser.error('give either an expression or --file')
    if args.max_depth < 1:
        parser.error('--max-depth must be positive')

    splicer = ExprSplicer(max_depth=args.max_depth, verbose=args.verbose)

    try:
        if args.file:
            splicer.log(f"Reading {args.file}...")
            text = Path(args.file).read_text(encoding='utf-8')
            filename = args.file
        else:
            text = args.expression
            filename = '<command line>'

        scope = splicer.build_scope(args.bindings or [], args.define or [])
        result = splicer.expand_to_source(text, scope, filename)

        if args.output:
            splicer.log(f"Writing {args.output}...")
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(result + '\n')
        else:
            print(result)
        success = True
    except Exception as e:
        print(f"Expansion error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        success = False

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
