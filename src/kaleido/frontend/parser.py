"""
Kaleidoscope Recursive Descent Parser
=====================================

This module implements the parser for the Kaleidoscope expression
language. It pulls tokens from a token source one at a time and builds
one AST node per top-level form.

Grammar (Simplified EBNF)
-------------------------
top_level       ::= definition | external | ';' | expression
definition      ::= 'def' prototype expression
external        ::= 'extern' prototype
prototype       ::= IDENTIFIER '(' IDENTIFIER* ')'

expression      ::= primary (binop primary)*
primary         ::= NUMBER
                  | IDENTIFIER
                  | IDENTIFIER '(' (expression (',' expression)*)? ')'
                  | '(' expression ')'
                  | 'if' expression 'then' expression 'else' expression
                  | 'for' IDENTIFIER '=' expression ',' expression
                        (',' expression)? 'in' expression

Prototype parameters are separated by whitespace while call arguments are
separated by commas. ``def f(a, b)`` is therefore a syntax error, and so
is ``f(a b)``.

Binary Operators
----------------
Binary expressions are parsed by operator-precedence climbing over
BINOP_PRECEDENCE (higher binds tighter, equal precedence is
left-associative):

| Operator | Precedence |
|----------|------------|
| <        | 10         |
| + -      | 20         |
| *        | 40         |

Error Recovery
--------------
Syntax errors are raised internally as ParseError. The top-level entry
point records the error in the DiagnosticCollector, skips tokens up to the
next ``def``, ``extern`` or ``;`` (consumed), or end of input, and returns
None. A bad form never stops the rest of the stream from being parsed.

Example Usage
-------------
>>> from kaleido.frontend.lexer import Lexer
>>> from kaleido.frontend.parser import Parser
>>> parser = Parser(Lexer("def add(a b) a + b"))
>>> parser.next_top_level_form()
Function(proto=Prototype(name='add', params=('a', 'b')), body=BinaryOp(...))
"""

import logging
from typing import Iterator, Optional

from kaleido.errors import SourceLocation
from kaleido.frontend.ast import (
    ANONYMOUS_FUNCTION_NAME,
    ASTNode,
    BinaryOp,
    BoundedLoop,
    Call,
    Conditional,
    Expression,
    Function,
    NumberLiteral,
    Prototype,
    VariableRef,
)
from kaleido.frontend.errors import (
    DiagnosticCollector,
    DuplicateParameterError,
    MissingTokenError,
    ParseError,
    UnexpectedTokenError,
)
from kaleido.frontend.lexer import Lexer, Token, TokenKind

logger = logging.getLogger(__name__)


# Binary operator precedence; higher binds tighter
BINOP_PRECEDENCE: dict[str, int] = {
    "<": 10,
    "+": 20,
    "-": 20,
    "*": 40,
}


class Parser:
    """
    Recursive descent parser for Kaleidoscope.

    Holds exactly one token of lookahead pulled from the token source.
    Each call to next_top_level_form() consumes the tokens of one form.

    Attributes:
        diagnostics: Collector receiving every syntax error
    """

    def __init__(self, token_source, diagnostics: Optional[DiagnosticCollector] = None):
        """
        Initialize the parser.

        Args:
            token_source: Any object with a pull() -> Token method
            diagnostics: Collector for syntax errors (a private one if omitted)
        """
        self._source = token_source
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()

        # Prime the single token of lookahead
        self._current: Token = self._source.pull()

    @property
    def at_eof(self) -> bool:
        """True once the lookahead is the EOF token."""
        return self._current.kind is TokenKind.EOF

    # =========================================================================
    # Top-Level Parsing
    # =========================================================================

    def next_top_level_form(self) -> Optional[ASTNode]:
        """
        Parse the next top-level form.

        Returns:
            Function for definitions and top-level expressions, Prototype
            for extern declarations, or None at end of input or after a
            syntax error (already recorded in diagnostics)
        """
        while self._is_operator(";"):
            self._advance()

        if self.at_eof:
            return None

        start = self._current.location
        try:
            if self._check(TokenKind.DEF):
                return self._parse_definition()
            if self._check(TokenKind.EXTERN):
                return self._parse_extern()
            return self._parse_top_level_expression()
        except ParseError as e:
            self.diagnostics.add(e)
            logger.info(f"syntax error, skipping to next top-level form: {e.message}")
            self._synchronize()
            return None
        except RecursionError:
            error = ParseError(
                "expression nested too deeply",
                location=start,
                source_line=self._source_line(start),
                hint="split the expression into smaller functions",
            )
            self.diagnostics.add(error)
            logger.info("nesting limit hit, skipping to next top-level form")
            self._synchronize()
            return None

    def forms(self) -> Iterator[ASTNode]:
        """
        Generate every successfully parsed form until end of input.

        Forms that fail to parse are skipped; their errors are in
        diagnostics.
        """
        while not self.at_eof:
            form = self.next_top_level_form()
            if form is not None:
                yield form

    def _parse_definition(self) -> Function:
        """Parse 'def' prototype expression."""
        def_token = self._advance()
        proto = self._parse_prototype()
        body = self._parse_expression()
        logger.debug(f"parsed function definition '{proto.name}'")
        return Function(proto, body, location=def_token.location)

    def _parse_extern(self) -> Prototype:
        """Parse 'extern' prototype."""
        self._advance()
        proto = self._parse_prototype()
        logger.debug(f"parsed extern '{proto.name}'")
        return proto

    def _parse_top_level_expression(self) -> Function:
        """Wrap a bare expression in an anonymous zero-argument function."""
        location = self._current.location
        body = self._parse_expression()
        proto = Prototype(ANONYMOUS_FUNCTION_NAME, (), location=location)
        logger.debug("parsed top-level expression")
        return Function(proto, body, location=location)

    def _parse_prototype(self) -> Prototype:
        """
        Parse IDENTIFIER '(' IDENTIFIER* ')'.

        Raises:
            DuplicateParameterError: If a parameter name repeats
            UnexpectedTokenError: If anything but a name or ')' appears
                inside the parentheses
        """
        name_token = self._expect(TokenKind.IDENTIFIER, "function name in prototype")
        self._expect_operator("(", "prototype")

        params: list[str] = []
        while self._check(TokenKind.IDENTIFIER):
            param_token = self._advance()
            if param_token.text in params:
                raise DuplicateParameterError(
                    name_token.text,
                    param_token.text,
                    param_token.location,
                    self._source_line(param_token.location),
                )
            params.append(param_token.text)

        if not self._is_operator(")"):
            expected = "parameter name or ')'"
            if self._is_operator(","):
                expected += " (prototype parameters are separated by whitespace)"
            raise self._unexpected(expected)
        self._advance()

        return Prototype(name_token.text, tuple(params), location=name_token.location)

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> Expression:
        """Parse a primary followed by any chain of binary operators."""
        lhs = self._parse_primary()
        return self._parse_binop_rhs(0, lhs)

    def _parse_binop_rhs(self, min_precedence: int, lhs: Expression) -> Expression:
        """
        Fold binary operators into lhs by precedence climbing.

        Args:
            min_precedence: Lowest operator precedence this call may consume
            lhs: Already parsed left-hand side

        Returns:
            The accumulated expression
        """
        while True:
            precedence = self._current_precedence()
            if precedence < min_precedence:
                return lhs

            op_token = self._advance()
            rhs = self._parse_primary()

            # A tighter operator after rhs takes rhs as its own left operand
            if precedence < self._current_precedence():
                rhs = self._parse_binop_rhs(precedence + 1, rhs)

            lhs = BinaryOp(op_token.text, lhs, rhs, location=op_token.location)

    def _parse_primary(self) -> Expression:
        """Parse a primary expression."""
        if self._check(TokenKind.IDENTIFIER):
            return self._parse_identifier_expr()
        if self._check(TokenKind.NUMBER):
            return self._parse_number_expr()
        if self._is_operator("("):
            return self._parse_paren_expr()
        if self._check(TokenKind.IF):
            return self._parse_if_expr()
        if self._check(TokenKind.FOR):
            return self._parse_for_expr()
        raise self._unexpected("an expression")

    def _parse_number_expr(self) -> NumberLiteral:
        token = self._advance()
        try:
            value = float(token.text)
        except ValueError:
            raise ParseError(
                f"invalid number literal '{token.text}'",
                location=token.location,
                source_line=self._source_line(token.location),
            ) from None
        return NumberLiteral(value, location=token.location)

    def _parse_paren_expr(self) -> Expression:
        """Parse '(' expression ')'."""
        self._advance()
        expr = self._parse_expression()
        self._expect_operator(")", "parenthesized expression")
        return expr

    def _parse_identifier_expr(self) -> Expression:
        """
        Parse a variable reference or a call.

        An identifier immediately followed by '(' is a call whose
        arguments are comma-separated expressions.
        """
        name_token = self._advance()

        if not self._is_operator("("):
            return VariableRef(name_token.text, location=name_token.location)

        self._advance()
        args: list[Expression] = []
        if not self._is_operator(")"):
            while True:
                args.append(self._parse_expression())
                if self._is_operator(")"):
                    break
                if not self._is_operator(","):
                    raise self._unexpected("')' or ',' in argument list")
                self._advance()
        self._advance()

        return Call(name_token.text, tuple(args), location=name_token.location)

    def _parse_if_expr(self) -> Conditional:
        """Parse 'if' expression 'then' expression 'else' expression."""
        if_token = self._advance()
        condition = self._parse_expression()

        self._expect(TokenKind.THEN, "'then'")
        then_branch = self._parse_expression()

        self._expect(TokenKind.ELSE, "'else'")
        else_branch = self._parse_expression()

        return Conditional(condition, then_branch, else_branch, location=if_token.location)

    def _parse_for_expr(self) -> BoundedLoop:
        """
        Parse 'for' IDENTIFIER '=' start ',' end (',' step)? 'in' body.
        """
        for_token = self._advance()
        var_token = self._expect(TokenKind.IDENTIFIER, "loop variable name after 'for'")

        self._expect_operator("=", "for loop")
        start = self._parse_expression()

        self._expect_operator(",", "for loop")
        end = self._parse_expression()

        step = None
        if self._is_operator(","):
            self._advance()
            step = self._parse_expression()

        self._expect(TokenKind.IN, "'in'")
        body = self._parse_expression()

        return BoundedLoop(var_token.text, start, end, step, body, location=for_token.location)

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _advance(self) -> Token:
        """Consume and return the current token."""
        token = self._current
        if token.kind is not TokenKind.EOF:
            self._current = self._source.pull()
        return token

    def _check(self, kind: TokenKind) -> bool:
        """Check if the current token is of the given kind."""
        return self._current.kind is kind

    def _is_operator(self, char: str) -> bool:
        """Check if the current token is the given operator character."""
        return self._current.is_operator(char)

    def _current_precedence(self) -> int:
        """Precedence of the current token, or -1 if it is not a binary operator."""
        if self._current.kind is not TokenKind.OPERATOR:
            return -1
        return BINOP_PRECEDENCE.get(self._current.text, -1)

    def _expect(self, kind: TokenKind, description: str) -> Token:
        """
        Expect and consume a token of a specific kind.

        Raises:
            MissingTokenError: If the current token is of another kind
        """
        if self._check(kind):
            return self._advance()
        raise MissingTokenError(
            description,
            location=self._current.location,
            source_line=self._source_line(self._current.location),
        )

    def _expect_operator(self, char: str, context: str) -> Token:
        """Expect and consume a specific operator character."""
        if self._is_operator(char):
            return self._advance()
        raise MissingTokenError(
            f"'{char}'",
            context,
            location=self._current.location,
            source_line=self._source_line(self._current.location),
        )

    def _unexpected(self, expected: str) -> UnexpectedTokenError:
        return UnexpectedTokenError(
            self._current.describe(),
            expected,
            location=self._current.location,
            source_line=self._source_line(self._current.location),
        )

    def _source_line(self, location: Optional[SourceLocation]) -> Optional[str]:
        """Get source line for error reporting, when the source can supply it."""
        if location is None:
            return None
        lookup = getattr(self._source, "source_line", None)
        if lookup is None:
            return None
        return lookup(location.line)

    def _synchronize(self) -> None:
        """
        Skip to the next top-level boundary after a syntax error.

        Stops before 'def' or 'extern', after ';', or at end of input.
        """
        while not self.at_eof:
            if self._check(TokenKind.DEF) or self._check(TokenKind.EXTERN):
                return
            if self._is_operator(";"):
                self._advance()
                return
            self._advance()


def parse_source(
    source: str,
    filename: str = "<input>",
    diagnostics: Optional[DiagnosticCollector] = None,
) -> list[ASTNode]:
    """
    Parse source text into its list of top-level forms.

    Forms with syntax errors are left out; pass a collector to inspect
    the errors.
    """
    parser = Parser(Lexer(source, filename), diagnostics)
    return list(parser.forms())
