"""
Kaleidoscope Lexer (Tokenizer)
==============================

This module implements the scanner for the Kaleidoscope expression
language. It converts source text into a stream of tokens for the parser.

Token Categories
----------------
- Keywords: def, extern, if, then, else, for, in
- Identifiers: [A-Za-z][A-Za-z0-9_]*
- Numbers: [0-9.]+ (every value is a double)
- Operators: any other single character, e.g. + - * < ( ) , ; =

Comments
--------
- Single-line: # comment (to end of line)

Token Source Contract
---------------------
The parser only ever calls ``pull()``. Once the input is exhausted every
further ``pull()`` returns an EOF token, so the parser never has to guard
against running off the end. Two implementations are provided:

- ``Lexer`` scans source text.
- ``TokenStream`` replays an iterable of already built tokens.

Example Usage
-------------
>>> from kaleido.frontend.lexer import Lexer
>>> for token in Lexer("def f(x) x + 1").tokenize():
...     print(token)
Token(DEF, 'def', 1:1)
Token(IDENTIFIER, 'f', 1:5)
Token(OPERATOR, '(', 1:6)
Token(IDENTIFIER, 'x', 1:7)
Token(OPERATOR, ')', 1:8)
Token(IDENTIFIER, 'x', 1:10)
Token(OPERATOR, '+', 1:12)
Token(NUMBER, '1', 1:14)
Token(EOF, 1:15)
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterable, Iterator, Optional
import string

from kaleido.errors import SourceLocation


# =============================================================================
# Token Kind Enumeration
# =============================================================================

class TokenKind(Enum):
    """
    Token kinds for the Kaleidoscope language.

    Keywords are distinguished from identifiers to simplify parsing.
    Every punctuation or operator character shares the OPERATOR kind and
    is told apart by its text.
    """

    # === Structural Tokens ===
    EOF = auto()            # End of input

    # === Top-Level Keywords ===
    DEF = auto()            # def
    EXTERN = auto()         # extern

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable/function names
    NUMBER = auto()         # Numeric literals
    OPERATOR = auto()       # Any other single character

    # === Keywords - Control Flow ===
    IF = auto()             # if
    THEN = auto()           # then
    ELSE = auto()           # else
    FOR = auto()            # for
    IN = auto()             # in


# Map keyword strings to their token kinds
KEYWORDS: dict[str, TokenKind] = {
    "def": TokenKind.DEF,
    "extern": TokenKind.EXTERN,
    "if": TokenKind.IF,
    "then": TokenKind.THEN,
    "else": TokenKind.ELSE,
    "for": TokenKind.FOR,
    "in": TokenKind.IN,
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from Kaleidoscope source code.

    Equality is structural over ``kind`` and ``text`` only. The location
    is carried for diagnostics and does not take part in comparisons, so
    a token built by hand in a test equals the one the scanner produced.

    Attributes:
        kind: The TokenKind classification
        text: The lexeme (None for EOF)
        location: Where the token starts in the source (optional)
    """
    kind: TokenKind
    text: Optional[str] = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    def __repr__(self) -> str:
        """Format token for debugging output."""
        where = ""
        if self.location is not None:
            where = f", {self.location.line}:{self.location.column}"
        if self.text is not None and self.kind is not TokenKind.EOF:
            return f"Token({self.kind.name}, {self.text!r}{where})"
        return f"Token({self.kind.name}{where})"

    def is_operator(self, char: str) -> bool:
        """Return True if this is the OPERATOR token for ``char``."""
        return self.kind is TokenKind.OPERATOR and self.text == char

    def describe(self) -> str:
        """Short human-readable form used in diagnostics."""
        if self.kind is TokenKind.EOF:
            return "end of input"
        return self.text or self.kind.name.lower()


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes Kaleidoscope source code.

    The scanner never fails: whitespace and comments are skipped, letters
    start identifiers or keywords, digits and dots start numbers, and any
    other character becomes a one-character OPERATOR token. Whether such
    a token is meaningful is for the parser to decide.

    Usage:
        lexer = Lexer(source_text, filename)
        token = lexer.pull()            # one at a time
        tokens = list(lexer.tokenize())  # or all at once

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    # Characters that can start an identifier
    IDENT_START = string.ascii_letters

    # Characters that can continue an identifier
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    # Characters that make up a number literal
    NUMBER_CHARS = string.digits + "."

    def __init__(self, source: str, filename: str = "<input>"):
        """
        Initialize the lexer with source code.

        Args:
            source: The Kaleidoscope source code to tokenize
            filename: Name of the source file (for error messages)
        """
        self.source = source
        self.filename = filename

        # Current position in source
        self._pos = 0
        self._line = 1
        self._column = 1

        # Split on "\n" only, matching the line counter in _advance
        self._lines = [text.rstrip("\r") for text in source.split("\n")]

    def pull(self) -> Token:
        """
        Return the next token, or EOF once the input is exhausted.

        Calling ``pull()`` again after EOF keeps returning EOF.
        """
        self._skip_whitespace_and_comments()

        if self._at_end():
            return self._make_token(TokenKind.EOF, None, self._line, self._column)

        line, column = self._line, self._column
        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(line, column)

        if char in self.NUMBER_CHARS:
            return self._scan_number(line, column)

        self._advance()
        return self._make_token(TokenKind.OPERATOR, char, line, column)

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always ending with a single EOF token
        """
        while True:
            token = self.pull()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def source_line(self, line: int) -> Optional[str]:
        """Return the text of a 1-indexed source line, if it exists."""
        if 1 <= line <= len(self._lines):
            return self._lines[line - 1]
        return None

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        """Check if we've reached the end of source."""
        return self._pos >= len(self.source)

    def _peek(self) -> str:
        """Look at the current character without advancing."""
        if self._at_end():
            return ""
        return self.source[self._pos]

    def _advance(self) -> str:
        """
        Consume and return the current character, advancing position.

        Updates line and column tracking for error reporting.
        """
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
        else:
            self._column += 1

        return char

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        """Skip over whitespace and '#' comments."""
        while not self._at_end():
            char = self._peek()

            if char.isspace():
                self._advance()
            elif char == "#":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
            else:
                break

    # =========================================================================
    # Token Scanning Methods
    # =========================================================================

    def _scan_identifier(self, line: int, column: int) -> Token:
        """Scan an identifier or keyword."""
        start = self._pos
        while not self._at_end() and self._peek() in self.IDENT_CHARS:
            self._advance()

        text = self.source[start:self._pos]
        kind = KEYWORDS.get(text, TokenKind.IDENTIFIER)
        return self._make_token(kind, text, line, column)

    def _scan_number(self, line: int, column: int) -> Token:
        """
        Scan a number literal.

        The text is kept verbatim; a malformed literal such as ``1.2.3`` is
        reported by the parser when it converts the text.
        """
        start = self._pos
        while not self._at_end() and self._peek() in self.NUMBER_CHARS:
            self._advance()

        return self._make_token(TokenKind.NUMBER, self.source[start:self._pos], line, column)

    def _make_token(self, kind: TokenKind, text: Optional[str], line: int, column: int) -> Token:
        """Create a token carrying its source location."""
        return Token(kind, text, SourceLocation(self.filename, line, column))


# =============================================================================
# Pre-built Token Source
# =============================================================================

class TokenStream:
    """
    Token source over an iterable of tokens.

    Useful when tokens come from somewhere other than ``Lexer``, such as a
    test building them by hand. EOF is returned forever after the iterable
    is exhausted, whether or not it ended with an EOF token itself.
    """

    def __init__(self, tokens: Iterable[Token]):
        self._tokens = iter(tokens)
        self._exhausted = False

    def pull(self) -> Token:
        if not self._exhausted:
            token = next(self._tokens, None)
            if token is not None and token.kind is not TokenKind.EOF:
                return token
            self._exhausted = True
        return Token(TokenKind.EOF)

    def source_line(self, line: int) -> Optional[str]:
        return None


def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """Tokenize source text into a list ending with EOF."""
    return list(Lexer(source, filename).tokenize())
