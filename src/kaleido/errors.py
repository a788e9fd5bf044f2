"""
Kaleido Error Hierarchy
=======================

This module defines the root of the exception hierarchy for the whole
toolchain. All exceptions inherit from KaleidoError, allowing callers to
catch every toolchain error with a single except clause if desired.

Exception Hierarchy
-------------------
KaleidoError (base)
├── CompileError (front end, see kaleido.frontend.errors)
│   ├── ParseError
│   └── CodegenError
└── BackendError - misuse of the SSA backend or LLVM failure
    └── ExecutionError - JIT evaluation could not run

Design Philosophy
-----------------
Each exception captures source location information (filename, line, column)
when applicable. This allows for detailed error messages that help users
quickly locate and fix issues in their source code.

Error messages follow this format:
    filename:line:column: error: description
    source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class KaleidoError(Exception):
    """
    Base exception for all Kaleido errors.

    All exceptions in the toolchain inherit from this class, allowing
    callers to catch every toolchain error with a single except clause:

        try:
            compiler.compile_file("fib.ks")
        except KaleidoError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Tokens and AST nodes carry one of these so that diagnostics can point
    at the offending text. The immutable (frozen) design ensures locations
    cannot be accidentally modified.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Located Error Base
# =============================================================================

class LocatedError(KaleidoError):
    """
    Error carrying an optional source location, hint and source line.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            fib.ks:3:12: error: unknown variable name 'n'
                def fib(x) n + 1
                           ^
            hint: parameters of 'fib' are: x
        """
        parts = []

        # Location prefix
        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        # Source context with caret pointer
        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(LocatedError):
    """
    Error raised by the SSA backend.

    Signals misuse of the backend API (emitting without an insertion
    point, declaring over an existing body) or a failure inside LLVM.
    These are internal errors rather than problems in user source.
    """
    pass


class ExecutionError(BackendError):
    """
    JIT evaluation of a compiled function could not run.

    Examples:
        - The function was never defined
        - An extern is called but no native symbol provides it
    """

    def __init__(self, message: str, function_name: Optional[str] = None, hint: Optional[str] = None):
        self.function_name = function_name
        super().__init__(message, hint=hint)
