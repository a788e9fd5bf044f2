"""
Front-End Error Hierarchy
=========================

This module defines the exceptions raised by the tokenizer, the parser and
the code generator, plus the collector used to report them in batches.

Exception Hierarchy
-------------------
CompileError (base for all front-end errors)
├── ParseError - structural violations in the token stream
│   ├── UnexpectedTokenError - token does not fit the grammar here
│   ├── MissingTokenError - required delimiter not found
│   └── DuplicateParameterError - prototype repeats a parameter name
└── CodegenError - errors while lowering to SSA
    ├── UndefinedVariableError - reference to an unbound name
    ├── UndefinedFunctionError - call to an undeclared function
    ├── ArgumentCountError - call arity differs from the declaration
    ├── UnsupportedOperatorError - operator without a lowering rule
    ├── RedefinitionError - second body for the same function
    ├── SignatureMismatchError - redeclaration with another arity
    └── VerificationError - backend rejected the finished routine

Recovery
--------
None of these errors is fatal to a compilation unit. The parser and the
code generator catch them at their top-level entry points, hand them to a
DiagnosticCollector and move on to the next top-level form.
"""

from typing import List, Optional

from kaleido.errors import LocatedError, SourceLocation


# =============================================================================
# Base Front-End Exception
# =============================================================================

class CompileError(LocatedError):
    """
    Base exception for all front-end errors.

    Formatting (location prefix, caret, hint) is inherited from
    LocatedError so every diagnostic reads the same way.
    """
    pass


class CompilationFailedError(CompileError):
    """
    Aggregate error raised when a compilation unit produced diagnostics.

    The message is the already formatted report from DiagnosticCollector
    and is passed through untouched.
    """

    def _format_message(self) -> str:
        """Return message as-is - it's already a formatted aggregate report."""
        return self.message


# =============================================================================
# Syntax Errors
# =============================================================================

class ParseError(CompileError):
    """
    Syntax error in the token stream.

    Examples:
        - Missing closing parenthesis
        - Identifier expected but number found
        - Comma inside a prototype parameter list
    """
    pass


class UnexpectedTokenError(ParseError):
    """
    Unexpected token during parsing.

    Raised when the parser encounters a token that doesn't match
    the expected grammar rule.
    """

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """
    Required token is missing.

    Raised when a required token (like ')' or 'then') is not found
    where expected.
    """

    def __init__(
        self,
        expected: str,
        context: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.context = context

        message = f"expected {expected}"
        if context:
            message = f"{message} in {context}"

        super().__init__(message, location=location, source_line=source_line)


class DuplicateParameterError(ParseError):
    """A prototype lists the same parameter name twice."""

    def __init__(
        self,
        function_name: str,
        parameter: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.function_name = function_name
        self.parameter = parameter
        super().__init__(
            f"duplicate parameter '{parameter}' in prototype of '{function_name}'",
            location=location,
            hint="parameter names must be unique within a prototype",
            source_line=source_line,
        )


# =============================================================================
# Code Generation Errors
# =============================================================================

class CodegenError(CompileError):
    """
    Error while lowering an AST into SSA form.

    Always recoverable: the routine under construction is discarded and
    module-level state remains valid for the following forms.
    """
    pass


class UndefinedVariableError(CodegenError):
    """
    Reference to a variable that is not bound in the current function.

    The code generator suggests the names that are in scope.
    """

    def __init__(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        in_scope: Optional[List[str]] = None,
    ):
        self.name = name
        self.in_scope = in_scope or []

        hint = None
        if self.in_scope:
            hint = "names in scope: " + ", ".join(self.in_scope)

        super().__init__(f"unknown variable name '{name}'", location=location, hint=hint)


class UndefinedFunctionError(CodegenError):
    """Call to a function that was neither defined nor declared extern."""

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        self.name = name
        super().__init__(
            f"unknown function referenced: '{name}'",
            location=location,
            hint=f"declare it first with 'extern {name}(...)' or 'def {name}(...)'",
        )


class ArgumentCountError(CodegenError):
    """
    Wrong number of arguments in function call.

    Raised when a function is called with a different number
    of arguments than declared in its prototype.
    """

    def __init__(
        self,
        function_name: str,
        expected: int,
        actual: int,
        location: Optional[SourceLocation] = None,
    ):
        self.function_name = function_name
        self.expected = expected
        self.actual = actual

        word = "argument" if expected == 1 else "arguments"
        super().__init__(
            f"'{function_name}' expects {expected} {word}, got {actual}",
            location=location,
        )


class UnsupportedOperatorError(CodegenError):
    """Binary operator with no lowering rule."""

    def __init__(self, operator: str, location: Optional[SourceLocation] = None):
        self.operator = operator
        super().__init__(f"invalid binary operator '{operator}'", location=location)


class RedefinitionError(CodegenError):
    """A body is attached to a function that already has one."""

    def __init__(self, name: str, location: Optional[SourceLocation] = None):
        self.name = name
        super().__init__(f"function '{name}' cannot be redefined", location=location)


class SignatureMismatchError(CodegenError):
    """A function is redeclared with a different number of parameters."""

    def __init__(
        self,
        name: str,
        declared: int,
        redeclared: int,
        location: Optional[SourceLocation] = None,
    ):
        self.name = name
        self.declared = declared
        self.redeclared = redeclared
        super().__init__(
            f"'{name}' redeclared with {redeclared} parameters, previously {declared}",
            location=location,
        )


class VerificationError(CodegenError):
    """The backend's structural verifier rejected a finished routine."""

    def __init__(self, name: str, detail: str = ""):
        self.name = name
        self.detail = detail
        message = f"generated code for '{name}' failed verification"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# =============================================================================
# Error Collection (for multi-error reporting)
# =============================================================================

class DiagnosticCollector:
    """
    Collects multiple errors for batch reporting.

    The parser and the code generator use this to continue after a
    failed top-level form, collecting every diagnostic before reporting
    them together.

    Example:
        collector = DiagnosticCollector(max_errors=100)
        parser = Parser(Lexer(source), diagnostics=collector)
        for form in parser.forms():
            codegen.generate(form)

        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize the collector.

        Args:
            max_errors: Maximum errors to collect before should_stop() is True
        """
        self.errors: List[LocatedError] = []
        self.warnings: List[str] = []
        self.max_errors = max_errors

    def add(self, error: LocatedError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def add_warning(self, message: str, location: Optional[SourceLocation] = None) -> None:
        """Add a warning message."""
        if location:
            self.warnings.append(f"{location}: warning: {message}")
        else:
            self.warnings.append(f"warning: {message}")

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def should_stop(self) -> bool:
        """Return True if max_errors has been reached."""
        return len(self.errors) >= self.max_errors

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def warning_count(self) -> int:
        """Return the number of collected warnings."""
        return len(self.warnings)

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        for warning in self.warnings:
            lines.append(warning)

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"\n{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors and warnings."""
        self.errors.clear()
        self.warnings.clear()

    def raise_if_errors(self) -> None:
        """Raise a CompilationFailedError if any errors were collected."""
        if self.has_errors():
            raise CompilationFailedError(self.report())
