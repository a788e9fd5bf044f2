"""
Error Formatting Test Suite
===========================

Tests for located error messages and the DiagnosticCollector.
"""

import pytest

from kaleido.errors import (
    BackendError,
    ExecutionError,
    KaleidoError,
    LocatedError,
    SourceLocation,
)
from kaleido.frontend.errors import (
    ArgumentCountError,
    CodegenError,
    CompilationFailedError,
    CompileError,
    DiagnosticCollector,
    MissingTokenError,
    ParseError,
    UnexpectedTokenError,
)


LOC = SourceLocation("fib.ks", 3, 12)


class TestSourceLocation:

    def test_str(self):
        assert str(LOC) == "fib.ks:3:12"

    def test_frozen(self):
        with pytest.raises(AttributeError):
            LOC.line = 4


class TestLocatedError:

    def test_message_only(self):
        assert str(LocatedError("boom")) == "error: boom"

    def test_with_location(self):
        assert str(LocatedError("boom", LOC)) == "fib.ks:3:12: error: boom"

    def test_source_line_and_caret(self):
        error = LocatedError("bad", SourceLocation("a.ks", 1, 3), source_line="x + )")
        assert str(error).splitlines() == [
            "a.ks:1:3: error: bad",
            "    x + )",
            "      ^",
        ]

    def test_hint(self):
        error = LocatedError("bad", hint="try again")
        assert str(error).splitlines()[-1] == "hint: try again"

    def test_hierarchy(self):
        assert issubclass(CompileError, LocatedError)
        assert issubclass(ParseError, CompileError)
        assert issubclass(CodegenError, CompileError)
        assert issubclass(ExecutionError, BackendError)
        assert issubclass(BackendError, KaleidoError)

    def test_unexpected_token(self):
        error = UnexpectedTokenError(",", "')'", LOC)
        assert error.message == "unexpected token ','"
        assert error.hint == "expected ')'"

    def test_missing_token_context(self):
        assert MissingTokenError("'('", "prototype").message == "expected '(' in prototype"

    def test_argument_count_singular(self):
        assert ArgumentCountError("f", 1, 2).message == "'f' expects 1 argument, got 2"

    def test_execution_error_keeps_function(self):
        error = ExecutionError("failed", function_name="f", hint="check externs")
        assert error.function_name == "f"
        assert str(error) == "error: failed\nhint: check externs"


class TestDiagnosticCollector:

    def test_empty(self):
        collector = DiagnosticCollector()
        assert not collector.has_errors()
        collector.raise_if_errors()

    def test_report(self):
        collector = DiagnosticCollector()
        collector.add(ParseError("first", LOC))
        collector.add_warning("careful", LOC)
        report = collector.report()
        assert "fib.ks:3:12: error: first" in report
        assert "fib.ks:3:12: warning: careful" in report
        assert report.endswith("1 error, 1 warning")

    def test_should_stop(self):
        collector = DiagnosticCollector(max_errors=2)
        collector.add(ParseError("a"))
        assert not collector.should_stop()
        collector.add(ParseError("b"))
        assert collector.should_stop()
        assert collector.error_count() == 2

    def test_raise_if_errors(self):
        collector = DiagnosticCollector()
        collector.add(ParseError("oops"))
        with pytest.raises(CompilationFailedError) as exc_info:
            collector.raise_if_errors()
        assert str(exc_info.value) == collector.report()

    def test_clear(self):
        collector = DiagnosticCollector()
        collector.add(ParseError("oops"))
        collector.add_warning("w")
        collector.clear()
        assert collector.error_count() == 0
        assert collector.warning_count() == 0
