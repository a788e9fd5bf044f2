"""
Compiler Driver Test Suite
==========================

Tests for the compilation pipeline: top-level evaluation, error recovery
across stages, configuration and the convenience functions.
"""

import io

import pytest

from kaleido import Compiler, CompilerOptions, compile_file, compile_source
from kaleido.frontend.errors import (
    CompilationFailedError,
    ParseError,
    UndefinedVariableError,
)


FIB = """
# Fibonacci numbers
def fib(x)
  if x < 3 then
    1
  else
    fib(x-1) + fib(x-2)

fib(10)
"""

ENV_VARS = ("KALEIDO_OPT_LEVEL", "KALEIDO_EXECUTE", "KALEIDO_VERIFY", "KALEIDO_MAX_ERRORS")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# =============================================================================
# Pipeline
# =============================================================================

class TestPipeline:

    def test_top_level_values(self):
        result = Compiler().compile_source("def sq(x) x * x\nsq(4)\nsq(5)")
        assert result.success
        assert result.values == [16.0, 25.0]
        assert result.functions == ["sq"]

    def test_fib(self):
        result = Compiler().compile_source(FIB)
        assert result.values == [55.0]

    def test_ir_contains_definitions_only(self):
        result = Compiler().compile_source("def sq(x) x * x\nsq(4)")
        assert "define double @sq" in result.ir
        assert "__anon_expr" not in result.ir

    def test_forms_recorded(self):
        result = Compiler().compile_source("extern printd(x)\ndef f(x) x\nf(1)")
        assert [type(form).__name__ for form in result.forms] == ["Prototype", "Function", "Function"]

    def test_execute_disabled(self):
        result = Compiler(CompilerOptions(execute=False)).compile_source("def sq(x) x * x\nsq(4)")
        assert result.success
        assert result.values == []
        assert "__anon_expr" not in result.ir

    def test_unoptimized(self):
        result = Compiler(CompilerOptions(opt_level=0)).compile_source(FIB)
        assert result.values == [55.0]
        assert "%iftmp = phi double" in result.ir

    def test_module_name_from_file(self, tmp_path):
        source = tmp_path / "fib.ks"
        source.write_text(FIB)
        result = Compiler().compile_file(str(source))
        assert "ModuleID = 'fib'" in result.ir

    def test_module_name_option(self):
        result = Compiler(CompilerOptions(module_name="demo")).compile_source("1")
        assert "ModuleID = 'demo'" in result.ir


# =============================================================================
# Program Output
# =============================================================================

class TestOutput:

    def test_runtime_output(self):
        result = Compiler().compile_source("extern putchard(c)\nputchard(72)\nputchard(105)")
        assert result.output == "Hi"
        assert [e.output for e in result.evaluations] == ["H", "i"]

    def test_loop_output(self):
        result = Compiler().compile_source("extern printd(x)\nfor i = 1, i < 3 in printd(i)")
        assert result.output == "1.000000\n2.000000\n3.000000\n"
        assert result.values == [0.0]

    def test_stream_echo(self):
        stream = io.StringIO()
        Compiler(stream=stream).compile_source("extern printd(x)\nprintd(4)")
        assert stream.getvalue() == "4.000000\n"

    def test_missing_native_symbol(self):
        result = Compiler().compile_source("extern kaleido_missing(x)\nkaleido_missing(1)\n2")
        assert len(result.errors) == 1
        assert "kaleido_missing" in result.errors[0].message
        assert result.values == [2.0]


# =============================================================================
# Error Recovery
# =============================================================================

class TestRecovery:

    def test_codegen_error_skips_form(self):
        result = Compiler().compile_source("def f(x) y\ndef g(x) x\ng(2)")
        assert not result.success
        assert isinstance(result.errors[0], UndefinedVariableError)
        assert result.functions == ["g"]
        assert result.values == [2.0]

    def test_parse_error_skips_form(self):
        result = Compiler().compile_source("def f(a, b) a\n3")
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], ParseError)
        assert result.values == [3.0]

    def test_errors_in_source_order(self):
        result = Compiler().compile_source("a\ndef f(x x) x\nb")
        assert [e.location.line for e in result.errors] == [1, 2, 3]

    def test_failed_forms_not_in_ir(self):
        result = Compiler().compile_source("def bad(x) nosuch\ndef good(x) x")
        assert "@bad" not in result.ir
        assert "@good" in result.ir

    def test_max_errors(self):
        result = Compiler(CompilerOptions(max_errors=2)).compile_source("a\nb\nc\nd")
        assert len(result.errors) == 2
        assert result.warnings == ["warning: stopped after 2 errors"]

    def test_max_errors_counts_syntax_errors(self):
        options = CompilerOptions(max_errors=2)
        result = Compiler(options).compile_source("def 1\ndef 2\ndef 3\ndef 4\n5")
        assert len(result.errors) == 2
        assert all(isinstance(e, ParseError) for e in result.errors)
        assert result.warnings == ["warning: stopped after 2 errors"]
        assert result.values == []

    def test_deeply_nested_expression(self):
        source = "(" * 2000 + "1" + ")" * 2000 + ";\n2"
        result = Compiler().compile_source(source)
        assert len(result.errors) == 1
        assert "nested too deeply" in result.errors[0].message
        assert result.values == [2.0]

    def test_putchard_out_of_range(self):
        """Codes outside 0..255 wrap instead of aborting the run."""
        result = Compiler().compile_source("extern putchard(c)\nputchard(0 - 1)\nputchard(321)\n5")
        assert result.success
        assert result.values == [0.0, 0.0, 5.0]
        assert result.output == chr(255) + "A"


# =============================================================================
# Convenience Functions
# =============================================================================

class TestConvenienceFunctions:

    def test_compile_source(self):
        assert compile_source("def twice(x) x * 2\ntwice(21)").values == [42.0]

    def test_compile_source_raises(self):
        with pytest.raises(CompilationFailedError) as exc_info:
            compile_source("x")
        text = str(exc_info.value)
        assert "<input>:1:1: error: unknown variable name 'x'" in text
        assert "1 error, 0 warnings" in text

    def test_compile_file_writes_output(self, tmp_path):
        source = tmp_path / "fib.ks"
        source.write_text(FIB)
        output = tmp_path / "fib.ll"

        result = compile_file(str(source), str(output))

        assert result.values == [55.0]
        assert "define double @fib" in output.read_text()

    def test_compile_file_errors_prevent_output(self, tmp_path):
        source = tmp_path / "bad.ks"
        source.write_text("def f(x) y")
        output = tmp_path / "bad.ll"

        with pytest.raises(CompilationFailedError):
            compile_file(str(source), str(output))
        assert not output.exists()

    def test_compile_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            compile_file(str(tmp_path / "nope.ks"))


# =============================================================================
# Options
# =============================================================================

class TestOptions:

    def test_defaults(self):
        options = CompilerOptions()
        assert options.opt_level == 2
        assert options.verify
        assert options.execute
        assert options.max_errors == 100

    def test_invalid_opt_level(self):
        with pytest.raises(ValueError):
            CompilerOptions(opt_level=4)

    def test_from_env_defaults(self, clean_env):
        assert CompilerOptions.from_env() == CompilerOptions()

    def test_from_env(self, clean_env):
        clean_env.setenv("KALEIDO_OPT_LEVEL", "0")
        clean_env.setenv("KALEIDO_EXECUTE", "no")
        clean_env.setenv("KALEIDO_VERIFY", "off")
        clean_env.setenv("KALEIDO_MAX_ERRORS", "5")

        options = CompilerOptions.from_env()

        assert options.opt_level == 0
        assert not options.execute
        assert not options.verify
        assert options.max_errors == 5

    def test_from_env_ignores_invalid(self, clean_env):
        clean_env.setenv("KALEIDO_OPT_LEVEL", "9")
        clean_env.setenv("KALEIDO_EXECUTE", "maybe")
        clean_env.setenv("KALEIDO_MAX_ERRORS", "-1")

        assert CompilerOptions.from_env() == CompilerOptions()
