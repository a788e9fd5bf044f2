"""
CLI Test Suite
==============

Tests for the kcc command-line tool, run through Click's CliRunner in an
isolated filesystem.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from kaleido import __version__
from kaleido.cli.errors import ExitCode
from kaleido.cli.kcc import main


SQUARE = "def sq(x) x * x\nsq(3)\n"


@pytest.fixture
def runner(monkeypatch):
    for name in ("KALEIDO_OPT_LEVEL", "KALEIDO_EXECUTE", "KALEIDO_VERIFY", "KALEIDO_MAX_ERRORS"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


class TestKcc:
    """End-to-end runs of the kcc command."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Compile a Kaleidoscope program" in result.output
        assert "--opt-level" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_compile(self, runner):
        """Should evaluate top-level expressions and write IR."""
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["sq.ks"])

            assert result.exit_code == 0, f"Build failed: {result.output}"
            assert "Evaluated to 9.000000" in result.output
            assert "Compiled sq.ks -> sq.ll" in result.output
            assert "define double @sq" in Path("sq.ll").read_text()

    def test_output_option(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["sq.ks", "-o", "out.ll"])

            assert result.exit_code == 0
            assert Path("out.ll").exists()
            assert not Path("sq.ll").exists()

    def test_program_output_before_value(self, runner):
        with runner.isolated_filesystem():
            Path("p.ks").write_text("extern printd(x)\nprintd(1)\nprintd(2)\n")

            result = runner.invoke(main, ["p.ks"])

            assert result.exit_code == 0
            lines = result.output.splitlines()
            assert lines[:4] == [
                "1.000000",
                "Evaluated to 0.000000",
                "2.000000",
                "Evaluated to 0.000000",
            ]

    def test_no_exec(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["--no-exec", "sq.ks"])

            assert result.exit_code == 0
            assert "Evaluated to" not in result.output
            assert Path("sq.ll").exists()

    def test_no_exec_from_environment(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["sq.ks"], env={"KALEIDO_EXECUTE": "0"})

            assert result.exit_code == 0
            assert "Evaluated to" not in result.output

    def test_unoptimized(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["-O0", "sq.ks"])

            assert result.exit_code == 0
            assert "%multmp = fmul double %x, %x" in Path("sq.ll").read_text()

    def test_invalid_opt_level(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)
            result = runner.invoke(main, ["-O7", "sq.ks"])
            assert result.exit_code == ExitCode.INVALID_ARGS

    def test_errors(self, runner):
        """Should report every diagnostic and write no output."""
        with runner.isolated_filesystem():
            Path("bad.ks").write_text("def f(a, b) a\ndef g(x) y\n")

            result = runner.invoke(main, ["bad.ks"])

            assert result.exit_code == ExitCode.BUILD_ERROR
            assert "bad.ks:1:8: error: unexpected token ','" in result.output
            assert "unknown variable name 'y'" in result.output
            assert "2 errors, 0 warnings" in result.output
            assert not Path("bad.ll").exists()

    def test_ast(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["--ast", "sq.ks"])

            assert result.exit_code == 0
            assert "Function: sq(x)" in result.output
            assert "  BinaryOp: *" in result.output
            assert "Function: __anon_expr()" in result.output
            assert not Path("sq.ll").exists()

    def test_ast_with_syntax_error(self, runner):
        with runner.isolated_filesystem():
            Path("bad.ks").write_text("def f(a, b) a\n1\n")

            result = runner.invoke(main, ["--ast", "bad.ks"])

            assert result.exit_code == ExitCode.BUILD_ERROR
            assert "Function: __anon_expr()" in result.output
            assert "error:" in result.output

    def test_verbose(self, runner):
        with runner.isolated_filesystem():
            Path("sq.ks").write_text(SQUARE)

            result = runner.invoke(main, ["-v", "sq.ks"])

            assert result.exit_code == 0
            assert "Compiling sq.ks at -O2" in result.output
            assert "Defined: sq" in result.output

    def test_missing_file(self, runner):
        result = runner.invoke(main, ["nope.ks"])
        assert result.exit_code == ExitCode.INVALID_ARGS
