"""
kcc - Kaleidoscope Compiler Command-Line Interface
==================================================

This module implements the command-line interface for the Kaleidoscope
compiler. It compiles a source file, prints the value of every top-level
expression and writes the linked LLVM IR.

Usage Examples
--------------
Basic compilation (writes fib.ll):
    $ kcc fib.ks

With output file:
    $ kcc fib.ks -o out.ll

Without optimisation, without running top-level expressions:
    $ kcc -O0 --no-exec fib.ks

Print the AST only:
    $ kcc --ast fib.ks

Verbose mode (debug logging):
    $ kcc -v fib.ks
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from kaleido import __version__
from kaleido.cli.errors import ExitCode, handle_cli_exception
from kaleido.frontend import (
    ASTPrinter,
    Compiler,
    CompilerOptions,
    DiagnosticCollector,
    Lexer,
    Parser,
)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output LLVM IR file (default: input.ll)",
)
@click.option(
    "-O", "--opt-level",
    type=click.IntRange(0, 3),
    default=2,
    envvar="KALEIDO_OPT_LEVEL",
    show_default=True,
    help="Optimisation level 0-3",
)
@click.option(
    "--exec/--no-exec", "execute",
    default=True,
    envvar="KALEIDO_EXECUTE",
    show_default=True,
    help="Evaluate top-level expressions with the JIT",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print AST and exit (for debugging)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="kcc")
def main(
    input_file: Path,
    output: Optional[Path],
    opt_level: int,
    execute: bool,
    ast: bool,
    verbose: bool,
) -> None:
    """
    Compile a Kaleidoscope program to LLVM IR.

    INPUT_FILE is the Kaleidoscope source file (.ks) to compile.

    Every top-level expression is evaluated as it is compiled and its
    value printed. Functions and externs are collected into one LLVM
    module written to the output file.

    \b
    Examples:
        kcc fib.ks                   # Outputs fib.ll
        kcc fib.ks -o out.ll         # Specify output file
        kcc -O0 fib.ks               # Skip optimisation
        kcc --no-exec fib.ks         # Do not run top-level expressions
        kcc --ast fib.ks             # Print the syntax tree

    \b
    Runtime functions available through extern:
        putchard(x)   print the character with code x
        printd(x)     print x followed by a newline
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(name)s: %(message)s")

    if output is None:
        output = input_file.with_suffix(".ll")

    try:
        options = CompilerOptions.from_env()
        options.opt_level = opt_level
        options.execute = execute

        source = input_file.read_text(encoding="utf-8")

        if ast:
            sys.exit(_print_ast(source, str(input_file)))

        if verbose:
            click.echo(f"Compiling {input_file} at -O{options.opt_level}...")

        result = Compiler(options).compile_source(source, str(input_file))

        for evaluation in result.evaluations:
            if evaluation.output:
                click.echo(evaluation.output, nl=False)
            click.echo(f"Evaluated to {evaluation.value:f}")

        if not result.success:
            collector = DiagnosticCollector()
            for error in result.errors:
                collector.add(error)
            collector.warnings.extend(result.warnings)
            click.echo(collector.report(), err=True)
            sys.exit(ExitCode.BUILD_ERROR)

        output.write_text(result.ir, encoding="utf-8")

        if verbose:
            click.echo(f"Parsed: {len(result.forms)} top-level forms")
            click.echo(f"Defined: {', '.join(result.functions) or '(none)'}")
            click.echo(f"Wrote {len(result.ir)} bytes to {output}")

        click.echo(f"Compiled {input_file} -> {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Compilation")


def _print_ast(source: str, filename: str) -> int:
    """Print every parsed form; return the exit code."""
    diagnostics = DiagnosticCollector()
    parser = Parser(Lexer(source, filename), diagnostics)
    printer = ASTPrinter()

    for form in parser.forms():
        click.echo(printer.print(form))

    if diagnostics.has_errors():
        click.echo(diagnostics.report(), err=True)
        return ExitCode.BUILD_ERROR
    return ExitCode.SUCCESS


if __name__ == "__main__":
    main()
