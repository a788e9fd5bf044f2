"""
Kaleido - Kaleidoscope Compiler on LLVM
=======================================

This package compiles the Kaleidoscope expression language to LLVM IR
and runs it in-process with a JIT.

Kaleidoscope has one type (double), functions, externs, if/then/else
and for/in loops. Every construct is an expression:

    # Compute the nth Fibonacci number
    def fib(x)
      if x < 3 then
        1
      else
        fib(x-1) + fib(x-2)

    fib(10)

Main Components
---------------
- **frontend**: lexer, parser, AST, SSA code generator and compiler driver
- **backend**: llvmlite adapter (IR building, verification, optimisation)
  and the JIT executor with its runtime library
- **cli**: the ``kcc`` command

Quick Start
-----------
    >>> from kaleido import compile_source
    >>> compile_source("def twice(x) x * 2\\ntwice(21)").values
    [42.0]

Or use the command-line tool:
    $ kcc fib.ks -o fib.ll
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from kaleido.errors import (
    KaleidoError,
    LocatedError,
    SourceLocation,
    BackendError,
    ExecutionError,
)
from kaleido.frontend import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_source,
    compile_file,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "KaleidoError",
    "LocatedError",
    "SourceLocation",
    "BackendError",
    "ExecutionError",
    # Compiler
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_source",
    "compile_file",
]
