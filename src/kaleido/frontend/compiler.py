"""
Kaleidoscope Compiler Main Module
=================================

This module provides the main compiler interface for Kaleidoscope.
It orchestrates the complete compilation process:

    Source → Lex → Parse → Lower to SSA → Verify/Optimise → (JIT evaluate)

Usage
-----
Command line:
    $ kcc fib.ks -o fib.ll

Programmatic:
    >>> from kaleido.frontend import compile_source
    >>> result = compile_source("def sq(x) x * x\\nsq(4)")
    >>> result.values
    [16.0]

Compilation Pipeline
--------------------
The parser hands out one top-level form at a time and each form is
lowered immediately:

1. **Definitions** (``def``) become routines in the backend
2. **Externs** (``extern``) become declarations
3. **Top-level expressions** are wrapped in an anonymous function,
   evaluated with the JIT when ``execute`` is enabled, and then erased so
   the next expression can reuse the name

Error Handling
--------------
Syntax and lowering errors do not stop compilation: each bad form is
reported and skipped. All diagnostics end up in CompilerResult.errors.
The convenience function compile_source() raises CompilationFailedError
instead when any were reported.

Configuration
-------------
CompilerOptions can be read from the environment with from_env():

| Variable            | Option      | Example |
|---------------------|-------------|---------|
| KALEIDO_OPT_LEVEL   | opt_level   | 0..3    |
| KALEIDO_EXECUTE     | execute     | 0 / 1   |
| KALEIDO_VERIFY      | verify      | 0 / 1   |
| KALEIDO_MAX_ERRORS  | max_errors  | 20      |
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TextIO

from kaleido.backend.jit import JITExecutor, Runtime
from kaleido.backend.llvm import LLVMBackend
from kaleido.errors import ExecutionError, LocatedError
from kaleido.frontend.ast import ASTNode, Function
from kaleido.frontend.codegen import CodeGenerator
from kaleido.frontend.errors import DiagnosticCollector
from kaleido.frontend.lexer import Lexer
from kaleido.frontend.parser import Parser

logger = logging.getLogger(__name__)


_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        opt_level: LLVM optimisation level, 0 (none) to 3
        verify: Run the LLVM verifier on every finished function
        execute: Evaluate top-level expressions with the JIT
        module_name: Name of the linked module (defaults to the file stem)
        max_errors: Stop compiling after this many errors
    """
    opt_level: int = 2
    verify: bool = True
    execute: bool = True
    module_name: Optional[str] = None
    max_errors: int = 100

    def __post_init__(self):
        if not 0 <= self.opt_level <= 3:
            raise ValueError(f"opt_level must be between 0 and 3, got {self.opt_level}")

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """
        Create CompilerOptions from environment variables.

        Environment variables (all optional):
            KALEIDO_OPT_LEVEL: Optimisation level (0-3)
            KALEIDO_EXECUTE: Evaluate top-level expressions (0/1)
            KALEIDO_VERIFY: Verify generated functions (0/1)
            KALEIDO_MAX_ERRORS: Error limit (integer)

        Invalid values are logged and ignored.
        """
        options = cls()

        if level := os.environ.get("KALEIDO_OPT_LEVEL"):
            if level.isdigit() and 0 <= int(level) <= 3:
                options.opt_level = int(level)
            else:
                logger.warning(f"ignoring invalid KALEIDO_OPT_LEVEL={level!r}")

        if (execute := _env_flag("KALEIDO_EXECUTE")) is not None:
            options.execute = execute

        if (verify := _env_flag("KALEIDO_VERIFY")) is not None:
            options.verify = verify

        if max_errors := os.environ.get("KALEIDO_MAX_ERRORS"):
            if max_errors.isdigit() and int(max_errors) > 0:
                options.max_errors = int(max_errors)
            else:
                logger.warning(f"ignoring invalid KALEIDO_MAX_ERRORS={max_errors!r}")

        return options


def _env_flag(name: str) -> Optional[bool]:
    """Read a boolean environment variable; None when unset or invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    if value.lower() in _TRUE_VALUES:
        return True
    if value.lower() in _FALSE_VALUES:
        return False
    logger.warning(f"ignoring invalid {name}={value!r}")
    return None


@dataclass
class Evaluation:
    """
    A top-level expression and the value the JIT computed for it.

    Attributes:
        form: The anonymous function wrapping the expression
        value: Result of the expression
        output: Text the expression wrote through the runtime library
    """
    form: Function
    value: float
    output: str = ""


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        forms: Every top-level form that parsed
        functions: Names of the functions defined successfully
        evaluations: Top-level expressions with their values, in order
        output: Text the program wrote through the runtime library
        ir: LLVM IR of the linked module
        errors: Diagnostics from every stage
        warnings: Warning messages
    """
    filename: str = ""
    forms: list[ASTNode] = field(default_factory=list)
    functions: list[str] = field(default_factory=list)
    evaluations: list[Evaluation] = field(default_factory=list)
    output: str = ""
    ir: str = ""
    errors: list[LocatedError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def values(self) -> list[float]:
        """Just the values of evaluated top-level expressions."""
        return [evaluation.value for evaluation in self.evaluations]


class Compiler:
    """
    Kaleidoscope compiler.

    Each compile_source() call is one compilation unit with its own
    backend, code generator and symbol tables.

    Example:
        compiler = Compiler(CompilerOptions(opt_level=0))
        result = compiler.compile_file("fib.ks")
        print(result.ir)

    Attributes:
        options: Compiler configuration options
        stream: Where program output is echoed while it runs (optional)
    """

    def __init__(self, options: Optional[CompilerOptions] = None, stream: Optional[TextIO] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler configuration (uses defaults if None)
            stream: Text stream that receives program output live
        """
        self.options = options or CompilerOptions()
        self.stream = stream

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile Kaleidoscope source code.

        Args:
            source: Kaleidoscope source text
            filename: Source filename for error messages

        Returns:
            CompilerResult with forms, values, IR and diagnostics
        """
        result = CompilerResult(filename=filename)
        diagnostics = DiagnosticCollector(max_errors=self.options.max_errors)

        backend = LLVMBackend(self._module_name(filename), self.options.opt_level)
        codegen = CodeGenerator(backend, diagnostics, verify=self.options.verify)
        runtime = Runtime(self.stream)
        executor = JITExecutor(backend, runtime)
        parser = Parser(Lexer(source, filename), diagnostics)

        # Syntax errors count toward max_errors too, so the limit is checked
        # after every form whether or not it parsed
        while not parser.at_eof:
            form = parser.next_top_level_form()

            if form is not None:
                result.forms.append(form)
                routine = codegen.generate(form)

                if routine is not None and isinstance(form, Function):
                    if form.proto.is_anonymous:
                        if self.options.execute:
                            self._evaluate(executor, form, result, diagnostics)
                        backend.erase(routine)
                    else:
                        result.functions.append(form.proto.name)

            if diagnostics.should_stop():
                diagnostics.add_warning(f"stopped after {diagnostics.error_count()} errors")
                break

        result.ir = backend.render_ir()
        result.output = runtime.output()
        result.errors = list(diagnostics.errors)
        result.warnings = list(diagnostics.warnings)

        logger.debug(
            f"compiled {filename}: {len(result.forms)} forms, "
            f"{len(result.errors)} errors"
        )
        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Compile a Kaleidoscope source file.

        Raises:
            FileNotFoundError: If source file not found
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))

    def _evaluate(
        self,
        executor: JITExecutor,
        form: Function,
        result: CompilerResult,
        diagnostics: DiagnosticCollector,
    ) -> None:
        """Run an anonymous top-level function and record its value."""
        before = len(executor.runtime.output())
        try:
            value = executor.run(form.proto.name)
        except ExecutionError as e:
            diagnostics.add(e)
            logger.info(f"evaluation failed: {e.message}")
            return
        output = executor.runtime.output()[before:]
        result.evaluations.append(Evaluation(form, value, output))

    def _module_name(self, filename: str) -> str:
        if self.options.module_name:
            return self.options.module_name
        if filename.startswith("<"):
            return "kaleido"
        return Path(filename).stem or "kaleido"


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(
    source: str,
    filename: str = "<input>",
    options: Optional[CompilerOptions] = None,
) -> CompilerResult:
    """
    Compile source text, raising on any diagnostic.

    Raises:
        CompilationFailedError: If any error was reported
    """
    result = Compiler(options).compile_source(source, filename)
    _raise_if_errors(result)
    return result


def compile_file(
    filepath: str,
    output_path: Optional[str] = None,
    options: Optional[CompilerOptions] = None,
) -> CompilerResult:
    """
    Compile a source file, optionally writing the linked IR.

    Raises:
        CompilationFailedError: If any error was reported
        FileNotFoundError: If source file not found
    """
    result = Compiler(options).compile_file(filepath)
    _raise_if_errors(result)

    if output_path:
        Path(output_path).write_text(result.ir, encoding="utf-8")

    return result


def _raise_if_errors(result: CompilerResult) -> None:
    collector = DiagnosticCollector()
    for error in result.errors:
        collector.add(error)
    collector.warnings.extend(result.warnings)
    collector.raise_if_errors()
