"""
JIT Execution
=============

Runs compiled routines in-process with LLVM's MCJIT engine and calls them
through ctypes.

Runtime Library
---------------
Programs reach host functionality through ``extern`` declarations. The
Runtime class implements these natively in Python and publishes them to
LLVM's symbol table before each engine is built:

| Extern       | Effect                                    | Result |
|--------------|-------------------------------------------|--------|
| putchard(x)  | write the character with code ``x % 256`` | 0.0    |
| printd(x)    | write ``x`` formatted as ``%f`` + "\\n"    | 0.0    |

Any other extern must name a symbol already present in the process
(for example ``sin`` or ``cos`` from the C math library).

Example Usage
-------------
>>> executor = JITExecutor(backend)
>>> executor.run("fib", 10.0)
55.0
"""

import ctypes
import io
import math
import logging
from typing import Callable, Optional, TextIO

from llvmlite import binding as llvm

from kaleido.backend.llvm import LLVMBackend
from kaleido.errors import ExecutionError

logger = logging.getLogger(__name__)


# Native signature of every runtime function: double(double)
_UNARY_DOUBLE = ctypes.CFUNCTYPE(ctypes.c_double, ctypes.c_double)


class Runtime:
    """
    Host functions callable from compiled code.

    Everything written by the program is captured and, when a stream is
    given, echoed to it as well.

    Attributes:
        stream: Optional text stream receiving program output live
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream
        self._captured = io.StringIO()

        # ctypes callbacks must outlive every engine that calls them
        self._callbacks = {
            "putchard": _UNARY_DOUBLE(self.putchard),
            "printd": _UNARY_DOUBLE(self.printd),
        }

    def putchard(self, value: float) -> float:
        # Codes wrap to a byte; NaN and infinities write nothing
        if math.isfinite(value):
            self._write(chr(int(value) % 256))
        return 0.0

    def printd(self, value: float) -> float:
        self._write(f"{value:f}\n")
        return 0.0

    def install(self) -> None:
        """Publish the runtime functions to LLVM's process symbol table."""
        for name, callback in self._callbacks.items():
            llvm.add_symbol(name, ctypes.cast(callback, ctypes.c_void_p).value)

    @property
    def symbols(self) -> list[str]:
        return list(self._callbacks)

    def output(self) -> str:
        """Everything written so far."""
        return self._captured.getvalue()

    def _write(self, text: str) -> None:
        self._captured.write(text)
        if self.stream is not None:
            self.stream.write(text)
            self.stream.flush()


class JITExecutor:
    """
    Executes routines of an LLVMBackend.

    Each run links the requested routine with everything it calls,
    builds a fresh MCJIT engine and calls it.
    """

    def __init__(self, backend: LLVMBackend, runtime: Optional[Runtime] = None):
        self.backend = backend
        self.runtime = runtime if runtime is not None else Runtime()

    def run(self, name: str, *args: float) -> float:
        """
        Call a compiled function with double arguments.

        Raises:
            ExecutionError: If the function is missing, has no body, is
                called with the wrong number of arguments, or calls an
                extern with no native definition
        """
        routine = self.backend.lookup_function(name)
        if routine is None or not routine.has_body:
            raise ExecutionError(f"function '{name}' is not defined", function_name=name)
        if len(args) != routine.arity:
            raise ExecutionError(
                f"'{name}' expects {routine.arity} arguments, got {len(args)}",
                function_name=name,
            )

        self.runtime.install()
        module = self.backend.link([name])
        self._check_externs(module)

        engine = llvm.create_mcjit_compiler(module, self.backend.create_target_machine())
        engine.finalize_object()
        engine.run_static_constructors()

        address = engine.get_function_address(name)
        cfunc = self._native_signature(routine.arity)(address)
        result = float(cfunc(*(float(a) for a in args)))
        logger.debug(f"{name}{args} evaluated to {result}")
        return result

    def function(self, name: str) -> Callable[..., float]:
        """Return a Python callable that runs ``name``."""
        return lambda *args: self.run(name, *args)

    @staticmethod
    def _native_signature(arity: int):
        return ctypes.CFUNCTYPE(ctypes.c_double, *([ctypes.c_double] * arity))

    def _check_externs(self, module: llvm.ModuleRef) -> None:
        """
        Fail early on externs that no native symbol satisfies.

        MCJIT aborts the whole process on an unresolved symbol, so this
        has to be checked before the engine is built.
        """
        for function in module.functions:
            if not function.is_declaration or function.name.startswith("llvm."):
                continue
            if llvm.address_of_symbol(function.name) is None:
                raise ExecutionError(
                    f"extern '{function.name}' has no native definition",
                    function_name=function.name,
                    hint="available runtime functions: " + ", ".join(self.runtime.symbols),
                )
