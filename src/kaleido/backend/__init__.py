"""
Kaleido Backend
===============

SSA construction and execution on top of llvmlite.

- LLVMBackend: the primitives the code generator emits through
- Routine: handle for one declared or defined function
- JITExecutor: runs defined functions in-process
- Runtime: host functions (putchard, printd) for extern declarations
"""

from kaleido.backend.jit import JITExecutor, Runtime
from kaleido.backend.llvm import DOUBLE, LLVMBackend, Routine, initialize_llvm

__all__ = [
    "LLVMBackend",
    "Routine",
    "DOUBLE",
    "initialize_llvm",
    "JITExecutor",
    "Runtime",
]
