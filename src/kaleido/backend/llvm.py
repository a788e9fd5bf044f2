"""
LLVM SSA Backend
================

Thin adapter that gives the code generator a small set of SSA primitives
on top of llvmlite. Instruction construction uses ``llvmlite.ir``;
verification, optimisation and linking go through ``llvmlite.binding``.

Every value is an LLVM ``double``. Comparisons produce an ``i1`` that the
code generator widens back to 0.0/1.0.

Module Layout
-------------
Each routine lives in its own ``ir.Module``. A call to another routine is
satisfied by a declaration of the callee, recreated inside the caller's
module from the callee's signature. Consequences:

- ``erase(routine)`` only has to drop the routine from the registry
- a failed definition never leaves instructions behind in a shared module
- ``link()`` parses the registered routines and links them into a single
  ``llvm.ModuleRef`` for printing or execution; execution links only the
  routines reachable from the function being run

Example Usage
-------------
>>> backend = LLVMBackend()
>>> add = backend.declare_function("add", ["a", "b"])
>>> backend.set_insertion_point(backend.open_block("entry", add))
>>> a, b = add.function.args
>>> backend.emit_return(backend.emit_binary("+", a, b))
>>> backend.verify(add)
True
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from llvmlite import binding as llvm
from llvmlite import ir

from kaleido.errors import BackendError

logger = logging.getLogger(__name__)


# The single scalar type of the language
DOUBLE = ir.DoubleType()

# Instruction builders for the arithmetic operators, with result names
_ARITHMETIC = {
    "+": ("fadd", "addtmp"),
    "-": ("fsub", "subtmp"),
    "*": ("fmul", "multmp"),
}


def initialize_llvm() -> None:
    """Initialize the native target and asm printer (safe to repeat)."""
    llvm.initialize_native_target()
    llvm.initialize_native_asmprinter()


@dataclass
class Routine:
    """
    Handle for one function known to the backend.

    Attributes:
        name: Function name
        module: The ir.Module that owns the function
        function: The ir.Function itself
        optimized_ir: LLVM IR text after optimisation, if it ran
    """
    name: str
    module: ir.Module
    function: ir.Function
    optimized_ir: Optional[str] = None

    @property
    def arity(self) -> int:
        return len(self.function.args)

    @property
    def has_body(self) -> bool:
        """True once at least one basic block has been opened."""
        return not self.function.is_declaration

    def ir_text(self) -> str:
        """Optimised IR when available, otherwise the IR as built."""
        if self.optimized_ir is not None:
            return self.optimized_ir
        return str(self.module)


class LLVMBackend:
    """
    SSA construction, verification and optimisation over llvmlite.

    One instance belongs to one compilation unit.

    Attributes:
        module_name: Name of the linked module
        opt_level: 0 disables optimisation, 1-3 select the default pipeline
        triple: Target triple stamped on every module
    """

    def __init__(self, module_name: str = "kaleido", opt_level: int = 2):
        initialize_llvm()

        self.module_name = module_name
        self.opt_level = opt_level
        self.triple = llvm.get_process_triple()
        self.last_verification_error: Optional[str] = None

        self._routines: dict[str, Routine] = {}
        self._constants: dict[str, ir.Constant] = {}
        self._current: Optional[Routine] = None
        self._builder: Optional[ir.IRBuilder] = None
        self._target_machine: Optional[llvm.TargetMachine] = None

    # =========================================================================
    # Routine Registry
    # =========================================================================

    def declare_function(self, name: str, params: Sequence[str]) -> Routine:
        """
        Declare a routine taking one double per parameter name.

        A bodiless declaration of the same name is replaced.

        Raises:
            BackendError: If a routine with a body already uses the name
        """
        existing = self._routines.get(name)
        if existing is not None and existing.has_body:
            raise BackendError(f"routine '{name}' already has a body")

        module = ir.Module(name=f"{self.module_name}.{name}")
        module.triple = self.triple

        fnty = ir.FunctionType(DOUBLE, [DOUBLE] * len(params))
        function = ir.Function(module, fnty, name=name)
        for arg, param in zip(function.args, params):
            arg.name = param

        routine = Routine(name, module, function)
        self._routines[name] = routine
        logger.debug(f"declared routine '{name}' with {len(params)} parameters")
        return routine

    def lookup_function(self, name: str) -> Optional[Routine]:
        return self._routines.get(name)

    def routines(self) -> list[Routine]:
        """All registered routines in declaration order."""
        return list(self._routines.values())

    def erase(self, routine: Routine) -> None:
        """
        Forget a routine entirely.

        Calls compiled earlier keep their own declarations, so only the
        registry entry has to go.
        """
        if self._routines.get(routine.name) is routine:
            del self._routines[routine.name]
        if self._current is routine:
            self._current = None
            self._builder = None
        logger.debug(f"erased routine '{routine.name}'")

    # =========================================================================
    # Blocks and Insertion Point
    # =========================================================================

    def open_block(self, name: str, routine: Optional[Routine] = None) -> ir.Block:
        """
        Append a new basic block.

        Passing a routine makes it the one under construction; later
        blocks default to it.
        """
        if routine is not None:
            self._current = routine
        if self._current is None:
            raise BackendError("no routine under construction")
        return self._current.function.append_basic_block(name)

    def set_insertion_point(self, block: ir.Block) -> None:
        if self._builder is None:
            self._builder = ir.IRBuilder(block)
        else:
            self._builder.position_at_end(block)

    def current_block(self) -> ir.Block:
        return self._require_builder().block

    def _require_builder(self) -> ir.IRBuilder:
        if self._builder is None:
            raise BackendError("no insertion point set")
        return self._builder

    # =========================================================================
    # Instruction Emission
    # =========================================================================

    def emit_constant(self, value: float) -> ir.Constant:
        """Return the interned constant for ``value``."""
        key = float(value).hex()
        constant = self._constants.get(key)
        if constant is None:
            constant = ir.Constant(DOUBLE, float(value))
            self._constants[key] = constant
        return constant

    def emit_binary(self, op: str, lhs: ir.Value, rhs: ir.Value, name: Optional[str] = None) -> ir.Value:
        """Emit ``+``, ``-`` or ``*`` on two doubles."""
        if op not in _ARITHMETIC:
            raise BackendError(f"no arithmetic instruction for '{op}'")
        method, default_name = _ARITHMETIC[op]
        return getattr(self._require_builder(), method)(lhs, rhs, name=name or default_name)

    def emit_compare_lt(self, lhs: ir.Value, rhs: ir.Value) -> ir.Value:
        """Unordered less-than; true when either operand is NaN."""
        return self._require_builder().fcmp_unordered("<", lhs, rhs, name="cmptmp")

    def emit_truth_test(self, value: ir.Value, name: str = "cond") -> ir.Value:
        """Ordered ``value != 0.0``."""
        return self._require_builder().fcmp_ordered(
            "!=", value, self.emit_constant(0.0), name=name
        )

    def emit_convert_bool_to_scalar(self, value: ir.Value) -> ir.Value:
        """Widen an ``i1`` to 0.0 or 1.0."""
        return self._require_builder().uitofp(value, DOUBLE, name="booltmp")

    def emit_call(self, callee: Routine, args: Sequence[ir.Value]) -> ir.Value:
        builder = self._require_builder()
        target = self._callable_in(self._current.module, callee)
        return builder.call(target, list(args), name="calltmp")

    def emit_conditional_branch(self, cond: ir.Value, then_block: ir.Block, else_block: ir.Block) -> None:
        self._require_builder().cbranch(cond, then_block, else_block)

    def emit_jump(self, block: ir.Block) -> None:
        self._require_builder().branch(block)

    def emit_phi(self, incoming: Sequence[tuple[ir.Value, ir.Block]], name: str = "phi") -> ir.PhiInstr:
        """
        Emit a double-typed phi with the given (value, block) edges.

        More edges can be added later with add_incoming().
        """
        phi = self._require_builder().phi(DOUBLE, name=name)
        for value, block in incoming:
            phi.add_incoming(value, block)
        return phi

    def add_incoming(self, phi: ir.PhiInstr, value: ir.Value, block: ir.Block) -> None:
        phi.add_incoming(value, block)

    def emit_return(self, value: ir.Value) -> None:
        self._require_builder().ret(value)

    def _callable_in(self, module: ir.Module, callee: Routine) -> ir.Function:
        """The callee as seen from ``module``, declaring it there if needed."""
        if callee.module is module:
            return callee.function
        existing = module.globals.get(callee.name)
        if existing is not None:
            return existing
        return ir.Function(module, callee.function.ftype, name=callee.name)

    # =========================================================================
    # Verification, Optimisation and Linking
    # =========================================================================

    def verify(self, routine: Routine) -> bool:
        """
        Run LLVM's verifier over the routine's module.

        The verifier message of a failure is kept in
        ``last_verification_error``.
        """
        try:
            llvm.parse_assembly(str(routine.module)).verify()
        except RuntimeError as e:
            self.last_verification_error = str(e).strip()
            logger.debug(f"verification of '{routine.name}' failed: {self.last_verification_error}")
            return False
        self.last_verification_error = None
        return True

    def optimize(self, routine: Routine) -> None:
        """Run the default module pipeline at ``opt_level`` (no-op at 0)."""
        if self.opt_level <= 0:
            return

        module = llvm.parse_assembly(str(routine.module))
        pto = llvm.PipelineTuningOptions(speed_level=self.opt_level, size_level=0)
        pb = llvm.create_pass_builder(self.target_machine(), pto)
        pm = pb.getModulePassManager()
        pm.run(module, pb)

        routine.optimized_ir = str(module)
        logger.debug(f"optimized '{routine.name}' at -O{self.opt_level}")

    def target_machine(self) -> llvm.TargetMachine:
        """Target machine for the optimisation pipeline, created on first use."""
        if self._target_machine is None:
            self._target_machine = self.create_target_machine()
        return self._target_machine

    def create_target_machine(self) -> llvm.TargetMachine:
        """A new host target machine; an execution engine takes ownership of it."""
        target = llvm.Target.from_triple(self.triple)
        return target.create_target_machine(opt=self.opt_level)

    def link(self, roots: Optional[Sequence[str]] = None) -> llvm.ModuleRef:
        """
        Link registered routines into one verified module.

        Args:
            roots: Only link these routines and everything they call;
                all routines when omitted

        Raises:
            BackendError: If LLVM rejects the linked module
        """
        shell = ir.Module(name=self.module_name)
        shell.triple = self.triple
        linked = llvm.parse_assembly(str(shell))
        linked.name = self.module_name

        try:
            for routine in self._reachable(roots):
                linked.link_in(llvm.parse_assembly(routine.ir_text()))
            linked.verify()
        except RuntimeError as e:
            raise BackendError(f"linking module '{self.module_name}' failed: {str(e).strip()}") from e

        return linked

    def _reachable(self, roots: Optional[Sequence[str]]) -> list[Routine]:
        """Routines named in roots plus their transitive callees, in registry order."""
        if roots is None:
            return list(self._routines.values())

        seen: set[str] = set()
        pending = list(roots)
        while pending:
            name = pending.pop()
            routine = self._routines.get(name)
            if name in seen or routine is None:
                continue
            seen.add(name)
            pending.extend(f.name for f in routine.module.functions if f is not routine.function)

        return [r for r in self._routines.values() if r.name in seen]

    def render_ir(self, routine: Optional[Routine] = None) -> str:
        """LLVM IR text for one routine, or for the whole linked unit."""
        if routine is not None:
            return routine.ir_text()
        return str(self.link())
