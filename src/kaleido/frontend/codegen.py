"""
SSA Code Generator for Kaleidoscope
===================================

This module lowers the Kaleidoscope AST into SSA form through the
LLVMBackend primitives. It is an ASTVisitor: every visit_* method for an
expression returns the SSA value holding that expression's result.

Symbol Tables
-------------
| Table   | Maps                  | Lifetime                          |
|---------|-----------------------|-----------------------------------|
| globals | name -> Prototype     | whole compilation unit, add-only  |
| locals  | name -> SSA value     | one function; parameters + loops  |

Control Flow Lowering
---------------------
``if c then a else b``::

    entry:   ifcond = c != 0.0 ; br ifcond, then, else
    then:    a ; br ifcont
    else:    b ; br ifcont
    ifcont:  iftmp = phi [a, then-end], [b, else-end]

``for i = start, end, step in body``::

    entry:      start ; br loop
    loop:       i = phi [start, entry], [nextvar, loop-end]
                body ; nextvar = i + step ; loopcond = end != 0.0
                br loopcond, loop, afterloop
    afterloop:  (value of the loop is 0.0)

The phi operands name the block each branch *ends* in, which differs from
the block it starts in whenever the branch holds nested control flow.

Error Recovery
--------------
Every lowering error is a CodegenError raised from deep inside the
visitor. generate() is the only place they are caught: the routine under
construction is erased from the backend, the error is recorded in the
DiagnosticCollector, and None is returned. globals and every earlier
routine stay valid for the following forms.
Bodies nested past the interpreter's recursion limit are reported the
same way, as a CodegenError.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from llvmlite import ir

from kaleido.backend.llvm import LLVMBackend, Routine
from kaleido.frontend.ast import (
    ASTNode,
    ASTVisitor,
    BinaryOp,
    BoundedLoop,
    Call,
    Conditional,
    Function,
    NumberLiteral,
    Prototype,
    VariableRef,
)
from kaleido.frontend.errors import (
    ArgumentCountError,
    CodegenError,
    DiagnosticCollector,
    RedefinitionError,
    SignatureMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
    UnsupportedOperatorError,
    VerificationError,
)

logger = logging.getLogger(__name__)


# Marks a name that had no binding before a loop shadowed it
_UNBOUND = object()


class CodeGenerator(ASTVisitor):
    """
    Lowers top-level forms into backend routines.

    One instance belongs to one compilation unit and is fed the forms in
    source order.

    Usage:
        backend = LLVMBackend()
        codegen = CodeGenerator(backend)
        for form in parser.forms():
            codegen.generate(form)

    Attributes:
        backend: The SSA backend receiving instructions
        diagnostics: Collector receiving every lowering error
        verify: Whether finished routines are run through the verifier
        globals: Declared signature of every known function
        locals: Variables visible in the function being lowered
    """

    def __init__(
        self,
        backend: LLVMBackend,
        diagnostics: Optional[DiagnosticCollector] = None,
        verify: bool = True,
    ):
        self.backend = backend
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticCollector()
        self.verify = verify

        self.globals: dict[str, Prototype] = {}
        self.locals: dict[str, ir.Value] = {}

    # =========================================================================
    # Entry Point
    # =========================================================================

    def generate(self, node: Union[Function, Prototype]) -> Optional[Routine]:
        """
        Lower one top-level form.

        Args:
            node: A Function definition or an extern Prototype

        Returns:
            The backend routine, or None if lowering failed (the error is
            recorded in diagnostics)
        """
        if not isinstance(node, (Function, Prototype)):
            raise TypeError(f"expected Function or Prototype, got {type(node).__name__}")

        try:
            routine = self.visit(node)
        except CodegenError as e:
            self.diagnostics.add(e)
            logger.info(f"lowering of '{self._form_name(node)}' failed: {e.message}")
            return None

        logger.debug(f"lowered '{self._form_name(node)}'")
        return routine

    @staticmethod
    def _form_name(node: ASTNode) -> str:
        if isinstance(node, Function):
            return node.proto.name
        return node.name

    # =========================================================================
    # Declarations
    # =========================================================================

    def visit_Prototype(self, node: Prototype) -> Routine:
        """
        Declare an extern.

        Redeclaring a known function with the same arity returns the
        existing routine.
        """
        self._register_signature(node)

        existing = self.backend.lookup_function(node.name)
        if existing is not None:
            return existing
        return self.backend.declare_function(node.name, node.params)

    def visit_Function(self, node: Function) -> Routine:
        """
        Lower a function definition.

        The routine is erased from the backend if anything fails after it
        has been declared.
        """
        proto = node.proto

        existing = self.backend.lookup_function(proto.name)
        if existing is not None and existing.has_body:
            raise RedefinitionError(proto.name, proto.location or node.location)

        self._register_signature(proto)
        routine = self.backend.declare_function(proto.name, proto.params)

        try:
            entry = self.backend.open_block("entry", routine)
            self.backend.set_insertion_point(entry)
            self.locals = dict(zip(proto.params, routine.function.args))

            result = self.visit(node.body)
            self.backend.emit_return(result)

            if self.verify and not self.backend.verify(routine):
                raise VerificationError(proto.name, self.backend.last_verification_error or "")

            self.backend.optimize(routine)
        except CodegenError:
            self.backend.erase(routine)
            raise
        except RecursionError:
            self.backend.erase(routine)
            raise CodegenError(
                f"body of '{proto.name}' is nested too deeply",
                location=node.location,
                hint="split the expression into smaller functions",
            ) from None
        finally:
            self.locals = {}

        return routine

    def _register_signature(self, proto: Prototype) -> None:
        """
        Record proto in globals.

        Raises:
            SignatureMismatchError: If the name is known with another arity
        """
        known = self.globals.get(proto.name)
        if known is not None and known.arity != proto.arity:
            raise SignatureMismatchError(proto.name, known.arity, proto.arity, proto.location)
        if known is None:
            self.globals[proto.name] = proto

    # =========================================================================
    # Expressions
    # =========================================================================

    def visit_NumberLiteral(self, node: NumberLiteral) -> ir.Value:
        return self.backend.emit_constant(node.value)

    def visit_VariableRef(self, node: VariableRef) -> ir.Value:
        value = self.locals.get(node.name)
        if value is None:
            raise UndefinedVariableError(node.name, node.location, sorted(self.locals))
        return value

    def visit_BinaryOp(self, node: BinaryOp) -> ir.Value:
        """
        Lower lhs, then rhs, then the operator.

        ``<`` yields 0.0 or 1.0.
        """
        lhs = self.visit(node.lhs)
        rhs = self.visit(node.rhs)

        if node.operator in ("+", "-", "*"):
            return self.backend.emit_binary(node.operator, lhs, rhs)
        if node.operator == "<":
            return self.backend.emit_convert_bool_to_scalar(self.backend.emit_compare_lt(lhs, rhs))

        raise UnsupportedOperatorError(node.operator, node.location)

    def visit_Call(self, node: Call) -> ir.Value:
        proto = self.globals.get(node.callee)
        if proto is None:
            raise UndefinedFunctionError(node.callee, node.location)
        if proto.arity != len(node.args):
            raise ArgumentCountError(node.callee, proto.arity, len(node.args), node.location)

        args = [self.visit(arg) for arg in node.args]

        # A failed definition may have erased the routine; its signature remains
        callee = self.backend.lookup_function(node.callee)
        if callee is None:
            callee = self.backend.declare_function(proto.name, proto.params)

        return self.backend.emit_call(callee, args)

    def visit_Conditional(self, node: Conditional) -> ir.Value:
        cond = self.backend.emit_truth_test(self.visit(node.condition), "ifcond")

        then_block = self.backend.open_block("then")
        else_block = self.backend.open_block("else")
        merge_block = self.backend.open_block("ifcont")
        self.backend.emit_conditional_branch(cond, then_block, else_block)

        self.backend.set_insertion_point(then_block)
        then_value = self.visit(node.then_branch)
        self.backend.emit_jump(merge_block)
        then_end = self.backend.current_block()

        self.backend.set_insertion_point(else_block)
        else_value = self.visit(node.else_branch)
        self.backend.emit_jump(merge_block)
        else_end = self.backend.current_block()

        self.backend.set_insertion_point(merge_block)
        return self.backend.emit_phi([(then_value, then_end), (else_value, else_end)], name="iftmp")

    def visit_BoundedLoop(self, node: BoundedLoop) -> ir.Value:
        """
        Lower a for loop; its value is always 0.0.

        The induction variable is visible to body, step and end only.
        """
        start = self.visit(node.start)
        preheader = self.backend.current_block()

        loop_block = self.backend.open_block("loop")
        self.backend.emit_jump(loop_block)
        self.backend.set_insertion_point(loop_block)
        variable = self.backend.emit_phi([(start, preheader)], name=node.induction_var)

        with self._shadowed(node.induction_var, variable):
            self.visit(node.body)

            if node.step is not None:
                step = self.visit(node.step)
            else:
                step = self.backend.emit_constant(1.0)
            next_value = self.backend.emit_binary("+", variable, step, name="nextvar")

            end_cond = self.backend.emit_truth_test(self.visit(node.end), "loopcond")

        loop_end = self.backend.current_block()
        after_block = self.backend.open_block("afterloop")
        self.backend.emit_conditional_branch(end_cond, loop_block, after_block)
        self.backend.set_insertion_point(after_block)

        self.backend.add_incoming(variable, next_value, loop_end)

        return self.backend.emit_constant(0.0)

    @contextmanager
    def _shadowed(self, name: str, value: ir.Value) -> Iterator[None]:
        """Bind name to value for the duration of the block, then undo."""
        previous = self.locals.get(name, _UNBOUND)
        self.locals[name] = value
        try:
            yield
        finally:
            if previous is _UNBOUND:
                self.locals.pop(name, None)
            else:
                self.locals[name] = previous
