"""
Kaleidoscope Abstract Syntax Tree (AST) Definitions
===================================================

This module defines the AST node types produced by the parser and
consumed by the code generator.

Node Hierarchy
--------------
ASTNode (base)
├── Expression
│   ├── NumberLiteral - numeric constant
│   ├── VariableRef - reference to a parameter or loop variable
│   ├── BinaryOp - binary operator application
│   ├── Conditional - if/then/else expression
│   ├── BoundedLoop - for/in loop expression
│   └── Call - function call
├── Prototype - function name and parameter names
└── Function - prototype plus body expression

Design Notes
------------
- All nodes are frozen dataclasses, immutable after construction
- Children are exclusively owned; the tree never shares or cycles
- Equality is the dataclass comparison: same class first, then fields.
  Nodes of different classes never compare equal
- The source location is keyword-only and excluded from equality and
  repr, so hand-built trees equal parsed ones
- ``accept(visitor)`` dispatches to ``visitor.visit_<ClassName>``
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from kaleido.errors import SourceLocation


# Name given to the prototype wrapping a top-level expression
ANONYMOUS_FUNCTION_NAME = "__anon_expr"


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass(frozen=True)
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node starts (optional)
    """
    location: Optional[SourceLocation] = field(
        default=None, compare=False, repr=False, kw_only=True
    )

    def accept(self, visitor: "ASTVisitor") -> Any:
        """Dispatch to the visitor method named after this node's class."""
        method = getattr(visitor, f"visit_{type(self).__name__}")
        return method(self)


@dataclass(frozen=True)
class Expression(ASTNode):
    """Base class for all nodes that produce a value."""
    pass


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass(frozen=True)
class NumberLiteral(Expression):
    """Numeric literal such as ``1.0``."""
    value: float


@dataclass(frozen=True)
class VariableRef(Expression):
    """Reference to a variable by name."""
    name: str


@dataclass(frozen=True)
class BinaryOp(Expression):
    """
    Binary operator application (``lhs op rhs``).

    The operator is a single character from the parser's precedence table.
    """
    operator: str
    lhs: Expression
    rhs: Expression


@dataclass(frozen=True)
class Conditional(Expression):
    """``if condition then then_branch else else_branch``."""
    condition: Expression
    then_branch: Expression
    else_branch: Expression


@dataclass(frozen=True)
class BoundedLoop(Expression):
    """
    ``for induction_var = start, end [, step] in body``.

    The loop runs the body, then advances the induction variable by step
    (1.0 when omitted), and repeats while end is nonzero. Its value is 0.0.
    """
    induction_var: str
    start: Expression
    end: Expression
    step: Optional[Expression]
    body: Expression


@dataclass(frozen=True)
class Call(Expression):
    """Function call with positional arguments."""
    callee: str
    args: tuple[Expression, ...] = ()


# =============================================================================
# Declaration Nodes
# =============================================================================

@dataclass(frozen=True)
class Prototype(ASTNode):
    """
    Function signature: a name and unique parameter names.

    Every parameter and the return value are doubles, so the parameter
    count is the whole signature.
    """
    name: str
    params: tuple[str, ...] = ()

    @property
    def arity(self) -> int:
        """Number of parameters."""
        return len(self.params)

    @property
    def is_anonymous(self) -> bool:
        """True for the wrapper of a top-level expression."""
        return self.name == ANONYMOUS_FUNCTION_NAME


@dataclass(frozen=True)
class Function(ASTNode):
    """Function definition: prototype plus body expression."""
    proto: Prototype
    body: Expression


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Subclasses override the visit_* methods for the node types they
    handle. Every variant has a method here, so forgetting one raises
    NotImplementedError naming it rather than an AttributeError.

    Usage:
        class MyVisitor(ASTVisitor):
            def visit_NumberLiteral(self, node):
                return node.value

        MyVisitor().visit(NumberLiteral(1.0))
    """

    def visit(self, node: ASTNode) -> Any:
        """Visit a node by letting it dispatch back to this visitor."""
        return node.accept(self)

    def generic_visit(self, node: ASTNode) -> Any:
        """Fallback for variants the subclass does not handle."""
        raise NotImplementedError(
            f"{type(self).__name__} does not handle {type(node).__name__}"
        )

    def visit_NumberLiteral(self, node: NumberLiteral): return self.generic_visit(node)
    def visit_VariableRef(self, node: VariableRef): return self.generic_visit(node)
    def visit_BinaryOp(self, node: BinaryOp): return self.generic_visit(node)
    def visit_Conditional(self, node: Conditional): return self.generic_visit(node)
    def visit_BoundedLoop(self, node: BoundedLoop): return self.generic_visit(node)
    def visit_Call(self, node: Call): return self.generic_visit(node)
    def visit_Prototype(self, node: Prototype): return self.generic_visit(node)
    def visit_Function(self, node: Function): return self.generic_visit(node)


# =============================================================================
# AST Pretty Printer
# =============================================================================

class ASTPrinter(ASTVisitor):
    """
    Pretty printer for AST debugging.

    Produces an indented, one-node-per-line rendering of a tree.

    Usage:
        printer = ASTPrinter()
        output = printer.print(ast)
        print(output)
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: ASTNode) -> str:
        """Print the AST and return as string."""
        self.output = []
        self.indent_level = 0
        self.visit(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        """Emit a line with current indentation."""
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _indent(self) -> None:
        """Increase indentation level."""
        self.indent_level += 1

    def _dedent(self) -> None:
        """Decrease indentation level."""
        self.indent_level = max(0, self.indent_level - 1)

    def _child(self, label: str, node: ASTNode) -> None:
        """Emit a labelled child subtree one level deeper."""
        self._emit(f"{label}:")
        self._indent()
        self.visit(node)
        self._dedent()

    def visit_NumberLiteral(self, node: NumberLiteral):
        self._emit(f"Number: {node.value:g}")

    def visit_VariableRef(self, node: VariableRef):
        self._emit(f"Variable: {node.name}")

    def visit_BinaryOp(self, node: BinaryOp):
        self._emit(f"BinaryOp: {node.operator}")
        self._indent()
        self.visit(node.lhs)
        self.visit(node.rhs)
        self._dedent()

    def visit_Conditional(self, node: Conditional):
        self._emit("If")
        self._indent()
        self._child("Cond", node.condition)
        self._child("Then", node.then_branch)
        self._child("Else", node.else_branch)
        self._dedent()

    def visit_BoundedLoop(self, node: BoundedLoop):
        self._emit(f"For: {node.induction_var}")
        self._indent()
        self._child("Start", node.start)
        self._child("End", node.end)
        if node.step is not None:
            self._child("Step", node.step)
        self._child("Body", node.body)
        self._dedent()

    def visit_Call(self, node: Call):
        self._emit(f"Call: {node.callee}")
        self._indent()
        for arg in node.args:
            self.visit(arg)
        self._dedent()

    def visit_Prototype(self, node: Prototype):
        self._emit(f"Extern: {node.name}({' '.join(node.params)})")

    def visit_Function(self, node: Function):
        self._emit(f"Function: {node.proto.name}({' '.join(node.proto.params)})")
        self._indent()
        self.visit(node.body)
        self._dedent()
