"""
AST Test Suite
==============

Tests for the AST data model: structural equality, visitor dispatch and
the pretty printer.
"""

import pytest

from kaleido.errors import SourceLocation
from kaleido.frontend.ast import (
    ANONYMOUS_FUNCTION_NAME,
    ASTPrinter,
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


def build_sum():
    """Fresh tree for 'a + b * 2'."""
    return BinaryOp(
        "+",
        VariableRef("a"),
        BinaryOp("*", VariableRef("b"), NumberLiteral(2.0)),
    )


# =============================================================================
# Structural Equality
# =============================================================================

class TestStructuralEquality:
    """Two independently built trees are equal iff tag and fields match."""

    def test_identical_trees_equal(self):
        assert build_sum() == build_sum()
        assert build_sum() is not build_sum()

    def test_different_operator(self):
        other = BinaryOp(
            "-",
            VariableRef("a"),
            BinaryOp("*", VariableRef("b"), NumberLiteral(2.0)),
        )
        assert build_sum() != other

    def test_different_operand(self):
        other = BinaryOp(
            "+",
            VariableRef("a"),
            BinaryOp("*", VariableRef("c"), NumberLiteral(2.0)),
        )
        assert build_sum() != other

    def test_different_variant_types(self):
        assert NumberLiteral(1.0) != VariableRef("1.0")
        assert VariableRef("f") != Call("f")
        assert Prototype("f", ()) != Call("f", ())

    def test_variant_never_equals_non_node(self):
        assert NumberLiteral(1.0) != 1.0

    def test_location_does_not_affect_equality(self):
        located = VariableRef("x", location=SourceLocation("a.ks", 3, 7))
        assert located == VariableRef("x")

    def test_location_not_in_repr(self):
        located = NumberLiteral(1.0, location=SourceLocation("a.ks", 1, 1))
        assert repr(located) == "NumberLiteral(value=1.0)"

    def test_call_args_order_matters(self):
        assert Call("f", (VariableRef("a"), VariableRef("b"))) != Call(
            "f", (VariableRef("b"), VariableRef("a"))
        )

    def test_loop_without_step_differs_from_loop_with_step(self):
        body = NumberLiteral(0.0)
        plain = BoundedLoop("i", NumberLiteral(1.0), VariableRef("n"), None, body)
        stepped = BoundedLoop("i", NumberLiteral(1.0), VariableRef("n"), NumberLiteral(1.0), body)
        assert plain != stepped

    def test_functions_compare_by_prototype_and_body(self):
        f1 = Function(Prototype("f", ("x",)), VariableRef("x"))
        f2 = Function(Prototype("f", ("x",)), VariableRef("x"))
        f3 = Function(Prototype("f", ("y",)), VariableRef("x"))
        assert f1 == f2
        assert f1 != f3

    def test_nodes_are_hashable(self):
        assert len({build_sum(), build_sum()}) == 1

    def test_nodes_are_immutable(self):
        node = VariableRef("x")
        with pytest.raises(AttributeError):
            node.name = "y"


# =============================================================================
# Prototype Helpers
# =============================================================================

class TestPrototype:

    def test_arity(self):
        assert Prototype("f", ("a", "b", "c")).arity == 3
        assert Prototype("g").arity == 0

    def test_anonymous(self):
        assert Prototype(ANONYMOUS_FUNCTION_NAME).is_anonymous
        assert not Prototype("main").is_anonymous


# =============================================================================
# Visitor Dispatch
# =============================================================================

class CountingVisitor(ASTVisitor):
    """Counts nodes of each expression variant it reaches."""

    def __init__(self):
        self.seen: list[str] = []

    def visit_NumberLiteral(self, node):
        self.seen.append("number")
        return node.value

    def visit_VariableRef(self, node):
        self.seen.append("variable")
        return 0.0

    def visit_BinaryOp(self, node):
        self.seen.append("binary")
        return self.visit(node.lhs) + self.visit(node.rhs)


class TestVisitor:
    """accept() double dispatch."""

    def test_accept_dispatches_by_class(self):
        visitor = CountingVisitor()
        assert NumberLiteral(4.0).accept(visitor) == 4.0
        assert visitor.seen == ["number"]

    def test_visit_walks_children_in_order(self):
        visitor = CountingVisitor()
        visitor.visit(build_sum())
        assert visitor.seen == ["binary", "variable", "binary", "variable", "number"]

    def test_unhandled_variant_raises(self):
        with pytest.raises(NotImplementedError, match="Call"):
            CountingVisitor().visit(Call("f"))


# =============================================================================
# Pretty Printer
# =============================================================================

class TestASTPrinter:

    def test_print_binary(self):
        output = ASTPrinter().print(build_sum())
        assert output.splitlines() == [
            "BinaryOp: +",
            "  Variable: a",
            "  BinaryOp: *",
            "    Variable: b",
            "    Number: 2",
        ]

    def test_print_function(self):
        fn = Function(Prototype("id", ("x",)), VariableRef("x"))
        assert ASTPrinter().print(fn) == "Function: id(x)\n  Variable: x"

    def test_print_extern(self):
        assert ASTPrinter().print(Prototype("atan2", ("y", "x"))) == "Extern: atan2(y x)"

    def test_print_conditional(self):
        node = Conditional(VariableRef("c"), NumberLiteral(1.0), NumberLiteral(0.5))
        assert ASTPrinter().print(node).splitlines() == [
            "If",
            "  Cond:",
            "    Variable: c",
            "  Then:",
            "    Number: 1",
            "  Else:",
            "    Number: 0.5",
        ]

    def test_print_loop_with_step(self):
        node = BoundedLoop("i", NumberLiteral(0.0), VariableRef("n"), NumberLiteral(2.0), Call("f"))
        lines = ASTPrinter().print(node).splitlines()
        assert lines[0] == "For: i"
        assert "  Step:" in lines
        assert lines[-1] == "    Call: f"

    def test_printer_is_reusable(self):
        printer = ASTPrinter()
        printer.print(build_sum())
        assert printer.print(VariableRef("z")) == "Variable: z"
