"""
Kaleidoscope Front End
======================

Turns Kaleidoscope source into SSA routines:

    Source → Lexer → Parser → AST → CodeGenerator → LLVMBackend

The parser produces one top-level form per call and the code generator
lowers each form as soon as it is parsed. Errors in one form are reported
and never stop the forms after it.

Usage
-----
>>> from kaleido.frontend import compile_source
>>> compile_source("extern printd(x)\\nprintd(42)").output
'42.000000\\n'
"""

from kaleido.frontend.ast import (
    ANONYMOUS_FUNCTION_NAME,
    ASTNode,
    ASTPrinter,
    ASTVisitor,
    BinaryOp,
    BoundedLoop,
    Call,
    Conditional,
    Expression,
    Function,
    NumberLiteral,
    Prototype,
    VariableRef,
)
from kaleido.frontend.codegen import CodeGenerator
from kaleido.frontend.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    Evaluation,
    compile_file,
    compile_source,
)
from kaleido.frontend.errors import (
    ArgumentCountError,
    CodegenError,
    CompilationFailedError,
    CompileError,
    DiagnosticCollector,
    DuplicateParameterError,
    MissingTokenError,
    ParseError,
    RedefinitionError,
    SignatureMismatchError,
    UndefinedFunctionError,
    UndefinedVariableError,
    UnexpectedTokenError,
    UnsupportedOperatorError,
    VerificationError,
)
from kaleido.frontend.lexer import Lexer, Token, TokenKind, TokenStream, tokenize
from kaleido.frontend.parser import BINOP_PRECEDENCE, Parser, parse_source

__all__ = [
    # Main API
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "Evaluation",
    "compile_source",
    "compile_file",
    # Errors
    "CompileError",
    "CompilationFailedError",
    "ParseError",
    "UnexpectedTokenError",
    "MissingTokenError",
    "DuplicateParameterError",
    "CodegenError",
    "UndefinedVariableError",
    "UndefinedFunctionError",
    "ArgumentCountError",
    "UnsupportedOperatorError",
    "RedefinitionError",
    "SignatureMismatchError",
    "VerificationError",
    "DiagnosticCollector",
    # Lexer
    "Lexer",
    "Token",
    "TokenKind",
    "TokenStream",
    "tokenize",
    # Parser
    "Parser",
    "BINOP_PRECEDENCE",
    "parse_source",
    # Code Generator
    "CodeGenerator",
    # AST Nodes
    "ANONYMOUS_FUNCTION_NAME",
    "ASTNode",
    "ASTVisitor",
    "ASTPrinter",
    "Expression",
    "NumberLiteral",
    "VariableRef",
    "BinaryOp",
    "Conditional",
    "BoundedLoop",
    "Call",
    "Prototype",
    "Function",
]
