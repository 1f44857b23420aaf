"""
clike Compiler
==============

A compiler front end for a small C-like language that emits LLVM IR
through llvmlite.

This package provides:

- A lexer (tokenizer) producing tokens on demand
- A precedence-climbing parser producing an AST
- A code generator lowering the AST to function/basic-block IR
- A backend wrapper for verification, optimization and JIT execution

Pipeline
--------
    Source → Lexer → Parser → AST → Code Generator → LLVM IR → Backend

Usage
-----
>>> from clike import compile_source
>>> from clike.backend import run_function
>>> result = compile_source('''
... int factorial(int n) {
...     if (n <= 1) return 1;
...     return n * factorial(n - 1);
... }
... ''')
>>> run_function(result.module, "factorial", 5)
120

Language Subset
---------------
- Types: int (32-bit), float, double, void
- Statements: declarations, if/else, while, return, blocks, expressions
- Operators: + - * / % == != < > <= >=, unary - and !, assignment
- Functions: definitions, forward prototypes, extern declarations

Not supported:
- Pointers, arrays, structs, strings
- for, break, continue, logical && and ||
- Global variables
"""

# =============================================================================
# Version Information
# =============================================================================

__version__ = "1.0.0"

# =============================================================================
# Public API Imports
# =============================================================================

from clike.compiler import (
    Compiler,
    CompilerOptions,
    CompilerResult,
    compile_source,
    compile_file,
)
from clike.lexer import Lexer, Token, TokenType
from clike.parser import Parser, parse_source
from clike.codegen import CodeGenerator, generate_module
from clike.scope import ScopeStack, Symbol
from clike.errors import (
    ClikeError,
    LexError,
    ParseError,
    SemanticError,
    EmissionError,
    BackendError,
    CompilationError,
)

__all__ = [
    # Version
    "__version__",
    # Main interface
    "Compiler",
    "CompilerOptions",
    "CompilerResult",
    "compile_source",
    "compile_file",
    # Components
    "Lexer",
    "Token",
    "TokenType",
    "Parser",
    "parse_source",
    "CodeGenerator",
    "generate_module",
    "ScopeStack",
    "Symbol",
    # Errors
    "ClikeError",
    "LexError",
    "ParseError",
    "SemanticError",
    "EmissionError",
    "BackendError",
    "CompilationError",
]
