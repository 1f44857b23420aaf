"""
clike Compiler Main Module
==========================

This module provides the main compiler interface for clike.
It orchestrates the complete compilation process:

    Source → Lex → Parse → Generate → Verify → (Optimize) → LLVM IR

Usage
-----
Command line:
    $ clikec factorial.c -o factorial.ll

Programmatic:
    >>> from clike import compile_source
    >>> result = compile_source('int main() { return 1 + 2 * 3; }')
    >>> print(result.ir)

Compilation Pipeline
--------------------
1. **Lexical Analysis**: The parser pulls tokens from the lexer on demand
2. **Parsing**: Build the Abstract Syntax Tree (AST)
3. **Code Generation**: Lower the AST to an llvmlite IR module
4. **Verification**: Run LLVM's verifier over the module text
5. **Optimization** (optional): Run the -O pipeline over the module text

Error Handling
--------------
The parser and the code generator each collect errors per function, so
one compilation reports every independent problem it found. A single
error propagates as its own type; several are raised together as a
CompilationError.
"""

import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field

from llvmlite import ir

from clike import backend
from clike.lexer import Lexer
from clike.parser import Parser
from clike.codegen import CodeGenerator
from clike.ast import ProgramNode
from clike.errors import ClikeError

logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        strict_lexing: Reject unknown characters in the lexer. When False
                       they become UNKNOWN tokens with a warning, and the
                       parser reports them only where they are used.
        verify: Run LLVM's verifier over the generated module
        optimize: Run the optimization pipeline and store its output in
                  CompilerResult.optimized_ir
        opt_level: Optimization level (0-3) used when optimize is True
        module_name: Name of the generated IR module
        target_triple: Triple stamped on the module. None leaves
                       llvmlite's default; "native" means the host triple.
    """
    strict_lexing: bool = True
    verify: bool = True
    optimize: bool = False
    opt_level: int = 2
    module_name: str = "clike_module"
    target_triple: Optional[str] = None


@dataclass
class CompilerResult:
    """
    Result of a compilation.

    Attributes:
        filename: Source filename
        success: True if compilation succeeded
        ast: Abstract syntax tree (if parsing succeeded)
        module: Generated llvmlite IR module
        ir: Textual IR of the module
        optimized_ir: Optimized IR text (only when optimization was requested)
        token_count: Number of tokens lexed
        errors: List of error messages
        warnings: List of warning messages
    """
    filename: str = ""
    success: bool = False
    ast: Optional[ProgramNode] = None
    module: Optional[ir.Module] = None
    ir: str = ""
    optimized_ir: str = ""
    token_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def output(self) -> str:
        """The IR to emit: optimized when available, otherwise as generated."""
        return self.optimized_ir or self.ir


class Compiler:
    """
    clike compiler.

    This class provides the main interface for compiling clike source
    code to LLVM IR.

    Example:
        compiler = Compiler()
        result = compiler.compile_file("factorial.c")
        print(result.ir)

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        """
        Initialize the compiler.

        Args:
            options: Compiler configuration (uses defaults if None)
        """
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile clike source code to LLVM IR.

        Args:
            source: clike source code string
            filename: Source filename for error messages

        Returns:
            CompilerResult containing the module, IR text and diagnostics

        Raises:
            ClikeError: If compilation fails
        """
        result = CompilerResult(filename=filename)

        try:
            # Stages 1 and 2: lexing and parsing
            lexer = Lexer(source, filename, strict=self.options.strict_lexing)
            result.ast = Parser(lexer).parse_program()
            result.token_count = lexer.token_count
            logger.debug(f"{filename}: {result.token_count} tokens, "
                         f"{len(result.ast.functions)} top-level declarations")

            # Stage 3: code generation
            generator = CodeGenerator(self.options.module_name, source=source)
            result.module = generator.generate(result.ast)
            result.warnings.extend(generator.warnings)
            self._apply_target(result.module)
            result.ir = str(result.module)

            # Stages 4 and 5: backend
            if self.options.verify:
                backend.verify_module(result.module)
            if self.options.optimize:
                result.optimized_ir = backend.optimize_module(
                    result.module, self.options.opt_level
                )

            result.success = True

        except ClikeError as e:
            result.errors.append(str(e))
            logger.debug(f"{filename}: compilation failed ({e.kind})")
            raise

        return result

    def compile_file(self, filepath: str) -> CompilerResult:
        """
        Compile a clike source file to LLVM IR.

        Args:
            filepath: Path to the source file

        Returns:
            CompilerResult containing the module, IR text and diagnostics

        Raises:
            ClikeError: If compilation fails
            FileNotFoundError: If source file not found
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        source = path.read_text(encoding="utf-8")
        return self.compile_source(source, str(filepath))

    def _apply_target(self, module: ir.Module) -> None:
        triple = self.options.target_triple
        if triple is None:
            return
        module.triple = backend.host_triple() if triple == "native" else triple


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(
    source: str,
    filename: str = "<input>",
    options: Optional[CompilerOptions] = None,
) -> CompilerResult:
    """
    Compile clike source code to LLVM IR.

    This is the primary high-level interface for the compiler.

    Raises:
        ClikeError: If compilation fails

    Example:
        >>> result = compile_source('''
        ... int square(int x) { return x * x; }
        ... ''')
        >>> print(result.ir)
    """
    return Compiler(options).compile_source(source, filename)


def compile_file(
    filepath: str,
    options: Optional[CompilerOptions] = None,
) -> CompilerResult:
    """
    Compile a clike source file to LLVM IR.

    Raises:
        ClikeError: If compilation fails
        FileNotFoundError: If source file not found
    """
    return Compiler(options).compile_file(filepath)
