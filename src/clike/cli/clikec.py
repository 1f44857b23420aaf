"""
clikec - clike Compiler Command-Line Interface
==============================================

This module implements the command-line interface for the clike compiler.
It compiles one source file to textual LLVM IR.

Usage Examples
--------------
Print IR to stdout:
    $ clikec factorial.c

With output file:
    $ clikec factorial.c -o factorial.ll

Optimized IR:
    $ clikec -O --opt-level 3 factorial.c

Dump the AST instead of IR:
    $ clikec --ast factorial.c

Verbose mode:
    $ clikec -v factorial.c
"""

import logging
from pathlib import Path
from typing import Optional

import click

from clike import __version__
from clike.compiler import Compiler, CompilerOptions
from clike.parser import parse_source
from clike.cli.errors import handle_cli_exception


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output IR file (default: stdout)",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Parse only and print the AST instead of IR",
)
@click.option(
    "-O", "--optimize",
    is_flag=True,
    help="Run the LLVM optimization pipeline on the IR",
)
@click.option(
    "--opt-level",
    type=click.IntRange(0, 3),
    default=2,
    show_default=True,
    help="Optimization level used with -O",
)
@click.option(
    "--strict/--lenient",
    default=True,
    help="Reject unknown characters in the lexer (default) or leave them to the parser",
)
@click.option(
    "--verify/--no-verify",
    default=True,
    help="Run the LLVM verifier on the generated module",
)
@click.option(
    "--triple",
    default=None,
    help="Target triple to stamp on the module ('native' for the host)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="clikec")
def main(
    input_file: Path,
    output: Optional[Path],
    ast: bool,
    optimize: bool,
    opt_level: int,
    strict: bool,
    verify: bool,
    triple: Optional[str],
    verbose: bool,
) -> None:
    """
    Compile a clike source file to LLVM IR.

    INPUT_FILE is the source file (.c) to compile.

    \b
    Examples:
        clikec fact.c                 # IR to stdout
        clikec fact.c -o fact.ll      # IR to a file
        clikec -O fact.c              # Optimized IR
        clikec --ast fact.c           # Print the AST

    \b
    Supported language features:
        - int, float, double and void types
        - Functions, prototypes and extern declarations
        - if/else, while, return, nested blocks
        - Arithmetic, comparison, unary - and !
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    options = CompilerOptions(
        strict_lexing=strict,
        verify=verify,
        optimize=optimize,
        opt_level=opt_level,
        module_name=input_file.stem,
        target_triple=triple,
    )

    try:
        if verbose:
            click.echo(f"Compiling {input_file}...", err=True)

        try:
            source = input_file.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise click.BadParameter(
                f"{input_file} is not UTF-8 text ({e.reason} at byte {e.start})",
                param_hint="INPUT_FILE",
            ) from e

        if ast:
            # The tree is printed as parsed; no IR is generated
            from clike.ast import ASTPrinter
            program = parse_source(source, str(input_file), strict=strict)
            if verbose:
                click.echo(f"Parsed: {len(program.functions)} declarations", err=True)
            text = ASTPrinter().print(program)
        else:
            result = Compiler(options).compile_source(source, str(input_file))
            if verbose:
                click.echo(f"Tokenized: {result.token_count} tokens", err=True)
                click.echo(f"Parsed: {len(result.ast.functions)} declarations", err=True)
                if optimize:
                    click.echo(f"Optimized at -O{opt_level}", err=True)
            text = result.output

        # Only written once compilation has fully succeeded
        if output is None:
            click.echo(text, nl=not text.endswith("\n"))
        else:
            output.write_text(text, encoding="utf-8")
            click.echo(f"Compiled {input_file} -> {output}")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose)


if __name__ == "__main__":
    main()
