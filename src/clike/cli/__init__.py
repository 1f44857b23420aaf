"""
clike Command-Line Interface
============================

This package provides the command-line tool for the clike compiler:

- **clikec**: compiles a clike source file to textual LLVM IR

The tool is a Click application with built-in help and consistent exit
codes (see cli.errors.ExitCode).
"""

__all__ = ["clikec"]
