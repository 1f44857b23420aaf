"""
Shared fixtures for the clike test suite.
"""

from pathlib import Path

import pytest

from clike.compiler import compile_source
from clike.backend import run_function


EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


@pytest.fixture
def examples_dir() -> Path:
    """Directory holding the example programs."""
    return EXAMPLES_DIR


@pytest.fixture
def compile_ir():
    """Compile source and return the textual IR."""
    def _compile(source: str) -> str:
        return compile_source(source, "test.c").ir
    return _compile


@pytest.fixture
def run():
    """Compile source, JIT it and call one function (main by default)."""
    def _run(source: str, name: str = "main", *args):
        result = compile_source(source, "test.c")
        return run_function(result.module, name, *args)
    return _run
