"""
clike End-to-End Test Suite
===========================

Compiles programs, JIT-executes them through the backend and checks the
results. Also covers compiler options and the backend wrapper.

Test Organization
-----------------
- TestExecution: Programs run through MCJIT
- TestExamples: The example programs shipped in examples/
- TestCompilerOptions: CompilerOptions and CompilerResult
- TestBackend: verify/optimize/JIT wrapper behaviour
"""

import pytest

from clike.compiler import Compiler, CompilerOptions, compile_source, compile_file
from clike.backend import (
    JITSession,
    run_function,
    verify_module,
    optimize_module,
    host_triple,
)
from clike.errors import (
    BackendError,
    SemanticError,
    UnexpectedTokenError,
)


# =============================================================================
# Execution Tests
# =============================================================================

class TestExecution:
    """Programs compiled and executed in-process."""

    def test_arithmetic_precedence(self, run):
        """1 + 2 * 3 evaluates to 7."""
        assert run("int main() { return 1 + 2 * 3; }") == 7

    def test_left_associativity(self, run):
        """10 - 3 - 2 evaluates to 5, 2 + 3 * 4 to 14."""
        assert run("int main() { return 10 - 3 - 2; }") == 5
        assert run("int main() { return 2 + 3 * 4; }") == 14

    def test_parentheses(self, run):
        """(2 + 3) * 4 evaluates to 20."""
        assert run("int main() { return (2 + 3) * 4; }") == 20

    def test_recursive_factorial(self, run):
        """factorial(5) is 120."""
        source = """
        int factorial(int n) {
            if (n <= 1) return 1;
            return n * factorial(n - 1);
        }
        """
        assert run(source, "factorial", 5) == 120

    def test_while_sum(self, run):
        """Summing 0..9 in a while loop gives 45."""
        source = """
        int main() {
            int i = 0;
            int sum = 0;
            while (i < 10) {
                sum = sum + i;
                i = i + 1;
            }
            return sum;
        }
        """
        assert run(source) == 45

    def test_uninitialized_is_zero(self, run):
        """'int x;' reads as 0."""
        assert run("int main() { int x; return x; }") == 0

    def test_shadowing_restores_outer(self, run):
        """The outer variable is visible again after the inner block."""
        source = "int main() { int x = 1; { int x = 2; x = 3; } return x; }"
        assert run(source) == 1

    def test_inner_initializer_reads_outer(self, run):
        """In 'int x = x + 1;' the right side is the outer x."""
        source = "int main() { int x = 5; { int x = x + 1; return x; } }"
        assert run(source) == 6

    def test_integer_division_and_remainder(self, run):
        """Signed division truncates toward zero."""
        assert run("int main() { return -7 / 2; }") == -3
        assert run("int main() { return -7 % 3; }") == -1
        assert run("int main() { return 17 % 5; }") == 2

    def test_logical_not(self, run):
        """! yields 1 for zero and 0 otherwise."""
        assert run("int main() { return !0; }") == 1
        assert run("int main() { return !5; }") == 0
        assert run("int main() { return !!7; }") == 1

    def test_comparisons_yield_zero_or_one(self, run):
        """Comparison results are the integers 0 and 1."""
        source = "int main() { return (3 < 5) + (5 < 3) + (2 == 2) + (2 != 2) + (4 >= 4); }"
        assert run(source) == 3

    def test_chained_assignment(self, run):
        """a = b = 4 assigns both."""
        assert run("int main() { int a; int b; a = b = 4; return a + b; }") == 8

    def test_if_else_branches(self, run):
        """Both arms of an if/else are reachable."""
        source = """
        int sign(int x) {
            if (x < 0) return -1;
            else if (x == 0) return 0;
            else return 1;
        }
        """
        assert run(source, "sign", -5) == -1
        assert run(source, "sign", 0) == 0
        assert run(source, "sign", 9) == 1

    def test_nested_loops(self, run):
        """Nested while loops with block-local variables."""
        source = """
        int main() {
            int total = 0;
            int i = 0;
            while (i < 4) {
                int j = 0;
                while (j < 3) {
                    total = total + 1;
                    j = j + 1;
                }
                i = i + 1;
            }
            return total;
        }
        """
        assert run(source) == 12

    def test_forward_call(self, run):
        """A function can call one defined after it."""
        source = "int main() { return twice(21); }\nint twice(int x) { return x * 2; }"
        assert run(source) == 42

    def test_double_arithmetic(self, run):
        """Mixed int/double arithmetic promotes to double."""
        source = "double average(int a, int b) { return (a + b) / 2.0; }"
        assert run(source, "average", 3, 4) == pytest.approx(3.5)

    def test_float_return(self, run):
        """float functions return single-precision values."""
        source = "float third() { return 1.0 / 3.0; }"
        assert run(source, "third") == pytest.approx(1 / 3, rel=1e-6)

    def test_nan_compares_unequal_to_itself(self, run):
        """NaN != NaN is 1 and NaN == NaN is 0."""
        source = """
        int main() {
            double z = 0.0;
            double n = z / z;
            return (n != n) * 10 + (n == n);
        }
        """
        assert run(source) == 10

    def test_nan_condition_is_true(self, run):
        """A NaN condition counts as nonzero."""
        source = """
        int main() {
            double z = 0.0;
            if (z / z) return 1;
            return 0;
        }
        """
        assert run(source) == 1

    def test_double_to_int_truncates(self, run):
        """Storing a double in an int truncates toward zero."""
        assert run("int main() { int x = 2.9; return x; }") == 2

    def test_void_function_called_for_effect(self, run):
        """A void function can be called as a statement."""
        source = "void nothing() { } int main() { nothing(); return 3; }"
        assert run(source) == 3

    def test_int_literal_limits(self, run):
        """The extreme int values can be written as literals."""
        assert run("int main() { return 2147483647; }") == 2147483647
        assert run("int main() { return -2147483648; }") == -2147483648

    def test_int_literal_out_of_range(self):
        """A literal too large for int is an error, not wrapped."""
        with pytest.raises(SemanticError) as exc_info:
            compile_source("int main() { return 4294967297; }", "test.c")
        assert "out of range" in str(exc_info.value)
        assert exc_info.value.location.column == 21
        with pytest.raises(SemanticError):
            compile_source("int main() { return 2147483648; }", "test.c")

    def test_undeclared_call_is_semantic_error(self):
        """Calling an undeclared function fails compilation."""
        with pytest.raises(SemanticError):
            compile_source("int main() { return nope(1); }", "test.c")


# =============================================================================
# Example Programs
# =============================================================================

class TestExamples:
    """The programs under examples/."""

    @pytest.mark.parametrize("name,expected", [
        ("factorial.c", 120),
        ("fibonacci.c", 55),
        ("control_flow.c", 4970),
        ("prototypes.c", 111),
    ])
    def test_example_main(self, examples_dir, name, expected):
        """Each example's main returns its documented value."""
        result = compile_file(str(examples_dir / name))
        assert result.success
        assert run_function(result.module, "main") == expected

    def test_examples_optimize(self, examples_dir):
        """Optimized examples still compute the same result."""
        options = CompilerOptions(optimize=True, opt_level=2)
        result = compile_file(str(examples_dir / "factorial.c"), options)
        assert result.optimized_ir
        assert run_function(result.optimized_ir, "main") == 120


# =============================================================================
# Compiler Options
# =============================================================================

class TestCompilerOptions:
    """CompilerOptions and CompilerResult."""

    def test_defaults(self):
        """Default options."""
        options = CompilerOptions()
        assert options.strict_lexing
        assert options.verify
        assert not options.optimize
        assert options.opt_level == 2
        assert options.module_name == "clike_module"
        assert options.target_triple is None

    def test_module_name(self):
        """The module name comes from the options."""
        result = compile_source(
            "int main() { return 0; }", "test.c", CompilerOptions(module_name="demo")
        )
        assert result.module.name == "demo"
        assert 'ModuleID = "demo"' in result.ir

    def test_optimization_removes_slots(self):
        """-O promotes stack slots to registers."""
        options = CompilerOptions(optimize=True)
        result = compile_source("int main() { int x = 3; return x + 4; }", "test.c", options)
        assert "alloca" in result.ir
        assert "alloca" not in result.optimized_ir
        assert result.output == result.optimized_ir

    def test_output_without_optimization(self):
        """Without -O the output is the generated IR."""
        result = compile_source("int main() { return 0; }", "test.c")
        assert result.optimized_ir == ""
        assert result.output == result.ir

    def test_native_triple(self):
        """'native' stamps the host triple on the module."""
        options = CompilerOptions(target_triple="native")
        result = compile_source("int main() { return 0; }", "test.c", options)
        assert result.module.triple == host_triple()

    def test_verify_disabled(self):
        """Verification can be turned off."""
        options = CompilerOptions(verify=False)
        result = compile_source("int main() { return 0; }", "test.c", options)
        assert result.success

    def test_lenient_lexing_still_rejects_used_character(self):
        """Lenient mode defers unknown characters to the parser."""
        options = CompilerOptions(strict_lexing=False)
        with pytest.raises(UnexpectedTokenError):
            compile_source("int main() { return 1 # 2; }", "test.c", options)

    def test_void_return_value_warning(self):
        """Returning a value from a void function is a warning."""
        result = compile_source(
            "void f() { return 1; } int main() { f(); return 0; }", "test.c"
        )
        assert result.success
        assert len(result.warnings) == 1
        assert "void function 'f'" in result.warnings[0]

    def test_compile_missing_file(self, tmp_path):
        """compile_file on a missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            Compiler().compile_file(str(tmp_path / "missing.c"))

    def test_compiler_reusable(self):
        """One Compiler instance compiles several sources independently."""
        compiler = Compiler()
        first = compiler.compile_source("int main() { return 1; }", "a.c")
        second = compiler.compile_source("int main() { return 2; }", "b.c")
        assert run_function(first.module, "main") == 1
        assert run_function(second.module, "main") == 2


# =============================================================================
# Backend
# =============================================================================

class TestBackend:
    """llvmlite.binding wrapper."""

    def test_verify_rejects_bad_ir(self):
        """Malformed IR text is a BackendError."""
        with pytest.raises(BackendError):
            verify_module("define i32 @f() {\nentry:\n  ret i64 0\n}\n")

    def test_optimize_level_range(self):
        """Levels outside 0-3 are rejected."""
        module = compile_source("int main() { return 0; }", "test.c").module
        with pytest.raises(BackendError):
            optimize_module(module, 5)

    def test_jit_session_calls_several_functions(self):
        """One session serves calls to every function of the module."""
        module = compile_source(
            "int sq(int x) { return x * x; }\nint cube(int x) { return x * sq(x); }",
            "test.c",
        ).module
        with JITSession(module) as jit:
            assert jit.call("sq", 7) == 49
            assert jit.call("cube", 3) == 27

    def test_jit_missing_function(self):
        """Calling an unknown function is a BackendError."""
        module = compile_source("int main() { return 0; }", "test.c").module
        with JITSession(module) as jit:
            with pytest.raises(BackendError):
                jit.call("nothere")

    def test_jit_wrong_argument_count(self):
        """The JIT checks the argument count."""
        module = compile_source("int id(int x) { return x; }", "test.c").module
        with pytest.raises(BackendError):
            run_function(module, "id")

    def test_jit_declaration_has_no_body(self):
        """Declared-only functions cannot be called."""
        module = compile_source("extern int ext(int x);", "test.c").module
        with JITSession(module) as jit:
            with pytest.raises(BackendError):
                jit.call("ext", 1)
