"""
clike Code Generator Test Suite
===============================

Tests for IR emission: block structure, entry-block slots, scoping,
call checking, numeric conversions and rollback of failed functions.
"""

from dataclasses import dataclass

import pytest
from llvmlite import ir

from clike.parser import parse_source
from clike.codegen import CodeGenerator, generate_module
from clike.compiler import compile_source
from clike.backend import verify_module
from clike.ast import (
    FunctionNode,
    BlockStatement,
    ReturnStatement,
    Statement,
    NumberLiteral,
)
from clike.errors import (
    SourceLocation,
    SemanticError,
    UndeclaredIdentifierError,
    ArgumentCountError,
    DuplicateDeclarationError,
    VoidValueError,
    EmissionError,
    CompilationError,
)


LOC = SourceLocation("test.c", 1, 1)


def generate(source: str) -> ir.Module:
    return generate_module(parse_source(source, "test.c"), source=source)


def block_names(module: ir.Module, function: str) -> list[str]:
    return [b.name for b in module.globals[function].blocks]


def assert_well_formed(module: ir.Module) -> None:
    """Every block of every defined function ends in exactly one terminator."""
    for function in module.functions:
        for block in function.blocks:
            terminators = [i for i in block.instructions if isinstance(i, ir.Terminator)]
            assert len(terminators) == 1, f"{function.name}/{block.name}"
            assert block.instructions[-1] is terminators[0]


class TestFunctions:
    """Function definitions, declarations and the declaration pre-pass."""

    def test_simple_function(self):
        """A function with parameters becomes a define with named arguments."""
        module = generate("int add(int a, int b) { return a + b; }")
        text = str(module)
        assert 'define i32 @"add"(i32 %"a", i32 %"b")' in text
        assert "add i32" in text
        assert_well_formed(module)

    def test_extern_is_declared(self):
        """An extern becomes a declare."""
        module = generate("extern double cos(double x);")
        assert 'declare double @"cos"(double %"x")' in str(module)

    def test_call_before_definition(self):
        """Functions may call functions defined later in the file."""
        module = generate(
            "int main() { return helper(2); }\n"
            "int helper(int x) { return x * 3; }"
        )
        assert 'call i32 @"helper"(i32 2)' in str(module)
        verify_module(module)

    def test_prototype_then_definition(self):
        """A prototype and its matching definition give one function."""
        module = generate("int f(int);\nint f(int n) { return n; }")
        assert len(module.functions) == 1
        assert not module.globals["f"].is_declaration

    def test_default_return_synthesized(self):
        """Falling off the end returns zero (or void)."""
        module = generate("int f() { } void g() { }")
        text = str(module)
        assert "ret i32 0" in text
        assert "ret void" in text

    def test_redefinition(self):
        """Defining a function twice is an error."""
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            generate("int f() { return 1; }\nint f() { return 2; }")
        assert "redefinition" in str(exc_info.value)

    def test_conflicting_prototype(self):
        """A definition must match its prototype's signature."""
        with pytest.raises(DuplicateDeclarationError) as exc_info:
            generate("int f(int);\ndouble f(int x) { return x; }")
        assert "conflicting" in str(exc_info.value)

    def test_void_parameter(self):
        """A named void parameter is rejected."""
        with pytest.raises(SemanticError):
            generate("int f(void x) { return 0; }")

    def test_determinism(self):
        """The same source always produces byte-identical IR."""
        source = (
            "int fact(int n) { if (n < 2) return 1; return n * fact(n - 1); }\n"
            "int main() { int i = 0; while (i < 3) { i = i + 1; } return fact(i); }"
        )
        assert str(generate(source)) == str(generate(source))


class TestBlocks:
    """Basic-block structure of control flow."""

    def test_if_else_blocks(self):
        """if/else creates then, else and ifcont blocks."""
        module = generate(
            "int f(int x) { int r; if (x) r = 1; else r = 2; return r; }"
        )
        assert block_names(module, "f") == ["entry", "then", "else", "ifcont"]
        assert_well_formed(module)

    def test_if_without_else_blocks(self):
        """Without else the false edge goes straight to ifcont."""
        module = generate("int f(int x) { if (x) x = 1; return x; }")
        assert block_names(module, "f") == ["entry", "then", "ifcont"]

    def test_while_blocks(self):
        """while creates whilecond, whileloop and afterloop blocks."""
        module = generate("int f(int n) { while (n > 0) n = n - 1; return n; }")
        assert block_names(module, "f") == ["entry", "whilecond", "whileloop", "afterloop"]
        assert_well_formed(module)

    def test_return_in_both_arms(self):
        """No branch is added after a return inside an arm."""
        module = generate("int f(int x) { if (x) return 1; else return 2; }")
        assert_well_formed(module)
        then_block = module.globals["f"].blocks[1]
        assert len(then_block.instructions) == 1
        assert isinstance(then_block.instructions[0], ir.Ret)
        verify_module(module)

    def test_code_after_return(self):
        """Statements after a return go to an unreachable block."""
        module = generate("int f() { return 1; int y = 2; return y; }")
        assert "dead" in block_names(module, "f")
        assert_well_formed(module)
        verify_module(module)

    def test_nested_control_flow_is_well_formed(self):
        """Deeply nested if/while still yields one terminator per block."""
        module = generate(
            "int f(int n) {\n"
            "  int s = 0;\n"
            "  while (n > 0) {\n"
            "    if (n % 2 == 0) { if (n > 10) return s; s = s + n; }\n"
            "    else { while (0) ; }\n"
            "    n = n - 1;\n"
            "  }\n"
            "  return s;\n"
            "}"
        )
        assert_well_formed(module)
        verify_module(module)

    def test_condition_compares_against_zero(self):
        """Branch conditions are integer values compared with zero."""
        text = str(generate("int f(int x) { if (x) return 1; return 0; }"))
        assert "icmp ne i32" in text

    def test_comparison_widened_to_int(self):
        """Comparison results are zero-extended to i32."""
        text = str(generate("int f(int a, int b) { return a < b; }"))
        assert "icmp slt i32" in text
        assert "zext i1" in text


class TestSlots:
    """Locals live in entry-block stack slots."""

    def test_allocas_in_entry_block(self):
        """Every alloca is in the entry block, even for nested declarations."""
        module = generate(
            "int f(int n) { while (n > 0) { int t = n; n = n - 1; } "
            "if (n) { int u = 1; return u; } return 0; }"
        )
        function = module.globals["f"]
        for block in function.blocks[1:]:
            assert not any(isinstance(i, ir.AllocaInstr) for i in block.instructions)
        allocas = [i for i in function.blocks[0].instructions if isinstance(i, ir.AllocaInstr)]
        assert len(allocas) == 3

    def test_uninitialized_local_stores_zero(self):
        """'int x;' stores a zero."""
        text = str(generate("int f() { int x; return x; }"))
        assert "store i32 0" in text

    def test_parameter_spilled(self):
        """Arguments are stored into slots."""
        text = str(generate("int f(int a) { return a; }"))
        assert 'alloca i32' in text
        assert 'store i32 %"a"' in text


class TestScoping:
    """Name resolution and declaration rules."""

    def test_shadowing_in_nested_block(self):
        """An inner declaration may reuse an outer name."""
        module = generate("int f() { int x = 1; { int x = 2; x = 3; } return x; }")
        assert_well_formed(module)

    def test_duplicate_in_same_block(self):
        """Redeclaring in the same block is an error."""
        with pytest.raises(DuplicateDeclarationError):
            generate("int f() { int x = 1; int x = 2; return x; }")

    def test_parameter_redeclared_in_body(self):
        """The body's top level shares the parameters' scope."""
        with pytest.raises(DuplicateDeclarationError):
            generate("int f(int a) { int a = 2; return a; }")

    def test_inner_name_not_visible_after_block(self):
        """A name declared in a block is gone after the block."""
        with pytest.raises(UndeclaredIdentifierError):
            generate("int f() { { int t = 1; } return t; }")

    def test_undeclared_variable_hint(self):
        """Undeclared names suggest close matches."""
        with pytest.raises(UndeclaredIdentifierError) as exc_info:
            generate("int f() { int count = 1; return cont; }")
        message = str(exc_info.value)
        assert "undeclared variable 'cont'" in message
        assert "did you mean 'count'?" in message

    def test_assignment_to_undeclared(self):
        """Assigning an undeclared name is an error."""
        with pytest.raises(UndeclaredIdentifierError):
            generate("int f() { y = 1; return 0; }")


class TestCalls:
    """Call checking."""

    def test_undeclared_function_emits_no_call(self):
        """Calling an unknown function fails before any call IR exists."""
        source = "int main() { return missing(1); }"
        generator = CodeGenerator(source=source)
        with pytest.raises(SemanticError) as exc_info:
            generator.generate(parse_source(source, "test.c"))
        assert isinstance(exc_info.value, UndeclaredIdentifierError)
        assert "call" not in str(generator.module)

    def test_wrong_argument_count(self):
        """Arity is checked before arguments are lowered."""
        source = "int f(int a) { return a; }\nint main() { return f(1, g()); }"
        generator = CodeGenerator(source=source)
        with pytest.raises(ArgumentCountError) as exc_info:
            generator.generate(parse_source(source, "test.c"))
        assert "expects 1" in str(exc_info.value)
        assert "call" not in str(generator.module)

    def test_calling_a_variable(self):
        """Only functions can be called."""
        with pytest.raises(UndeclaredIdentifierError):
            generate("int main() { int f = 1; return f(); }")

    def test_void_call_as_statement(self):
        """A void call is fine as a statement."""
        module = generate("void g() { } int main() { g(); return 0; }")
        assert 'call void @"g"()' in str(module)

    def test_void_value_in_expression(self):
        """A void call cannot be used as a value."""
        with pytest.raises(VoidValueError):
            generate("void g() { } int main() { return g() + 1; }")

    def test_arguments_converted_to_parameter_types(self):
        """An int argument to a double parameter is converted."""
        text = str(generate("double h(double x) { return x; } int main() { h(1); return 0; }"))
        assert "sitofp i32" in text


class TestNumericTypes:
    """float/double lowering and promotion."""

    def test_mixed_arithmetic_promotes(self):
        """int / double promotes the int operand."""
        text = str(generate("double half(int x) { return x / 2.0; }"))
        assert "sitofp" in text
        assert "fdiv double" in text

    def test_float_return_truncates_double(self):
        """A double value returned from a float function is truncated."""
        text = str(generate("float f() { return 1.5; }"))
        assert "ret float" in text

    def test_double_to_int_store(self):
        """Assigning a double to an int converts with fptosi."""
        text = str(generate("int f() { int x = 2.5; return x; }"))
        assert "fptosi double" in text

    def test_float_comparison(self):
        """Floating comparisons use ordered fcmp."""
        text = str(generate("int f(double a) { return a > 1.0; }"))
        assert "fcmp ogt double" in text

    def test_float_not_equal_is_unordered(self):
        """!= on floats is 'une' so NaN compares unequal; == stays ordered."""
        text = str(generate("int f(double a) { return (a != a) + (a == a); }"))
        assert "fcmp une double" in text
        assert "fcmp oeq double" in text

    def test_float_condition_is_unordered(self):
        """A floating condition is tested with 'une' against zero."""
        text = str(generate("int f(double a) { if (a) return 1; return 0; }"))
        assert "fcmp une double" in text


class TestFailureRollback:
    """Failed functions never leave partial IR behind."""

    def test_failed_function_reverts_to_declaration(self):
        """A pre-declared function that fails to emit has no body."""
        source = "int bad() { return nope; }\nint good() { return bad(); }"
        generator = CodeGenerator(source=source)
        with pytest.raises(UndeclaredIdentifierError):
            generator.generate(parse_source(source, "test.c"))
        assert generator.module.globals["bad"].is_declaration
        assert not generator.module.globals["good"].is_declaration
        assert generator.scopes.depth == 0

    def test_errors_in_several_functions_are_collected(self):
        """Every failing function is reported."""
        source = "int a() { return x; }\nint b() { return y; }\nint c() { return 1; }"
        with pytest.raises(CompilationError) as exc_info:
            generate(source)
        assert len(exc_info.value.errors) == 2

    def test_unhandled_node_raises(self):
        """An unknown statement node fails loudly and is rolled back."""

        @dataclass
        class Bogus(Statement):
            pass

        node = FunctionNode(
            location=LOC,
            name="f",
            return_type="int",
            body=BlockStatement(location=LOC, statements=[Bogus(location=LOC)]),
        )
        generator = CodeGenerator()
        with pytest.raises(EmissionError):
            generator.emit_function(node)
        assert generator.module.globals["f"].is_declaration

    def test_redefine_after_failed_emission(self):
        """A function whose emission failed can be emitted again."""
        bad = parse_source("int f() { return y; }", "test.c").functions[0]
        good = parse_source("int f() { return 1; }", "test.c").functions[0]
        generator = CodeGenerator()
        with pytest.raises(UndeclaredIdentifierError):
            generator.emit_function(bad)
        function = generator.emit_function(good)
        assert not function.is_declaration
        assert [b.name for b in function.blocks] == ["entry"]
        verify_module(generator.module)

    def test_failed_emission_keeps_names_stable(self):
        """Re-emitting a failed function reuses its original value names."""
        bad = parse_source("int f(int n) { return n + y; }", "test.c").functions[0]
        good = parse_source("int f(int n) { return n; }", "test.c").functions[0]
        generator = CodeGenerator()
        with pytest.raises(UndeclaredIdentifierError):
            generator.emit_function(bad)
        generator.emit_function(good)
        text = str(generator.module)
        assert text == str(generate_module(parse_source("int f(int n) { return n; }", "test.c")))

    def test_emit_into_terminated_block_raises(self):
        """Lowering an expression after a terminator is an internal error."""
        generator = CodeGenerator()
        function = ir.Function(generator.module, ir.FunctionType(ir.IntType(32), []), "f")
        generator.function = function
        generator.builder = ir.IRBuilder(function.append_basic_block("entry"))
        generator.builder.ret(ir.Constant(ir.IntType(32), 0))
        with pytest.raises(EmissionError):
            generator._lower_expression(NumberLiteral(location=LOC, value=1))

    def test_emit_function_directly(self):
        """emit_function works without generate() for self-contained functions."""
        program = parse_source("int seven() { return 7; }", "test.c")
        generator = CodeGenerator("unit")
        function = generator.emit_function(program.functions[0])
        assert function.name == "seven"
        assert isinstance(function.blocks[-1].instructions[-1], ir.Ret)

    def test_compile_source_result(self):
        """compile_source exposes the module and its IR text."""
        result = compile_source("int main() { return 0; }", "test.c")
        assert result.success
        assert result.ir == str(result.module)
        assert result.token_count == 9
        assert isinstance(result.ast.functions[0], FunctionNode)
        assert isinstance(result.ast.functions[0].body.statements[0], ReturnStatement)
