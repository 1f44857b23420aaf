"""
clike Code Generator
====================

This module lowers the AST to LLVM IR using llvmlite's IR builder.

Every local variable and parameter lives in a stack slot (alloca) placed
in the function's entry block and is accessed through explicit loads and
stores; promoting slots to SSA registers is left to the backend
(mem2reg/SROA when optimizing).

Insertion Cursor
----------------
The IRBuilder's current block is the insertion cursor. Control flow moves
it between blocks:

    if (c) A else B            while (c) S

    entry: cbranch c           entry:     br whilecond
    then:  A; br ifcont        whilecond: cbranch c, whileloop, afterloop
    else:  B; br ifcont        whileloop: S; br whilecond
    ifcont: ...                afterloop: ...

A block accepts exactly one terminator. Fallthrough branches are only
added when the block is still open, so a 'return' inside an arm is never
followed by a 'br'. Statements that follow a 'return' in the same block
are lowered into a fresh block with no predecessors, and lowering an
expression into an already terminated block raises EmissionError.

Function Emission
-----------------
1. Declare (or reuse the declaration of) the function
2. Push a scope frame; spill each argument to a slot and bind its name
3. Lower the body; synthesize a zero/void return if control falls off
4. Pop the frame and check every block ends in exactly one terminator

If any step fails the function is rolled back to a bare declaration, so
the name can still be called, declared or defined by later emissions.

Evaluation Order
----------------
Binary operands and call arguments are evaluated left to right.
"""

import difflib
import logging
from typing import Optional

from llvmlite import ir

from clike.errors import (
    SourceLocation,
    ClikeError,
    ErrorCollector,
    SemanticError,
    UndeclaredIdentifierError,
    ArgumentCountError,
    DuplicateDeclarationError,
    VoidValueError,
    EmissionError,
)
from clike.ast import (
    ProgramNode,
    FunctionNode,
    Statement,
    VariableDeclaration,
    BlockStatement,
    ExpressionStatement,
    IfStatement,
    WhileStatement,
    ReturnStatement,
    Expression,
    NumberLiteral,
    IdentifierExpression,
    BinaryExpression,
    UnaryExpression,
    AssignmentExpression,
    CallExpression,
    BinaryOperator,
    UnaryOperator,
)
from clike.scope import ScopeStack, Symbol
from clike.types import (
    INT_TYPE,
    INT_MAX,
    DOUBLE_TYPE,
    resolve_type,
    is_floating,
    zero_value,
    common_type,
    convert,
)

logger = logging.getLogger(__name__)


# (integer builder method, floating builder method, value name)
_ARITHMETIC = {
    BinaryOperator.ADD: ("add", "fadd", "addtmp"),
    BinaryOperator.SUBTRACT: ("sub", "fsub", "subtmp"),
    BinaryOperator.MULTIPLY: ("mul", "fmul", "multmp"),
    BinaryOperator.DIVIDE: ("sdiv", "fdiv", "divtmp"),
    BinaryOperator.MODULO: ("srem", "frem", "remtmp"),
}


class CodeGenerator:
    """
    Lowers clike AST nodes into an llvmlite IR module.

    One generator serves one compilation unit: it owns the module, the
    scope stack and the insertion cursor, and must not be shared.

    Example:
        generator = CodeGenerator("demo")
        module = generator.generate(program)
        print(module)

    Attributes:
        module: The IR module functions are emitted into
        function: The function being emitted (None between functions)
        builder: IR builder positioned at the insertion cursor
        scopes: Local variable scopes of the current function
        warnings: Non-fatal diagnostics produced during emission
    """

    def __init__(
        self,
        module_name: str = "clike_module",
        module: Optional[ir.Module] = None,
        source: Optional[str] = None,
    ):
        """
        Initialize the code generator.

        Args:
            module_name: Name for a newly created module
            module: Existing module to emit into (a new one if None)
            source: Source text, used to quote lines in error messages
        """
        self.module = module if module is not None else ir.Module(name=module_name)
        self.function: Optional[ir.Function] = None
        self.builder: Optional[ir.IRBuilder] = None
        self.scopes = ScopeStack()
        self.warnings: list[str] = []

        self._source_lines = source.splitlines() if source else []

        # Function name -> the AST node that defines it
        self._definitions: dict[str, FunctionNode] = {}
        # Function name -> location of its first declaration
        self._declared_at: dict[str, SourceLocation] = {}

    # =========================================================================
    # Program and Function Entry Points
    # =========================================================================

    def generate(self, program: ProgramNode) -> ir.Module:
        """
        Emit every function of a program.

        All functions and externs are declared first so that calls may
        refer to functions defined later in the file. Each body is then
        emitted independently; errors are collected per function and
        raised together at the end.

        Returns:
            The populated IR module

        Raises:
            ClikeError: The only error, or a CompilationError wrapping several
        """
        errors = ErrorCollector()
        skipped: set[int] = set()

        for node in program.functions:
            try:
                self.declare_function(node)
            except ClikeError as e:
                errors.add(e)
                skipped.add(id(node))

        for node in program.definitions:
            if id(node) in skipped:
                continue
            try:
                self.emit_function(node)
            except ClikeError as e:
                errors.add(e)

        errors.raise_if_errors()

        logger.debug(
            f"module '{self.module.name}': {len(self.module.functions)} functions"
        )
        return self.module

    def declare_function(self, node: FunctionNode) -> ir.Function:
        """
        Declare a function in the module, or return its existing declaration.

        Raises:
            UnknownTypeError: For an unknown return or parameter type
            DuplicateDeclarationError: For a second definition or a
                                       declaration with a different signature
        """
        fnty = self._function_type(node)
        name = node.name

        if node.is_definition:
            previous = self._definitions.get(name)
            if previous is not None and previous is not node:
                raise DuplicateDeclarationError(
                    name,
                    location=node.location,
                    original_location=previous.location,
                    source_line=self._source_line(node.location),
                    message=f"redefinition of function '{name}'",
                )

        existing = self.module.globals.get(name)
        if existing is not None:
            if not isinstance(existing, ir.Function) or existing.ftype != fnty:
                raise DuplicateDeclarationError(
                    name,
                    location=node.location,
                    original_location=self._declared_at.get(name),
                    source_line=self._source_line(node.location),
                    message=f"conflicting declaration of '{name}'",
                )
            function = existing
        else:
            function = ir.Function(self.module, fnty, name=name)
            for arg, param in zip(function.args, node.parameters):
                if param.name:
                    arg.name = param.name
            self._declared_at[name] = node.location

        if node.is_definition:
            self._definitions[name] = node
        return function

    def emit_function(self, node: FunctionNode) -> ir.Function:
        """
        Emit the body of a function definition.

        Prototypes and externs are only declared.

        Returns:
            The emitted ir.Function

        Raises:
            SemanticError: Unresolved name, arity mismatch, redeclaration
            EmissionError: Internal IR invariant violated
        """
        function = self.declare_function(node)
        if node.body is None:
            return function

        if not function.is_declaration:
            raise DuplicateDeclarationError(
                node.name,
                location=node.location,
                original_location=self._declared_at.get(node.name),
                source_line=self._source_line(node.location),
                message=f"redefinition of function '{node.name}'",
            )

        self.function = function
        self.builder = ir.IRBuilder(function.append_basic_block("entry"))

        try:
            with self.scopes.frame():
                for arg, param in zip(function.args, node.parameters):
                    if not param.name:
                        continue
                    if not arg.name:
                        arg.name = param.name
                    slot = self._create_slot(arg.type, param.name)
                    self.builder.store(arg, slot)
                    self._bind(param.name, slot, param.type_name, param.location)

                for stmt in node.body.statements:
                    self._lower_statement(stmt)

                if not self.builder.block.is_terminated:
                    self._emit_default_return()

            self._verify_function(function)

        except ClikeError:
            self._discard_function(function)
            raise
        except (TypeError, ValueError, AssertionError) as e:
            # llvmlite reports malformed instructions this way
            self._discard_function(function)
            raise EmissionError(
                f"failed to emit function '{node.name}': {e}",
                node.location,
            ) from e
        finally:
            self.function = None
            self.builder = None

        logger.debug(f"emitted function '{node.name}' ({len(function.blocks)} blocks)")
        return function

    def _function_type(self, node: FunctionNode) -> ir.FunctionType:
        return_type = resolve_type(node.return_type, node.location)
        param_types = []
        for param in node.parameters:
            param_type = resolve_type(param.type_name, param.location)
            if isinstance(param_type, ir.VoidType):
                raise SemanticError(
                    f"parameter '{param.name}' has type void",
                    param.location,
                    source_line=self._source_line(param.location),
                )
            param_types.append(param_type)
        return ir.FunctionType(return_type, param_types)

    def _discard_function(self, function: ir.Function) -> None:
        """Drop the body of a failed function, leaving its declaration."""
        function.blocks.clear()
        # Forget local names so a later definition is named like a first one
        function.scope = type(function.scope)()
        for arg in function.args:
            if arg.name:
                function.scope.register(arg.name)
        self._definitions.pop(function.name, None)
        logger.debug(f"discarded body of failed function '{function.name}'")

    def _verify_function(self, function: ir.Function) -> None:
        """
        Check that every block ends in exactly one terminator.

        Raises:
            EmissionError: If a block is empty, unterminated, has several
                           terminators or has instructions after one
        """
        if not function.blocks:
            raise EmissionError(f"function '{function.name}' has no basic blocks")

        for block in function.blocks:
            positions = [
                index for index, instr in enumerate(block.instructions)
                if isinstance(instr, ir.Terminator)
            ]
            if len(positions) != 1:
                raise EmissionError(
                    f"block '{block.name}' in function '{function.name}' has "
                    f"{len(positions)} terminators"
                )
            if positions[0] != len(block.instructions) - 1:
                raise EmissionError(
                    f"block '{block.name}' in function '{function.name}' has "
                    f"instructions after its terminator"
                )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _source_line(self, location: Optional[SourceLocation]) -> Optional[str]:
        if location is not None and 0 < location.line <= len(self._source_lines):
            return self._source_lines[location.line - 1]
        return None

    def _warn(self, message: str, location: Optional[SourceLocation]) -> None:
        text = f"{location}: warning: {message}" if location else f"warning: {message}"
        self.warnings.append(text)
        logger.warning(text)

    def _create_slot(self, ty: ir.Type, name: str) -> ir.AllocaInstr:
        """Allocate a stack slot at the end of the entry block."""
        with self.builder.goto_entry_block():
            return self.builder.alloca(ty, name=name)

    def _bind(self, name: str, slot: ir.AllocaInstr, type_name: str,
              location: Optional[SourceLocation]) -> None:
        previous = self.scopes.lookup(name)
        if previous is not None and self.scopes.is_declared_in_current(name):
            raise DuplicateDeclarationError(
                name,
                location=location,
                original_location=previous.location,
                source_line=self._source_line(location),
            )
        self.scopes.declare(Symbol(name, slot, type_name, location))

    def _ensure_open_block(self) -> None:
        """Move the cursor to a fresh block if the current one is terminated."""
        if self.builder.block.is_terminated:
            dead = self.function.append_basic_block("dead")
            self.builder.position_at_end(dead)

    def _branch_if_open(self, target: ir.Block) -> None:
        if not self.builder.block.is_terminated:
            self.builder.branch(target)

    def _emit_default_return(self) -> None:
        return_type = self.function.ftype.return_type
        if isinstance(return_type, ir.VoidType):
            self.builder.ret_void()
        else:
            self.builder.ret(zero_value(return_type))

    # =========================================================================
    # Statement Lowering
    # =========================================================================

    def _lower_statement(self, stmt: Statement) -> None:
        """Lower one statement at the insertion cursor."""
        self._ensure_open_block()

        if isinstance(stmt, VariableDeclaration):
            self._lower_variable_declaration(stmt)
        elif isinstance(stmt, ExpressionStatement):
            self._lower_expression(stmt.expression, allow_void=True)
        elif isinstance(stmt, ReturnStatement):
            self._lower_return(stmt)
        elif isinstance(stmt, IfStatement):
            self._lower_if(stmt)
        elif isinstance(stmt, WhileStatement):
            self._lower_while(stmt)
        elif isinstance(stmt, BlockStatement):
            with self.scopes.frame():
                for inner in stmt.statements:
                    self._lower_statement(inner)
        else:
            raise EmissionError(
                f"unhandled statement node {type(stmt).__name__}",
                getattr(stmt, "location", None),
            )

    def _lower_nested(self, stmt: Statement) -> None:
        """Lower an if/else arm or loop body in its own scope frame."""
        with self.scopes.frame():
            self._lower_statement(stmt)

    def _lower_variable_declaration(self, stmt: VariableDeclaration) -> None:
        """
        Allocate a slot, then store the initializer or a zero value.

        The initializer is lowered before the new name is bound, so in
        'int x = x + 1;' inside a nested block the right side reads the
        outer x.
        """
        ty = resolve_type(stmt.type_name, stmt.location)
        if isinstance(ty, ir.VoidType):
            raise SemanticError(
                f"variable '{stmt.name}' declared void",
                stmt.location,
                source_line=self._source_line(stmt.location),
            )

        if self.scopes.is_declared_in_current(stmt.name):
            previous = self.scopes.lookup(stmt.name)
            raise DuplicateDeclarationError(
                stmt.name,
                location=stmt.location,
                original_location=previous.location,
                source_line=self._source_line(stmt.location),
            )

        if stmt.initializer is not None:
            value = convert(self.builder, self._lower_expression(stmt.initializer), ty)
        else:
            value = zero_value(ty)

        slot = self._create_slot(ty, stmt.name)
        self.builder.store(value, slot)
        self._bind(stmt.name, slot, stmt.type_name, stmt.location)

    def _lower_return(self, stmt: ReturnStatement) -> None:
        return_type = self.function.ftype.return_type

        if isinstance(return_type, ir.VoidType):
            if stmt.value is not None:
                self._lower_expression(stmt.value, allow_void=True)
                self._warn(
                    f"value returned from void function '{self.function.name}' is ignored",
                    stmt.location,
                )
            self.builder.ret_void()
            return

        if stmt.value is None:
            self._warn(
                f"'return' without a value in function '{self.function.name}' returns 0",
                stmt.location,
            )
            self.builder.ret(zero_value(return_type))
            return

        value = self._lower_expression(stmt.value)
        self.builder.ret(convert(self.builder, value, return_type))

    def _lower_if(self, stmt: IfStatement) -> None:
        condition = self._lower_condition(stmt.condition, "ifcond")

        then_block = self.function.append_basic_block("then")
        else_block = None
        if stmt.else_branch is not None:
            else_block = self.function.append_basic_block("else")
        merge_block = self.function.append_basic_block("ifcont")

        self.builder.cbranch(condition, then_block, else_block or merge_block)

        self.builder.position_at_end(then_block)
        self._lower_nested(stmt.then_branch)
        self._branch_if_open(merge_block)

        if else_block is not None:
            self.builder.position_at_end(else_block)
            self._lower_nested(stmt.else_branch)
            self._branch_if_open(merge_block)

        self.builder.position_at_end(merge_block)

    def _lower_while(self, stmt: WhileStatement) -> None:
        cond_block = self.function.append_basic_block("whilecond")
        body_block = self.function.append_basic_block("whileloop")
        after_block = self.function.append_basic_block("afterloop")

        self.builder.branch(cond_block)

        self.builder.position_at_end(cond_block)
        condition = self._lower_condition(stmt.condition, "loopcond")
        self.builder.cbranch(condition, body_block, after_block)

        self.builder.position_at_end(body_block)
        self._lower_nested(stmt.body)
        self._branch_if_open(cond_block)

        self.builder.position_at_end(after_block)

    def _lower_condition(self, expr: Expression, name: str) -> ir.Value:
        """Lower a condition and compare it against zero, giving an i1."""
        value = self._lower_expression(expr)
        zero = zero_value(value.type)
        if is_floating(value.type):
            return self.builder.fcmp_unordered("!=", value, zero, name=name)
        return self.builder.icmp_signed("!=", value, zero, name=name)

    # =========================================================================
    # Expression Lowering
    # =========================================================================

    def _lower_expression(self, expr: Expression, allow_void: bool = False) -> ir.Value:
        """
        Lower an expression and return its value.

        Raises:
            EmissionError: If the cursor sits in a terminated block
        """
        if self.builder.block.is_terminated:
            raise EmissionError(
                f"cannot emit into terminated block '{self.builder.block.name}'",
                getattr(expr, "location", None),
            )

        if isinstance(expr, NumberLiteral):
            if expr.is_float:
                return ir.Constant(DOUBLE_TYPE, float(expr.value))
            return ir.Constant(INT_TYPE, self._int_literal(expr))
        if isinstance(expr, IdentifierExpression):
            symbol = self._resolve_variable(expr.name, expr.location)
            return self.builder.load(symbol.storage, name=expr.name)
        if isinstance(expr, BinaryExpression):
            return self._lower_binary(expr)
        if isinstance(expr, UnaryExpression):
            return self._lower_unary(expr)
        if isinstance(expr, AssignmentExpression):
            return self._lower_assignment(expr)
        if isinstance(expr, CallExpression):
            return self._lower_call(expr, allow_void)

        raise EmissionError(
            f"unhandled expression node {type(expr).__name__}",
            getattr(expr, "location", None),
        )

    def _resolve_variable(self, name: str, location: SourceLocation) -> Symbol:
        symbol = self.scopes.lookup(name)
        if symbol is None:
            raise UndeclaredIdentifierError(
                name,
                location=location,
                source_line=self._source_line(location),
                similar_identifiers=self.scopes.similar_names(name),
                what="variable",
            )
        return symbol

    def _lower_binary(self, expr: BinaryExpression) -> ir.Value:
        left = self._lower_expression(expr.left)
        right = self._lower_expression(expr.right)

        ty = common_type(left.type, right.type)
        left = convert(self.builder, left, ty)
        right = convert(self.builder, right, ty)

        if expr.operator.is_comparison:
            symbol = expr.operator.symbol
            if is_floating(ty) and expr.operator is BinaryOperator.NOT_EQUAL:
                # une: NaN != NaN is true
                flag = self.builder.fcmp_unordered(symbol, left, right, name="cmptmp")
            elif is_floating(ty):
                flag = self.builder.fcmp_ordered(symbol, left, right, name="cmptmp")
            else:
                flag = self.builder.icmp_signed(symbol, left, right, name="cmptmp")
            return self.builder.zext(flag, INT_TYPE, name="booltmp")

        int_op, float_op, name = _ARITHMETIC[expr.operator]
        method = getattr(self.builder, float_op if is_floating(ty) else int_op)
        return method(left, right, name=name)

    def _int_literal(self, expr: NumberLiteral, limit: int = INT_MAX) -> int:
        value = int(expr.value)
        if value > limit:
            raise SemanticError(
                f"integer literal {value} is out of range for int",
                expr.location,
                hint=f"int literals must not exceed {INT_MAX}",
                source_line=self._source_line(expr.location),
            )
        return value

    def _lower_unary(self, expr: UnaryExpression) -> ir.Value:
        literal = expr.operand
        if (expr.operator is UnaryOperator.NEGATE and isinstance(literal, NumberLiteral)
                and not literal.is_float and int(literal.value) == INT_MAX + 1):
            # INT_MIN has no positive literal of its own
            return ir.Constant(INT_TYPE, -self._int_literal(literal, INT_MAX + 1))

        operand = self._lower_expression(expr.operand)
        floating = is_floating(operand.type)

        if expr.operator is UnaryOperator.NEGATE:
            if floating:
                return self.builder.fneg(operand, name="negtmp")
            return self.builder.neg(operand, name="negtmp")

        zero = zero_value(operand.type)
        if floating:
            flag = self.builder.fcmp_ordered("==", operand, zero, name="nottmp")
        else:
            flag = self.builder.icmp_signed("==", operand, zero, name="nottmp")
        return self.builder.zext(flag, INT_TYPE, name="booltmp")

    def _lower_assignment(self, expr: AssignmentExpression) -> ir.Value:
        symbol = self._resolve_variable(expr.target, expr.location)
        value = self._lower_expression(expr.value)
        value = convert(self.builder, value, symbol.storage.allocated_type)
        self.builder.store(value, symbol.storage)
        return value

    def _lower_call(self, expr: CallExpression, allow_void: bool) -> ir.Value:
        """
        Lower a call after resolving the callee and checking its arity.

        No IR is emitted for the call (or its arguments) when the callee
        is unknown or the argument count is wrong.
        """
        callee = self.module.globals.get(expr.function_name)
        if not isinstance(callee, ir.Function):
            known = [f.name for f in self.module.functions]
            raise UndeclaredIdentifierError(
                expr.function_name,
                location=expr.location,
                source_line=self._source_line(expr.location),
                similar_identifiers=difflib.get_close_matches(expr.function_name, known, n=3),
                what="function",
            )

        if len(expr.arguments) != len(callee.args):
            raise ArgumentCountError(
                expr.function_name,
                expected=len(callee.args),
                actual=len(expr.arguments),
                location=expr.location,
                source_line=self._source_line(expr.location),
            )

        returns_void = isinstance(callee.ftype.return_type, ir.VoidType)
        if returns_void and not allow_void:
            raise VoidValueError(
                expr.function_name,
                location=expr.location,
                source_line=self._source_line(expr.location),
            )

        args = []
        for argument, param in zip(expr.arguments, callee.args):
            value = self._lower_expression(argument)
            args.append(convert(self.builder, value, param.type))

        return self.builder.call(callee, args, name="" if returns_void else "calltmp")


# =============================================================================
# Convenience Functions
# =============================================================================

def generate_module(
    program: ProgramNode,
    module_name: str = "clike_module",
    source: Optional[str] = None,
) -> ir.Module:
    """Emit a whole program into a new IR module."""
    return CodeGenerator(module_name, source=source).generate(program)
