"""
clike Abstract Syntax Tree (AST) Definitions
============================================

This module defines the AST node types produced by the parser and
consumed by the code generator.

Node Hierarchy
--------------
ASTNode (base)
├── ProgramNode - root node holding every function and extern declaration
├── Declarations
│   ├── FunctionNode - definition, prototype or extern declaration
│   └── ParameterNode - function parameter
├── Statements
│   ├── VariableDeclaration - local variable with optional initializer
│   ├── BlockStatement - compound statement { ... }
│   ├── IfStatement - if/else statement
│   ├── WhileStatement - while loop
│   ├── ReturnStatement - return statement
│   └── ExpressionStatement - expression as statement
└── Expressions
    ├── BinaryExpression - binary operators
    ├── UnaryExpression - prefix - and !
    ├── AssignmentExpression - name = value
    ├── CallExpression - function call
    ├── IdentifierExpression - variable reference
    └── NumberLiteral - integer or floating constant

Design Notes
------------
- All nodes are dataclasses; each stores its source location
- The tree is strictly hierarchical: every child has exactly one parent
  and is released with it by normal garbage collection
- The code generator reads the tree and never mutates it
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional

from clike.errors import SourceLocation


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node appears
    """
    location: SourceLocation

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}@{self.location.line}:{self.location.column}"


@dataclass
class Expression(ASTNode):
    """Base class for nodes that evaluate to a value."""
    pass


@dataclass
class Statement(ASTNode):
    """Base class for nodes executed for their effect."""
    pass


@dataclass
class Declaration(ASTNode):
    """Base class for top-level declarations and parameters."""
    pass


# =============================================================================
# Operators
# =============================================================================

class BinaryOperator(Enum):
    """Binary operator types."""
    # Arithmetic
    ADD = auto()        # +
    SUBTRACT = auto()   # -
    MULTIPLY = auto()   # *
    DIVIDE = auto()     # /
    MODULO = auto()     # %

    # Comparison
    EQUAL = auto()      # ==
    NOT_EQUAL = auto()  # !=
    LESS = auto()       # <
    GREATER = auto()    # >
    LESS_EQ = auto()    # <=
    GREATER_EQ = auto() # >=

    @property
    def symbol(self) -> str:
        return _BINARY_SYMBOLS[self]

    @property
    def is_comparison(self) -> bool:
        return self in (
            BinaryOperator.EQUAL,
            BinaryOperator.NOT_EQUAL,
            BinaryOperator.LESS,
            BinaryOperator.GREATER,
            BinaryOperator.LESS_EQ,
            BinaryOperator.GREATER_EQ,
        )


class UnaryOperator(Enum):
    """Unary operator types."""
    NEGATE = auto()      # -x
    LOGICAL_NOT = auto() # !x

    @property
    def symbol(self) -> str:
        return "-" if self is UnaryOperator.NEGATE else "!"


_BINARY_SYMBOLS = {
    BinaryOperator.ADD: "+",
    BinaryOperator.SUBTRACT: "-",
    BinaryOperator.MULTIPLY: "*",
    BinaryOperator.DIVIDE: "/",
    BinaryOperator.MODULO: "%",
    BinaryOperator.EQUAL: "==",
    BinaryOperator.NOT_EQUAL: "!=",
    BinaryOperator.LESS: "<",
    BinaryOperator.GREATER: ">",
    BinaryOperator.LESS_EQ: "<=",
    BinaryOperator.GREATER_EQ: ">=",
}


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass
class NumberLiteral(Expression):
    """
    Numeric literal.

    Attributes:
        value: The literal value
        is_float: True if the literal was written with a decimal point
    """
    value: int | float = 0
    is_float: bool = False


@dataclass
class IdentifierExpression(Expression):
    """
    Variable reference.

    Attributes:
        name: The variable name
    """
    name: str = ""


@dataclass
class BinaryExpression(Expression):
    """
    Binary operation (left op right).

    Attributes:
        operator: The binary operator
        left: Left operand, evaluated first
        right: Right operand
    """
    operator: BinaryOperator = None
    left: Expression = None
    right: Expression = None


@dataclass
class UnaryExpression(Expression):
    """
    Prefix unary operation.

    Attributes:
        operator: The unary operator
        operand: The operand expression
    """
    operator: UnaryOperator = None
    operand: Expression = None


@dataclass
class CallExpression(Expression):
    """
    Function call.

    Attributes:
        function_name: Name of the function to call
        arguments: Argument expressions, evaluated left to right
    """
    function_name: str = ""
    arguments: list[Expression] = field(default_factory=list)


@dataclass
class AssignmentExpression(Expression):
    """
    Assignment to a named variable (target = value).

    The parser only builds this node for an identifier target, so the
    target is stored as a plain name.

    Attributes:
        target: Name of the variable being assigned
        value: The value to assign
    """
    target: str = ""
    value: Expression = None


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass
class VariableDeclaration(Statement):
    """
    Local variable declaration: int x; or double y = 1.5;

    Attributes:
        name: Variable name
        type_name: Declared type ("int", "float" or "double")
        initializer: Optional initialization expression
    """
    name: str = ""
    type_name: str = "int"
    initializer: Optional[Expression] = None


@dataclass
class ExpressionStatement(Statement):
    """
    Expression evaluated for its side effects: f(1); x = 5;

    Attributes:
        expression: The expression
    """
    expression: Expression = None


@dataclass
class ReturnStatement(Statement):
    """
    Return statement.

    Attributes:
        value: Optional return value
    """
    value: Optional[Expression] = None


@dataclass
class IfStatement(Statement):
    """
    If statement with optional else clause.

    Attributes:
        condition: The condition expression
        then_branch: Statement executed if condition is non-zero
        else_branch: Optional statement executed otherwise
    """
    condition: Expression = None
    then_branch: Statement = None
    else_branch: Optional[Statement] = None


@dataclass
class WhileStatement(Statement):
    """
    While loop.

    Attributes:
        condition: Loop condition, tested before each iteration
        body: Loop body statement
    """
    condition: Expression = None
    body: Statement = None


@dataclass
class BlockStatement(Statement):
    """
    Brace-delimited statement sequence; opens a new variable scope.

    Attributes:
        statements: Statements in source order
    """
    statements: list[Statement] = field(default_factory=list)


# =============================================================================
# Top-Level Nodes
# =============================================================================

@dataclass
class ParameterNode(Declaration):
    """
    Function parameter.

    Attributes:
        name: Parameter name
        type_name: Parameter type ("int" when written without a type)
    """
    name: str = ""
    type_name: str = "int"


@dataclass
class FunctionNode(Declaration):
    """
    Function definition, prototype or extern declaration.

    Attributes:
        name: Function name
        return_type: Return type name
        parameters: Parameters in order
        body: The function body; None for prototypes and externs
        is_extern: True for 'extern' declarations
    """
    name: str = ""
    return_type: str = "int"
    parameters: list[ParameterNode] = field(default_factory=list)
    body: Optional[BlockStatement] = None
    is_extern: bool = False

    @property
    def is_definition(self) -> bool:
        return self.body is not None


@dataclass
class ProgramNode(ASTNode):
    """
    Root node of a translation unit.

    Attributes:
        functions: Function definitions, prototypes and externs in source order
    """
    functions: list[FunctionNode] = field(default_factory=list)

    @property
    def definitions(self) -> list[FunctionNode]:
        return [f for f in self.functions if f.is_definition]

    @property
    def declarations(self) -> list[FunctionNode]:
        """Prototypes and extern declarations (functions without a body)."""
        return [f for f in self.functions if not f.is_definition]


# =============================================================================
# AST Visitor Pattern
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Dispatches on the node class name to visit_<ClassName>; nodes without
    a specific method fall back to generic_visit, which visits children.

    Usage:
        class CallCounter(ASTVisitor):
            def __init__(self):
                self.calls = 0

            def visit_CallExpression(self, node):
                self.calls += 1
                self.generic_visit(node)
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        """Visit all child nodes in field order."""
        for field_value in node.__dict__.values():
            if isinstance(field_value, ASTNode):
                self.visit(field_value)
            elif isinstance(field_value, list):
                for item in field_value:
                    if isinstance(item, ASTNode):
                        self.visit(item)


# =============================================================================
# AST Pretty Printer
# =============================================================================

class ASTPrinter(ASTVisitor):
    """
    Pretty printer used by `clikec --ast`.

    Binary expressions are fully parenthesized, which makes precedence
    and associativity visible:

        Program
          Function: int main()
            Block
              Return (1 + (2 * 3))
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, node: ASTNode) -> str:
        """Print the AST and return it as a string."""
        self.output = []
        self.indent_level = 0
        self.visit(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _indent(self) -> None:
        self.indent_level += 1

    def _dedent(self) -> None:
        self.indent_level = max(0, self.indent_level - 1)

    def visit_ProgramNode(self, node: ProgramNode):
        self._emit("Program")
        self._indent()
        for function in node.functions:
            self.visit(function)
        self._dedent()

    def visit_FunctionNode(self, node: FunctionNode):
        params = ", ".join(f"{p.type_name} {p.name}".rstrip() for p in node.parameters)
        if node.is_extern:
            kind = "Extern"
        elif node.body is None:
            kind = "Prototype"
        else:
            kind = "Function"
        self._emit(f"{kind}: {node.return_type} {node.name}({params})")
        if node.body is not None:
            self._indent()
            self.visit(node.body)
            self._dedent()

    def visit_VariableDeclaration(self, node: VariableDeclaration):
        init = f" = {self.expr_str(node.initializer)}" if node.initializer else ""
        self._emit(f"Variable: {node.type_name} {node.name}{init}")

    def visit_BlockStatement(self, node: BlockStatement):
        self._emit("Block")
        self._indent()
        for stmt in node.statements:
            self.visit(stmt)
        self._dedent()

    def visit_IfStatement(self, node: IfStatement):
        self._emit(f"If {self.expr_str(node.condition)}")
        self._indent()
        self._emit("Then:")
        self._indent()
        self.visit(node.then_branch)
        self._dedent()
        if node.else_branch is not None:
            self._emit("Else:")
            self._indent()
            self.visit(node.else_branch)
            self._dedent()
        self._dedent()

    def visit_WhileStatement(self, node: WhileStatement):
        self._emit(f"While {self.expr_str(node.condition)}")
        self._indent()
        self.visit(node.body)
        self._dedent()

    def visit_ReturnStatement(self, node: ReturnStatement):
        if node.value is not None:
            self._emit(f"Return {self.expr_str(node.value)}")
        else:
            self._emit("Return")

    def visit_ExpressionStatement(self, node: ExpressionStatement):
        self._emit(f"Expr {self.expr_str(node.expression)}")

    def expr_str(self, expr: Expression) -> str:
        """Render an expression on one line, parenthesizing every operator."""
        if expr is None:
            return ""
        if isinstance(expr, NumberLiteral):
            return repr(expr.value) if expr.is_float else str(expr.value)
        if isinstance(expr, IdentifierExpression):
            return expr.name
        if isinstance(expr, BinaryExpression):
            return f"({self.expr_str(expr.left)} {expr.operator.symbol} {self.expr_str(expr.right)})"
        if isinstance(expr, UnaryExpression):
            return f"({expr.operator.symbol}{self.expr_str(expr.operand)})"
        if isinstance(expr, AssignmentExpression):
            return f"({expr.target} = {self.expr_str(expr.value)})"
        if isinstance(expr, CallExpression):
            args = ", ".join(self.expr_str(a) for a in expr.arguments)
            return f"{expr.function_name}({args})"
        return f"<{type(expr).__name__}>"
