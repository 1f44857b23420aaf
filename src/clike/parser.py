"""
clike Recursive Descent Parser
==============================

This module implements a recursive descent parser for clike. It pulls
tokens on demand from a Lexer instance and builds an Abstract Syntax
Tree (AST). Binary expressions are parsed by precedence climbing.

Grammar (Simplified EBNF)
-------------------------
program      ::= (function_decl | extern_decl)*
function_decl::= type IDENTIFIER '(' params? ')' (block | ';')
extern_decl  ::= 'extern' type IDENTIFIER '(' params? ')' ';'
params       ::= 'void' | param (',' param)*
param        ::= type IDENTIFIER | IDENTIFIER

block        ::= '{' statement* '}'
statement    ::= var_decl | if_stmt | while_stmt | return_stmt
               | block | expr_stmt | ';'
var_decl     ::= type IDENTIFIER ('=' expr)? ';'
if_stmt      ::= 'if' '(' expr ')' statement ('else' statement)?
while_stmt   ::= 'while' '(' expr ')' statement
return_stmt  ::= 'return' expr? ';'
expr_stmt    ::= expr ';'

expr         ::= assignment
assignment   ::= IDENTIFIER '=' assignment | binary
binary       ::= unary (binop unary)*          (precedence climbing)
unary        ::= ('-' | '!') unary | primary
primary      ::= NUMBER | IDENTIFIER | IDENTIFIER '(' args? ')' | '(' expr ')'

Binary Operator Precedence (lowest to highest)
----------------------------------------------
1. equality        == !=
2. relational      < > <= >=
3. additive        + -
4. multiplicative  * / %

All binary operators are left-associative. Assignment sits below the
table and is right-associative; unary prefix operators bind tighter than
any binary operator.

Example Usage
-------------
>>> from clike.lexer import Lexer
>>> from clike.parser import Parser
>>> program = Parser(Lexer("int main() { return 1 + 2 * 3; }")).parse_program()
>>> program.functions[0].name
'main'
"""

import logging
from typing import Optional

from clike.errors import (
    SourceLocation,
    ClikeError,
    ErrorCollector,
    LexError,
    UnexpectedTokenError,
    MissingTokenError,
    InvalidAssignmentTargetError,
    UnknownTypeError,
)
from clike.lexer import Lexer, Token, TokenType
from clike.ast import (
    ProgramNode,
    FunctionNode,
    ParameterNode,
    VariableDeclaration,
    BlockStatement,
    ExpressionStatement,
    IfStatement,
    WhileStatement,
    ReturnStatement,
    Statement,
    Expression,
    BinaryExpression,
    UnaryExpression,
    AssignmentExpression,
    CallExpression,
    IdentifierExpression,
    NumberLiteral,
    BinaryOperator,
    UnaryOperator,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Operator Tables
# =============================================================================

# token type -> (precedence, operator); higher binds tighter
BINARY_OPERATORS: dict[TokenType, tuple[int, BinaryOperator]] = {
    TokenType.EQ: (1, BinaryOperator.EQUAL),
    TokenType.NE: (1, BinaryOperator.NOT_EQUAL),
    TokenType.LT: (2, BinaryOperator.LESS),
    TokenType.GT: (2, BinaryOperator.GREATER),
    TokenType.LE: (2, BinaryOperator.LESS_EQ),
    TokenType.GE: (2, BinaryOperator.GREATER_EQ),
    TokenType.PLUS: (3, BinaryOperator.ADD),
    TokenType.MINUS: (3, BinaryOperator.SUBTRACT),
    TokenType.STAR: (4, BinaryOperator.MULTIPLY),
    TokenType.SLASH: (4, BinaryOperator.DIVIDE),
    TokenType.PERCENT: (4, BinaryOperator.MODULO),
}

UNARY_OPERATORS: dict[TokenType, UnaryOperator] = {
    TokenType.MINUS: UnaryOperator.NEGATE,
    TokenType.NOT: UnaryOperator.LOGICAL_NOT,
}

LOWEST_PRECEDENCE = 1


class Parser:
    """
    Recursive descent parser for clike.

    The parser owns the Lexer it is given and reads tokens through a small
    lookahead buffer, so the token stream is never materialized as a list.

    Errors inside a declaration are not recovered from; the parser skips
    to the next top-level declaration and keeps going, then raises every
    collected error at the end (a single error is raised as-is).

    Attributes:
        lexer: Token source
        filename: Source filename for error reporting
    """

    def __init__(self, lexer: Lexer):
        """
        Initialize the parser.

        Args:
            lexer: The lexer supplying tokens
        """
        self.lexer = lexer
        self.filename = lexer.filename

        # Lookahead buffer of already-scanned tokens
        self._buffer: list[Token] = []

        # Brace nesting of consumed tokens, used to resynchronize after errors
        self._depth = 0

        self._errors = ErrorCollector()

    def parse_program(self) -> ProgramNode:
        """
        Parse the whole token stream into a ProgramNode.

        Returns:
            ProgramNode containing every function and extern declaration

        Raises:
            ClikeError: The first (or only) error, or a CompilationError
                        aggregating several
        """
        functions = []
        location = SourceLocation(self.filename, 1, 1)

        while True:
            try:
                if self._at_end():
                    break
                functions.append(self._parse_top_level_declaration())
            except ClikeError as e:
                self._errors.add(e)
                if self._errors.should_stop():
                    break
                self._synchronize()

        self._errors.raise_if_errors()

        logger.debug(f"{self.filename}: parsed {len(functions)} top-level declarations")
        return ProgramNode(location=location, functions=functions)

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _peek(self, offset: int = 0) -> Token:
        """Look at the token at current position + offset."""
        while len(self._buffer) <= offset:
            self._buffer.append(self.lexer.next_token())
        return self._buffer[offset]

    def _advance(self) -> Token:
        """Consume and return the current token (EOF is never consumed)."""
        token = self._peek()
        if token.type != TokenType.EOF:
            self._buffer.pop(0)
        if token.type == TokenType.LBRACE:
            self._depth += 1
        elif token.type == TokenType.RBRACE:
            self._depth = max(0, self._depth - 1)
        return token

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _check(self, *types: TokenType) -> bool:
        """Check if current token is one of the given types."""
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it matches one of the types."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        """
        Expect and consume a specific token type.

        Args:
            token_type: The expected token type
            message: Description of what was expected, e.g. "';'"

        Raises:
            MissingTokenError: If the expected token is not found
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        self._reject_unknown(current)
        raise MissingTokenError(
            message,
            current.location,
            self.lexer.source_line(current.line),
            found=current.describe(),
        )

    def _unexpected(self, token: Token, expected: str) -> UnexpectedTokenError:
        self._reject_unknown(token)
        return UnexpectedTokenError(
            token.describe(),
            expected=expected,
            location=token.location,
            source_line=self.lexer.source_line(token.line),
        )

    def _reject_unknown(self, token: Token) -> None:
        """Report a lenient-mode UNKNOWN token as the cause of the error."""
        if token.type == TokenType.UNKNOWN:
            raise UnexpectedTokenError(
                token.lexeme,
                expected="a valid token",
                location=token.location,
                source_line=self.lexer.source_line(token.line),
            )

    def _synchronize(self) -> None:
        """
        Skip tokens after an error until the next top-level declaration.

        A declaration starts with 'extern' or a type keyword outside any
        braces; the rest of a broken function body is discarded. Lexical
        errors met while skipping are collected too; the lexer has already
        moved past the offending input, so skipping can go on.
        """
        while True:
            try:
                if self._at_end():
                    return
                token = self._peek()
                if self._depth == 0 and (token.is_type_keyword() or token.type == TokenType.EXTERN):
                    return
                self._advance()
            except LexError as e:
                self._errors.add(e)
                if self._errors.should_stop():
                    return

    # =========================================================================
    # Top-Level Declaration Parsing
    # =========================================================================

    def _parse_top_level_declaration(self) -> FunctionNode:
        """
        Parse a function definition, prototype or extern declaration.

        Forms:
            int f(int a) { ... }        definition
            int f(int a);               prototype
            extern double g(double);    external function
        """
        is_extern = self._match(TokenType.EXTERN) is not None

        return_type = self._parse_type("return type")
        name_token = self._expect(TokenType.IDENTIFIER, "function name")

        self._expect(TokenType.LPAREN, "'('")
        parameters = self._parse_parameter_list()
        self._expect(TokenType.RPAREN, "')'")

        body = None
        if is_extern or self._check(TokenType.SEMICOLON):
            self._expect(TokenType.SEMICOLON, "';'")
        else:
            body = self._parse_block()

        return FunctionNode(
            location=name_token.location,
            name=name_token.lexeme,
            return_type=return_type,
            parameters=parameters,
            body=body,
            is_extern=is_extern,
        )

    def _parse_type(self, expected: str) -> str:
        """
        Parse a type keyword and return its name.

        An identifier in type position followed by another identifier is a
        misspelled or unsupported type (e.g. 'long x'), reported as such.

        Raises:
            UnknownTypeError: For an identifier used as a type
            UnexpectedTokenError: For anything else
        """
        token = self._peek()
        if token.is_type_keyword():
            self._advance()
            return token.lexeme

        if token.type == TokenType.IDENTIFIER and self._peek(1).type == TokenType.IDENTIFIER:
            raise UnknownTypeError(
                token.lexeme,
                token.location,
                self.lexer.source_line(token.line),
            )

        raise self._unexpected(token, expected)

    def _parse_parameter_list(self) -> list[ParameterNode]:
        """Parse a possibly empty, comma-separated parameter list."""
        parameters = []

        if self._check(TokenType.RPAREN):
            return parameters

        if self._check(TokenType.VOID) and self._peek(1).type == TokenType.RPAREN:
            self._advance()
            return parameters

        while True:
            parameters.append(self._parse_parameter())
            if not self._match(TokenType.COMMA):
                break

        return parameters

    def _parse_parameter(self) -> ParameterNode:
        """
        Parse 'type name', a bare 'name' (int), or a bare 'type'.

        The unnamed form is meant for prototypes such as 'int f(int);'.
        """
        location = self._peek().location
        list_end = (TokenType.COMMA, TokenType.RPAREN)

        if self._check(TokenType.IDENTIFIER) and self._peek(1).type in list_end:
            name_token = self._advance()
            return ParameterNode(location=location, name=name_token.lexeme, type_name="int")

        type_name = self._parse_type("parameter type")
        if self._check(*list_end):
            return ParameterNode(location=location, name="", type_name=type_name)

        name_token = self._expect(TokenType.IDENTIFIER, "parameter name")

        return ParameterNode(location=location, name=name_token.lexeme, type_name=type_name)

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_block(self) -> BlockStatement:
        """
        Parse a block statement { ... }.

        Raises:
            MissingTokenError: If input ends before the closing brace
        """
        location = self._peek().location
        self._expect(TokenType.LBRACE, "'{'")

        statements = []
        while not self._check(TokenType.RBRACE) and not self._at_end():
            stmt = self._parse_statement()
            if stmt is not None:
                statements.append(stmt)

        self._expect(TokenType.RBRACE, "'}'")

        return BlockStatement(location=location, statements=statements)

    def _parse_statement(self) -> Optional[Statement]:
        """Parse any statement, dispatching on the leading token."""
        token = self._peek()

        if token.is_type_keyword():
            return self._parse_variable_declaration()
        if token.type == TokenType.IF:
            return self._parse_if_statement()
        if token.type == TokenType.WHILE:
            return self._parse_while_statement()
        if token.type == TokenType.RETURN:
            return self._parse_return_statement()
        if token.type == TokenType.LBRACE:
            return self._parse_block()
        if token.type == TokenType.SEMICOLON:
            # Empty statement
            self._advance()
            return None

        if token.type == TokenType.IDENTIFIER and self._peek(1).type == TokenType.IDENTIFIER:
            raise UnknownTypeError(
                token.lexeme,
                token.location,
                self.lexer.source_line(token.line),
            )

        return self._parse_expression_statement()

    def _parse_variable_declaration(self) -> VariableDeclaration:
        type_token = self._peek()
        type_name = self._parse_type("type")
        if type_name == "void":
            raise self._unexpected(type_token, "variable type (int, float or double)")

        name_token = self._expect(TokenType.IDENTIFIER, "variable name")

        initializer = None
        if self._match(TokenType.ASSIGN):
            initializer = self._parse_expression()

        self._expect(TokenType.SEMICOLON, "';'")

        return VariableDeclaration(
            location=name_token.location,
            name=name_token.lexeme,
            type_name=type_name,
            initializer=initializer,
        )

    def _parse_if_statement(self) -> IfStatement:
        location = self._advance().location
        self._expect(TokenType.LPAREN, "'('")
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")

        then_branch = self._parse_branch()

        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_branch()

        return IfStatement(
            location=location,
            condition=condition,
            then_branch=then_branch,
            else_branch=else_branch,
        )

    def _parse_while_statement(self) -> WhileStatement:
        location = self._advance().location
        self._expect(TokenType.LPAREN, "'('")
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN, "')'")

        body = self._parse_branch()

        return WhileStatement(location=location, condition=condition, body=body)

    def _parse_branch(self) -> Statement:
        """Parse the body of an if/else/while; an empty ';' becomes {}."""
        location = self._peek().location
        stmt = self._parse_statement()
        if stmt is None:
            return BlockStatement(location=location, statements=[])
        return stmt

    def _parse_return_statement(self) -> ReturnStatement:
        location = self._advance().location

        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._parse_expression()

        self._expect(TokenType.SEMICOLON, "';'")

        return ReturnStatement(location=location, value=value)

    def _parse_expression_statement(self) -> ExpressionStatement:
        location = self._peek().location
        expression = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "';'")
        return ExpressionStatement(location=location, expression=expression)

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expression:
        """
        Parse an assignment (right-associative) or a binary expression.

        Raises:
            InvalidAssignmentTargetError: If '=' follows anything other
                                          than a plain identifier
        """
        expr = self._parse_binary(LOWEST_PRECEDENCE)

        if self._check(TokenType.ASSIGN):
            assign_token = self._advance()
            if not isinstance(expr, IdentifierExpression):
                raise InvalidAssignmentTargetError(
                    expr.location,
                    self.lexer.source_line(expr.location.line),
                )
            value = self._parse_assignment()
            return AssignmentExpression(
                location=assign_token.location,
                target=expr.name,
                value=value,
            )

        return expr

    def _parse_binary(self, min_precedence: int) -> Expression:
        """
        Precedence climbing over BINARY_OPERATORS.

        Consumes operators whose precedence is at least min_precedence.
        The right operand is parsed with a threshold one above the current
        operator, so an equal-precedence operator that follows is left for
        this loop and chains associate to the left: 10 - 3 - 2 is
        (10 - 3) - 2, while 2 + 3 * 4 recurses for the tighter '*'.
        """
        left = self._parse_unary()

        while True:
            entry = BINARY_OPERATORS.get(self._peek().type)
            if entry is None or entry[0] < min_precedence:
                break

            precedence, operator = entry
            op_token = self._advance()
            right = self._parse_binary(precedence + 1)
            left = BinaryExpression(
                location=op_token.location,
                operator=operator,
                left=left,
                right=right,
            )

        return left

    def _parse_unary(self) -> Expression:
        """Parse prefix '-' and '!' (right-associative, nestable)."""
        token = self._peek()
        if token.type in UNARY_OPERATORS:
            self._advance()
            operand = self._parse_unary()
            return UnaryExpression(
                location=token.location,
                operator=UNARY_OPERATORS[token.type],
                operand=operand,
            )
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        """Parse literals, identifiers, calls and parenthesized expressions."""
        token = self._peek()

        if token.type == TokenType.NUMBER:
            self._advance()
            return NumberLiteral(
                location=token.location,
                value=token.value,
                is_float=isinstance(token.value, float),
            )

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LPAREN):
                return self._parse_call(token)
            return IdentifierExpression(location=token.location, name=token.lexeme)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "')'")
            return expr

        raise self._unexpected(token, "expression")

    def _parse_call(self, name_token: Token) -> CallExpression:
        """Parse the argument list of a call; the '(' is already consumed."""
        arguments = []
        if not self._check(TokenType.RPAREN):
            while True:
                arguments.append(self._parse_assignment())
                if not self._match(TokenType.COMMA):
                    break

        self._expect(TokenType.RPAREN, "')'")

        return CallExpression(
            location=name_token.location,
            function_name=name_token.lexeme,
            arguments=arguments,
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>", strict: bool = True) -> ProgramNode:
    """
    Parse clike source code into an AST.

    Args:
        source: The source code
        filename: Source filename for error messages
        strict: Lexer policy for unknown characters

    Returns:
        The root ProgramNode of the AST

    Raises:
        ClikeError: If lexing or parsing fails
    """
    lexer = Lexer(source, filename, strict=strict)
    return Parser(lexer).parse_program()
