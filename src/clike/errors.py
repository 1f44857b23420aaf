"""
clike Error Hierarchy
=====================

This module defines the exception hierarchy for the clike compiler.
Every error raised by the lexer, parser, code generator or backend
inherits from ClikeError, so callers can catch all compiler failures
with a single except clause.

Exception Hierarchy
-------------------
ClikeError (base)
├── LexError - the character stream cannot be tokenized
│   ├── InvalidCharacterError - character outside the language
│   └── UnterminatedCommentError - block comment without closing */
├── ParseError - grammar violations
│   ├── UnexpectedTokenError - wrong token for the grammar rule
│   └── MissingTokenError - a required token is absent
├── SemanticError - well-formed source that cannot be lowered
│   ├── UndeclaredIdentifierError - unknown variable or function
│   ├── ArgumentCountError - call arity differs from the declaration
│   ├── InvalidAssignmentTargetError - assignment to a non-variable
│   ├── DuplicateDeclarationError - name defined twice in one scope
│   ├── UnknownTypeError - type name outside int/float/double/void
│   └── VoidValueError - result of a void call used as a value
├── EmissionError - internal IR invariant violated (a compiler defect)
├── BackendError - LLVM verification, optimization or JIT failure
└── CompilationError - aggregate of several errors

Error Message Format
--------------------
    filename:line:column: error: description
        source_line_text
        ^
    hint: suggestion for fixing

Example:
    sum.c:4:16: error: undeclared identifier 'totl'
        return totl;
               ^
    hint: did you mean 'total'?
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    A position in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# =============================================================================
# Base Exception
# =============================================================================

class ClikeError(Exception):
    """
    Base exception for all clike compiler errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The source text of the offending line
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    @property
    def kind(self) -> str:
        """Short name of the error category, e.g. 'ParseError'."""
        for cls in type(self).__mro__:
            if cls in _ERROR_KINDS:
                return cls.__name__
        return type(self).__name__

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

            fact.c:2:9: error: expected ';'
                return n
                        ^
            hint: ...
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        # Source context with caret pointer
        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class CompilationError(ClikeError):
    """
    Aggregate error wrapping every error collected during one phase.

    The message is an already formatted report from ErrorCollector, so it
    is passed through without another location prefix.
    """

    def __init__(self, message: str, errors: Optional[list[ClikeError]] = None):
        self.errors = list(errors or [])
        super().__init__(message)

    def _format_message(self) -> str:
        return self.message


# =============================================================================
# Lexical Errors
# =============================================================================

class LexError(ClikeError):
    """The character stream could not be converted to tokens."""
    pass


class InvalidCharacterError(LexError):
    """
    Character that is not part of the language.

    Raised by the lexer in strict mode. In lenient mode the character is
    passed through as an UNKNOWN token and the parser rejects it instead.
    """

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"invalid character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class UnterminatedCommentError(LexError):
    """Block comment reaching end of input without a closing */."""

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "unterminated block comment",
            location=location,
            hint="add '*/' to close the comment",
            source_line=source_line,
        )


# =============================================================================
# Syntax Errors
# =============================================================================

class ParseError(ClikeError):
    """
    Grammar violation found by the parser.

    Examples:
        - Missing semicolon or closing brace
        - Malformed parameter or argument list
        - Token that cannot start an expression
    """
    pass


class UnexpectedTokenError(ParseError):
    """The parser met a token that does not fit the current rule."""

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """A required token (such as ';' or '}') was not found."""

    def __init__(
        self,
        expected: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        found: Optional[str] = None,
    ):
        self.expected = expected
        self.found = found

        message = f"expected {expected}"
        if found is not None:
            message += f" before '{found}'"

        super().__init__(message, location=location, source_line=source_line)


# =============================================================================
# Semantic Errors
# =============================================================================

class SemanticError(ClikeError):
    """
    Source that parses but cannot be lowered to IR.

    The compiler does no type checking; semantic errors are limited to
    name resolution, call arity, assignment targets and declarations.
    """
    pass


class UndeclaredIdentifierError(SemanticError):
    """
    Reference to a variable or function that is not declared.

    Similar names in scope are offered as a hint to catch typos.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        similar_identifiers: Optional[list[str]] = None,
        what: str = "identifier",
    ):
        self.identifier = identifier
        self.similar_identifiers = similar_identifiers or []

        hint = None
        if self.similar_identifiers:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_identifiers[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undeclared {what} '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class ArgumentCountError(SemanticError):
    """Function called with a different number of arguments than declared."""

    def __init__(
        self,
        function_name: str,
        expected: int,
        actual: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.function_name = function_name
        self.expected = expected
        self.actual = actual

        word = "argument" if expected == 1 else "arguments"
        super().__init__(
            f"'{function_name}' expects {expected} {word}, got {actual}",
            location=location,
            source_line=source_line,
        )


class InvalidAssignmentTargetError(SemanticError):
    """
    Left side of '=' is not a variable name.

    Examples:
        42 = x;
        (a + b) = x;
        f() = x;
    """

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "expression is not assignable",
            location=location,
            hint="left side of '=' must be a variable name",
            source_line=source_line,
        )


class DuplicateDeclarationError(SemanticError):
    """Name declared twice in the same scope, or a function defined twice."""

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.identifier = identifier
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{identifier}' was first declared at {original_location}"

        super().__init__(
            message or f"redeclaration of '{identifier}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class UnknownTypeError(SemanticError):
    """Type name that the language does not define."""

    def __init__(
        self,
        type_name: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.type_name = type_name
        super().__init__(
            f"unknown type name '{type_name}'",
            location=location,
            hint="supported types are int, float, double and void",
            source_line=source_line,
        )


class VoidValueError(SemanticError):
    """Result of a call to a void function used where a value is needed."""

    def __init__(
        self,
        function_name: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.function_name = function_name
        super().__init__(
            f"void value of '{function_name}()' used in an expression",
            location=location,
            source_line=source_line,
        )


# =============================================================================
# Code Generation and Backend Errors
# =============================================================================

class EmissionError(ClikeError):
    """
    Internal code generator invariant violated.

    Raised instead of silently producing broken IR, for example when an
    instruction would be appended after a block terminator or a reachable
    block ends without one. Indicates a compiler defect rather than a
    problem in the user's program.
    """
    pass


class BackendError(ClikeError):
    """The LLVM backend rejected the module or could not run it."""
    pass


_ERROR_KINDS = (
    LexError,
    ParseError,
    SemanticError,
    EmissionError,
    BackendError,
    CompilationError,
)


# =============================================================================
# Error Collection (for multi-error reporting)
# =============================================================================

class ErrorCollector:
    """
    Collects errors for batch reporting.

    The parser and code generator keep going after an error at a
    declaration boundary so that one run reports every broken function.

    Example:
        collector = ErrorCollector()
        for function in program.functions:
            try:
                generator.emit_function(function)
            except ClikeError as e:
                collector.add(e)
        collector.raise_if_errors()
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize the error collector.

        Args:
            max_errors: Maximum errors to collect before stopping
        """
        self.errors: list[ClikeError] = []
        self.warnings: list[str] = []
        self.max_errors = max_errors

    def add(self, error: ClikeError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def add_warning(self, message: str, location: Optional[SourceLocation] = None) -> None:
        """Add a warning message."""
        if location:
            self.warnings.append(f"{location}: warning: {message}")
        else:
            self.warnings.append(f"warning: {message}")

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def should_stop(self) -> bool:
        """Return True if max_errors has been reached."""
        return len(self.errors) >= self.max_errors

    def report(self) -> str:
        """Format all errors and warnings for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        for warning in self.warnings:
            lines.append(warning)

        error_word = "error" if len(self.errors) == 1 else "errors"
        warning_word = "warning" if len(self.warnings) == 1 else "warnings"
        lines.append(
            f"{len(self.errors)} {error_word}, {len(self.warnings)} {warning_word}"
        )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors and warnings."""
        self.errors.clear()
        self.warnings.clear()

    def raise_if_errors(self) -> None:
        """
        Raise if any errors were collected.

        A single error is re-raised as-is so callers can catch its precise
        type; several errors are wrapped in a CompilationError.
        """
        if not self.has_errors():
            return
        if len(self.errors) == 1:
            raise self.errors[0]
        raise CompilationError(self.report(), self.errors)
