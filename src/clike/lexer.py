"""
clike Lexer (Tokenizer)
=======================

This module converts clike source text into a stream of tokens for the
parser. Tokens are produced lazily: every call to Lexer.next_token()
scans exactly one token, and tokenize() is a generator over those calls.

Token Categories
----------------
- Keywords: int, float, double, void, if, else, while, return, extern
- Identifiers: variable and function names
- Numbers: 42 (int), 3.25 (float literal, lowered as double)
- Operators: + - * / % = == != < <= > >= !
- Delimiters: ( ) { } , ;

Numbers
-------
A number is a run of digits with at most one decimal point. A second
decimal point ends the number, so "1.2.3" lexes as the literal 1.2 and
scanning resumes at the second '.', which is then handled by the
unknown-character policy below.

Comments
--------
- Single-line: // comment
- Multi-line: /* comment */

Unknown Characters
------------------
In strict mode (the default) an unknown character raises
InvalidCharacterError. In lenient mode it becomes an UNKNOWN token and a
warning is logged; the parser then reports it as an unexpected token.
Either way the character is never dropped silently.

Example Usage
-------------
>>> from clike.lexer import Lexer
>>> lexer = Lexer("int main() { return 42; }", "test.c")
>>> for token in lexer.tokenize():
...     print(token)
Token(INT, 'int', 1:1)
Token(IDENTIFIER, 'main', 1:5)
Token(LPAREN, '(', 1:9)
Token(RPAREN, ')', 1:10)
Token(LBRACE, '{', 1:12)
Token(RETURN, 'return', 1:14)
Token(NUMBER, 42, 1:21)
Token(SEMICOLON, ';', 1:23)
Token(RBRACE, '}', 1:25)
Token(EOF, 1:26)
"""

import logging
import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from clike.errors import (
    SourceLocation,
    InvalidCharacterError,
    UnterminatedCommentError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the clike language."""

    # === Structural Tokens ===
    EOF = auto()            # End of input
    UNKNOWN = auto()        # Unrecognized character (lenient mode only)

    # === Identifiers and Literals ===
    IDENTIFIER = auto()     # Variable/function names
    NUMBER = auto()         # Integer and floating literals

    # === Keywords - Type Specifiers ===
    INT = auto()            # int
    FLOAT = auto()          # float
    DOUBLE = auto()         # double
    VOID = auto()           # void

    # === Keywords - Control Flow ===
    IF = auto()             # if
    ELSE = auto()           # else
    WHILE = auto()          # while
    RETURN = auto()         # return

    # === Keywords - Other ===
    EXTERN = auto()         # extern

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /
    PERCENT = auto()        # %

    # === Comparison Operators ===
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    GT = auto()             # >
    LE = auto()             # <=
    GE = auto()             # >=

    # === Other Operators ===
    ASSIGN = auto()         # =
    NOT = auto()            # !

    # === Delimiters ===
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    SEMICOLON = auto()      # ;
    COMMA = auto()          # ,


# =============================================================================
# Keyword Mapping
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    # Type specifiers
    "int": TokenType.INT,
    "float": TokenType.FLOAT,
    "double": TokenType.DOUBLE,
    "void": TokenType.VOID,

    # Control flow
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "return": TokenType.RETURN,

    # Other
    "extern": TokenType.EXTERN,
}

TYPE_KEYWORDS = frozenset({
    TokenType.INT,
    TokenType.FLOAT,
    TokenType.DOUBLE,
    TokenType.VOID,
})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from clike source code.

    Attributes:
        type: The TokenType classification
        lexeme: The exact source text of the token ("" for EOF)
        value: Numeric value for NUMBER tokens, None otherwise
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    lexeme: str
    value: int | float | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        """Format token for debugging output."""
        if self.value is not None:
            return f"Token({self.type.name}, {self.value}, {self.line}:{self.column})"
        if self.type == TokenType.EOF:
            return f"Token(EOF, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.lexeme!r}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def is_type_keyword(self) -> bool:
        """Return True if this token names a type."""
        return self.type in TYPE_KEYWORDS

    def describe(self) -> str:
        """Human-readable text for diagnostics ('end of input' for EOF)."""
        if self.type == TokenType.EOF:
            return "end of input"
        return self.lexeme


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes clike source code.

    Each Lexer owns its own position state; there is no shared or global
    lexer, so several lexers can run side by side.

    Usage:
        lexer = Lexer(source_text, filename)
        token = lexer.next_token()
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
        strict: Raise on unknown characters instead of emitting UNKNOWN
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"
    DIGITS = string.digits

    # Two-character operators, matched before their one-character prefixes
    TWO_CHAR_OPERATORS = {
        "==": TokenType.EQ,
        "!=": TokenType.NE,
        "<=": TokenType.LE,
        ">=": TokenType.GE,
    }

    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "%": TokenType.PERCENT,
        "=": TokenType.ASSIGN,
        "!": TokenType.NOT,
        "<": TokenType.LT,
        ">": TokenType.GT,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
        ";": TokenType.SEMICOLON,
        ",": TokenType.COMMA,
    }

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        strict: bool = True,
    ):
        """
        Initialize the lexer with source code.

        Args:
            source: The clike source code to tokenize
            filename: Name of the source file (for error messages)
            strict: If True, unknown characters raise InvalidCharacterError;
                    if False they are returned as UNKNOWN tokens
        """
        self.source = source
        self.filename = filename
        self.strict = strict

        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

        self.token_count = 0
        self._eof: Optional[Token] = None

    # =========================================================================
    # Public Interface
    # =========================================================================

    def next_token(self) -> Token:
        """
        Scan and return the next token.

        Once the end of input is reached, every further call returns the
        same EOF token.

        Raises:
            LexError: On an unknown character (strict mode) or an
                      unterminated block comment
        """
        if self._eof is not None:
            return self._eof

        self._skip_whitespace_and_comments()

        if self._at_end():
            self._eof = self._make_token(TokenType.EOF, "", None, self._line, self._column)
            logger.debug(f"{self.filename}: {self.token_count} tokens")
            return self._eof

        token = self._scan_token()
        self.token_count += 1
        return token

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens until (and including) the EOF token.

        Yields:
            Token objects representing each lexical element
        """
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                return

    def source_line(self, line: int) -> Optional[str]:
        """Return the text of a 1-indexed source line, for diagnostics."""
        lines = self.source.splitlines()
        if 0 < line <= len(lines):
            return lines[line - 1]
        return None

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """
        Look at character at current position + offset without advancing.

        Returns empty string if past end of source.
        """
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line/column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _make_token(
        self,
        token_type: TokenType,
        lexeme: str,
        value: int | float | None,
        start_line: int,
        start_column: int,
    ) -> Token:
        return Token(
            type=token_type,
            lexeme=lexeme,
            value=value,
            line=start_line,
            column=start_column,
            filename=self.filename,
        )

    def _get_current_line(self) -> str:
        """Get the current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        """Skip all whitespace and comments."""
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r\f\v":
                self._advance()
                continue

            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            if char == "/" and self._peek(1) == "*":
                self._skip_block_comment()
                continue

            break

    def _skip_block_comment(self) -> None:
        """
        Skip a block comment (/* ... */).

        Raises:
            UnterminatedCommentError: If the comment is not closed
        """
        location = SourceLocation(self.filename, self._line, self._column)
        source_line = self._get_current_line()

        self._advance()
        self._advance()

        while not self._at_end():
            if self._peek() == "*" and self._peek(1) == "/":
                self._advance()
                self._advance()
                return
            self._advance()

        raise UnterminatedCommentError(location, source_line)

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char in self.DIGITS:
            return self._scan_number(start_line, start_column)

        return self._scan_operator(start_line, start_column)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """
        Scan an identifier or keyword.

        The whole identifier is read first (maximal munch), then looked up
        in the keyword table, so 'integer' is an identifier, not 'int'.
        """
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        name = "".join(chars)
        token_type = KEYWORDS.get(name, TokenType.IDENTIFIER)
        return self._make_token(token_type, name, None, start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        """
        Scan a numeric literal: digits with an optional single '.'.

        A second '.' terminates the literal; it is left for the next token.
        """
        chars = []
        seen_dot = False

        while True:
            char = self._peek()
            if char and char in self.DIGITS:
                chars.append(self._advance())
            elif char == "." and not seen_dot:
                seen_dot = True
                chars.append(self._advance())
            else:
                break

        text = "".join(chars)
        value: int | float = float(text) if seen_dot else int(text)
        return self._make_token(TokenType.NUMBER, text, value, start_line, start_column)

    def _scan_operator(self, start_line: int, start_column: int) -> Token:
        """Scan an operator or delimiter, preferring two-character forms."""
        pair = self._peek() + self._peek(1)
        if pair in self.TWO_CHAR_OPERATORS:
            self._advance()
            self._advance()
            return self._make_token(
                self.TWO_CHAR_OPERATORS[pair], pair, None, start_line, start_column
            )

        source_line = self._get_current_line()
        char = self._advance()

        if char in self.SINGLE_CHAR_TOKENS:
            return self._make_token(
                self.SINGLE_CHAR_TOKENS[char], char, None, start_line, start_column
            )

        location = SourceLocation(self.filename, start_line, start_column)
        if self.strict:
            raise InvalidCharacterError(char, location, source_line)

        logger.warning(f"{location}: passing through unknown character {char!r}")
        return self._make_token(TokenType.UNKNOWN, char, None, start_line, start_column)


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>", strict: bool = True) -> list[Token]:
    """Tokenize a whole source string into a list ending with EOF."""
    return list(Lexer(source, filename, strict=strict).tokenize())
