"""
clike Scope Stack
=================

Symbol table for local variables, organised as an explicit stack of
frames. The code generator pushes a frame on entering a function or a
compound block and pops it on exit, discarding every binding made in it.

Lookup walks the frames from innermost to outermost and returns the first
match, so an inner declaration shadows an outer one until its frame is
popped, at which point the outer binding is visible again.

Example:
    scopes = ScopeStack()
    with scopes.frame():
        scopes.declare(Symbol("x", slot_a, "int"))
        with scopes.frame():
            scopes.declare(Symbol("x", slot_b, "int"))
            scopes.lookup("x")      # slot_b
        scopes.lookup("x")          # slot_a
"""

import difflib
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from clike.errors import (
    SourceLocation,
    DuplicateDeclarationError,
    EmissionError,
)


@dataclass(frozen=True)
class Symbol:
    """
    A bound local variable.

    Attributes:
        name: Variable name
        storage: Stack-slot handle (an llvmlite alloca instruction)
        type_name: Declared clike type
        location: Where the variable was declared
    """
    name: str
    storage: Any
    type_name: str = "int"
    location: Optional[SourceLocation] = None


class ScopeStack:
    """Stack of name -> Symbol frames with innermost-first lookup."""

    def __init__(self):
        self._frames: list[dict[str, Symbol]] = []

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)

    def push(self) -> None:
        """Open a new, empty frame."""
        self._frames.append({})

    def pop(self) -> dict[str, Symbol]:
        """
        Close the innermost frame and return its bindings.

        Raises:
            EmissionError: If there is no open frame
        """
        if not self._frames:
            raise EmissionError("scope stack underflow: pop without matching push")
        return self._frames.pop()

    @contextmanager
    def frame(self) -> Iterator[None]:
        """Push a frame for the duration of a with-block; always pops."""
        self.push()
        try:
            yield
        finally:
            self.pop()

    def declare(self, symbol: Symbol) -> Symbol:
        """
        Bind a symbol in the innermost frame.

        Raises:
            DuplicateDeclarationError: If the name is already bound in
                                       the same frame
            EmissionError: If no frame is open
        """
        if not self._frames:
            raise EmissionError(f"cannot declare '{symbol.name}' outside any scope")

        current = self._frames[-1]
        previous = current.get(symbol.name)
        if previous is not None:
            raise DuplicateDeclarationError(
                symbol.name,
                location=symbol.location,
                original_location=previous.location,
            )

        current[symbol.name] = symbol
        return symbol

    def lookup(self, name: str) -> Optional[Symbol]:
        """Return the innermost binding of name, or None if unbound."""
        for frame in reversed(self._frames):
            symbol = frame.get(name)
            if symbol is not None:
                return symbol
        return None

    def is_declared_in_current(self, name: str) -> bool:
        return bool(self._frames) and name in self._frames[-1]

    def visible_names(self) -> list[str]:
        """All names currently visible, innermost binding first."""
        seen: dict[str, None] = {}
        for frame in reversed(self._frames):
            for name in frame:
                seen.setdefault(name, None)
        return list(seen)

    def similar_names(self, name: str, limit: int = 3) -> list[str]:
        """Visible names close to name, for 'did you mean' hints."""
        return difflib.get_close_matches(name, self.visible_names(), n=limit)
