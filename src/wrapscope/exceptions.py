"""
Exceptions and warnings raised by wrapscope.
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "WrapScopeError",
    "SignatureSyntaxError",
    "NameListError",
    "UnresolvedCallableWarning",
]


class WrapScopeError(Exception):
    """Base class for wrapscope errors."""
    pass


class SignatureSyntaxError(WrapScopeError, ValueError):
    """
    Raised when an argument-capture signature cannot be parsed.

    Attributes:
        owner: Qualified name the signature belongs to (may be empty)
        position: Character offset of the offending token
        token: The offending token text ("" at end of input)
    """

    def __init__(self, message: str, owner: str = "", position: int = 0, token: str = "") -> None:
        self.owner = owner
        self.position = position
        self.token = token
        where = f" for {owner}" if owner else ""
        shown = repr(token) if token else "end of signature"
        super().__init__(f"Bad signature{where}: {message} at {shown} (offset {position})")


class NameListError(WrapScopeError):
    """Raised when a name-list file cannot be read."""
    pass


class UnresolvedCallableWarning(UserWarning):
    """Emitted once at exit for requested names that were never bound."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(names)
        super().__init__(
            "wrapscope could not find these callables: " + ", ".join(self.names)
        )
