"""
wrapscope.types
~~~~~~~~~~~~~~~

Type aliases and protocols shared across wrapscope.

The wrapper only needs two things from a tracer backend: a context manager
that opens a span and releases it on every exit path, and a way to set
attributes on that span. Anything satisfying these protocols can stand in
for the bundled :class:`wrapscope.core.Tracer`.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

# =============================================================================
# Type Aliases
# =============================================================================

TagValue = str | int | float | bool
"""Valid types for tag values."""

TagSet = dict[str, TagValue]
"""Flat tag name -> value mapping produced per call."""

# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class ScopedSpan(Protocol):
    """A span that accepts attributes while it is open."""

    def set_attribute(self, key: str, value: Any) -> Any: ...

    def set_attributes(self, attributes: dict[str, Any]) -> Any: ...


@runtime_checkable
class SpanBackend(Protocol):
    """Source of guarded spans."""

    def start_span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
        activate: bool = True,
    ) -> AbstractContextManager[ScopedSpan]: ...


# =============================================================================
# Type Variables
# =============================================================================

F = TypeVar("F", bound="Callable[..., Any]")
"""Type variable for callable decorators."""

__all__ = [
    "TagValue",
    "TagSet",
    "ScopedSpan",
    "SpanBackend",
    "F",
]
