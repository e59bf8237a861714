"""
Lightweight Span data structure for wrapscope.

Spans produced by wrapped callables carry everything as attributes
(``caller.*``, ``source.*``, ``arguments.*``, ``error``, ``message``);
exceptions are additionally recorded as span events.

Span Lifecycle:
    1. Created when the wrapper enters (start time captured)
    2. Attributes added before the original callable runs
    3. Ended when the wrapper exits, on every exit path
    4. Handed to the provider's span listeners
"""

from __future__ import annotations

import time
import traceback
import uuid
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

__all__ = [
    "StatusCode",
    "SpanEvent",
    "Span",
    "SpanContext",
]


class StatusCode(IntEnum):
    """OpenTelemetry status codes."""
    UNSET = 0
    OK = 1
    ERROR = 2


@dataclass(slots=True)
class SpanEvent:
    """
    An event that occurred during a span's lifetime.

    Events are point-in-time occurrences, like log entries attached to a span.
    """
    name: str
    timestamp_ns: int
    attributes: dict[str, Any] = field(default_factory=dict)


class Span:
    """
    A span represents a single call of a wrapped callable.

    Attributes:
        trace_id: 32-char hex string, identifies the entire trace
        span_id: 16-char hex string, identifies this span
        parent_span_id: 16-char hex string, parent span (None for root)
        name: Span name (the wrapped callable's qualified name)
        start_time_ns: Start time in nanoseconds since epoch
        end_time_ns: End time in nanoseconds since epoch
        status_code: StatusCode enum value
        status_message: Error message if status is ERROR
        attributes: Key-value pairs describing the span
        events: List of SpanEvents (exceptions)

    !!! example "Creating a Span"
        ```python
        span = Span(name="billing.invoice.render", attributes={"arguments.id": 7})
        span.end()
        ```
    """

    __slots__ = (
        'trace_id',
        'span_id',
        'parent_span_id',
        'name',
        'start_time_ns',
        'end_time_ns',
        'status_code',
        'status_message',
        'attributes',
        'events',
        '_ended',
    )

    def __init__(
        self,
        name: str,
        trace_id: str | None = None,
        span_id: str | None = None,
        parent_span_id: str | None = None,
        start_time_ns: int | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.trace_id = trace_id or self._generate_trace_id()
        self.span_id = span_id or self._generate_span_id()
        self.parent_span_id = parent_span_id
        self.name = name
        self.start_time_ns = start_time_ns or time.time_ns()
        self.end_time_ns: int | None = None
        self.status_code = StatusCode.UNSET
        self.status_message: str | None = None
        self.attributes: dict[str, Any] = dict(attributes) if attributes else {}
        self.events: list[SpanEvent] = []
        self._ended = False

    def __repr__(self) -> str:
        return f"<Span {self.name!r} id={self.span_id} trace_id={self.trace_id}>"

    @staticmethod
    def _generate_trace_id() -> str:
        """Generate a 32-character hex trace ID."""
        return uuid.uuid4().hex

    @staticmethod
    def _generate_span_id() -> str:
        """Generate a 16-character hex span ID."""
        return uuid.uuid4().hex[:16]

    def set_attribute(self, key: str, value: Any) -> Span:
        """
        Set a span attribute.

        Args:
            key: Attribute key (e.g., "caller.file")
            value: Attribute value (string, int, float or bool)

        Returns:
            Self for method chaining
        """
        self.attributes[key] = value
        return self

    def set_attributes(self, attributes: dict[str, Any]) -> Span:
        """Set multiple attributes at once."""
        self.attributes.update(attributes)
        return self

    def add_event(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
        timestamp_ns: int | None = None,
    ) -> Span:
        """Add a point-in-time event to the span."""
        self.events.append(SpanEvent(
            name=name,
            timestamp_ns=timestamp_ns or time.time_ns(),
            attributes=attributes or {},
        ))
        return self

    def record_exception(
        self,
        exception: BaseException,
        escaped: bool = True,
    ) -> Span:
        """
        Record an exception as a span event.

        Follows OpenTelemetry semantic conventions for exception events.
        """
        event_attrs = {
            'exception.type': type(exception).__name__,
            'exception.message': str(exception),
            'exception.escaped': escaped,
        }
        tb = ''.join(traceback.format_exception(type(exception), exception, exception.__traceback__))
        if tb:
            event_attrs['exception.stacktrace'] = tb

        return self.add_event('exception', event_attrs)

    def set_status(self, code: StatusCode, message: str | None = None) -> Span:
        """Set the span status."""
        self.status_code = code
        self.status_message = message
        return self

    def end(self, end_time_ns: int | None = None) -> None:
        """
        End the span and record end time.

        Idempotent; the first call wins.
        """
        if self._ended:
            return

        self.end_time_ns = end_time_ns or time.time_ns()
        self._ended = True

    @property
    def is_ended(self) -> bool:
        return self._ended

    @property
    def duration_ns(self) -> int | None:
        """Duration in nanoseconds (None if not ended)."""
        if self.end_time_ns is None:
            return None
        return self.end_time_ns - self.start_time_ns

    @property
    def is_root(self) -> bool:
        """True if this is a root span (no parent)."""
        return self.parent_span_id is None

    def to_dict(self) -> dict[str, Any]:
        """Convert span to a plain dictionary for logging."""
        return {
            'trace_id': self.trace_id,
            'span_id': self.span_id,
            'parent_span_id': self.parent_span_id,
            'name': self.name,
            'start_time_ns': self.start_time_ns,
            'end_time_ns': self.end_time_ns,
            'status_code': int(self.status_code),
            'status_message': self.status_message,
            'attributes': self.attributes,
            'events': [
                {
                    'name': e.name,
                    'timestamp_ns': e.timestamp_ns,
                    'attributes': e.attributes,
                }
                for e in self.events
            ],
        }


class SpanContext:
    """
    Identity of the active span, used for parent-child linking.
    """

    __slots__ = ('trace_id', 'span_id')

    def __init__(self, trace_id: str, span_id: str) -> None:
        self.trace_id = trace_id
        self.span_id = span_id

    def __repr__(self) -> str:
        return f"<SpanContext trace_id={self.trace_id} span_id={self.span_id}>"

    @property
    def is_valid(self) -> bool:
        """Check if context has valid trace and span IDs."""
        return bool(self.trace_id and self.span_id)
