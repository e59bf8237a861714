"""
Tracer and Context Management for wrapscope.

This module provides the span backend used by wrapped callables:
- Tracer: Creates guarded spans
- TracerProvider: Owns tracers and the finished-span listeners
- Context: a contextvar holding the active span for parent-child linking

Usage:
    from wrapscope import get_tracer

    tracer = get_tracer()

    with tracer.start_span("my.operation") as span:
        span.set_attribute("key", "value")
        # ... do work ...

Finished spans are handed to every registered listener. Shipping them
anywhere is up to the listener; the bundled ones keep spans in memory
(``InMemorySpanCollector``) or log them as JSON lines (``log_span``).
"""

from __future__ import annotations

import logging
import threading
import contextvars
from contextlib import contextmanager
from collections.abc import Callable, Iterator
from typing import Any

from ._compat import json_dumps
from .models import Span, StatusCode, SpanContext
from .config import get_config, lock_config, WrapScopeConfig

logger = logging.getLogger("wrapscope.core")
span_logger = logging.getLogger("wrapscope.spans")

SpanListener = Callable[[Span], None]

__all__ = [
    "Tracer",
    "TracerProvider",
    "SpanListener",
    "InMemorySpanCollector",
    "get_tracer",
    "get_current_span_context",
    "add_span_listener",
    "remove_span_listener",
    "log_span",
]


# Context variable for span context (works across async boundaries)
_current_span_context: contextvars.ContextVar[SpanContext | None] = contextvars.ContextVar(
    'wrapscope_current_span_context', default=None
)


class Tracer:
    """
    Creates guarded spans for a single instrumentation scope.

    Thread Safety:
        Tracer instances are thread-safe. The active span lives in a
        contextvar, so threads and asyncio tasks each see their own parent.

    Attributes:
        name: Instrumentation scope name (e.g., "wrapscope")
        version: Instrumentation version
    """

    __slots__ = ('name', 'version', '_config', '_provider')

    def __init__(
        self,
        name: str,
        version: str = "1.0.0",
        config: WrapScopeConfig | None = None,
        provider: TracerProvider | None = None,
    ) -> None:
        """
        Initialize the tracer.

        Args:
            name: Instrumentation scope name
            version: Instrumentation version
            config: Pinned configuration (the global one is read per span if None)
            provider: Provider whose listeners receive finished spans
        """
        self.name = name
        self.version = version
        self._config = config
        self._provider = provider

    def __repr__(self) -> str:
        return f"<Tracer {self.name!r} version={self.version!r}>"

    @contextmanager
    def start_span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
        activate: bool = True,
    ) -> Iterator[Span]:
        """
        Start a new span as a context manager.

        The span is ended on every exit path, including exceptions and
        generator close, then handed to the provider's listeners.

        Args:
            name: Span name
            attributes: Initial attributes
            activate: Make the span the parent of spans started inside the
                block. Generator wrappers pass False because the block spans
                suspension points.

        Yields:
            The created Span

        !!! example "Tracing a Code Block"
            ```python
            with tracer.start_span("orders.checkout") as span:
                span.set_attribute("arguments.order_id", order_id)
                checkout(order_id)
            ```
        """
        config = self._config or get_config()
        if not config.enabled:
            yield _NoOpSpan(name)
            return

        lock_config()

        parent_ctx = _current_span_context.get()
        span = Span(
            name=name,
            trace_id=parent_ctx.trace_id if parent_ctx else None,
            parent_span_id=parent_ctx.span_id if parent_ctx else None,
            attributes=attributes,
        )

        token = None
        if activate:
            token = _current_span_context.set(SpanContext(
                trace_id=span.trace_id,
                span_id=span.span_id,
            ))

        try:
            yield span

            if span.status_code == StatusCode.UNSET:
                span.set_status(StatusCode.OK)

        except Exception as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, str(e))
            raise

        finally:
            span.end()

            if token is not None:
                _current_span_context.reset(token)

            provider = self._provider or TracerProvider.get_instance()
            provider.dispatch(span)


class _NoOpSpan:
    """
    A no-op span for when instrumentation is disabled.

    All operations are no-ops. Used to avoid None checks in the wrapper.
    """

    __slots__ = ('name', 'trace_id', 'span_id', 'attributes')

    def __init__(self, name: str) -> None:
        self.name = name
        self.trace_id = ""
        self.span_id = ""
        self.attributes: dict[str, Any] = {}

    def set_attribute(self, key: str, value: Any) -> _NoOpSpan:
        return self

    def set_attributes(self, attributes: dict[str, Any]) -> _NoOpSpan:
        return self

    def record_exception(self, exception: BaseException, escaped: bool = True) -> _NoOpSpan:
        return self

    def set_status(self, code: StatusCode, message: str | None = None) -> _NoOpSpan:
        return self

    def end(self, end_time_ns: int | None = None) -> None:
        pass


class TracerProvider:
    """
    Singleton provider for tracers.

    Owns the tracers and the list of finished-span listeners.
    Use get_tracer() instead of instantiating directly.
    """

    _instance: TracerProvider | None = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._tracers: dict[str, Tracer] = {}
        self._listeners: list[SpanListener] = []
        self._listeners_lock = threading.Lock()
        self._initialized = False

    @classmethod
    def get_instance(cls) -> TracerProvider:
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the provider (for testing)."""
        with cls._lock:
            cls._instance = None

    def initialize(self) -> None:
        """
        Initialize the provider.

        Attaches the JSON span logger when ``log_spans`` is configured.
        """
        if self._initialized:
            return

        config = get_config()
        if config.log_spans:
            self.add_listener(log_span)

        self._initialized = True
        logger.debug(f"wrapscope tracer provider initialized: {config.to_dict()}")

    def get_tracer(self, name: str, version: str = "1.0.0") -> Tracer:
        """
        Get or create a tracer.

        Args:
            name: Instrumentation scope name
            version: Instrumentation version

        Returns:
            Tracer instance
        """
        if not self._initialized:
            self.initialize()

        key = f"{name}:{version}"
        if key not in self._tracers:
            self._tracers[key] = Tracer(name=name, version=version, provider=self)

        return self._tracers[key]

    def add_listener(self, listener: SpanListener) -> None:
        """Register a callable that receives every finished span."""
        with self._listeners_lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: SpanListener) -> None:
        """Unregister a listener; unknown listeners are ignored."""
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def dispatch(self, span: Span) -> None:
        """
        Hand a finished span to every listener.

        A failing listener is logged and skipped; it never reaches the
        traced program.
        """
        with self._listeners_lock:
            listeners = tuple(self._listeners)

        for listener in listeners:
            try:
                listener(span)
            except Exception:
                logger.warning(f"Span listener {listener!r} failed for {span.name!r}", exc_info=True)


class InMemorySpanCollector:
    """
    Span listener that keeps finished spans in memory.

    !!! example
        ```python
        collector = InMemorySpanCollector()
        add_span_listener(collector)
        run_workload()
        assert collector.names() == ["app.jobs.run"]
        ```
    """

    def __init__(self) -> None:
        self._spans: list[Span] = []
        self._lock = threading.Lock()

    def __call__(self, span: Span) -> None:
        with self._lock:
            self._spans.append(span)

    def __len__(self) -> int:
        with self._lock:
            return len(self._spans)

    @property
    def spans(self) -> list[Span]:
        """Snapshot of the collected spans, oldest first."""
        with self._lock:
            return list(self._spans)

    def names(self) -> list[str]:
        return [span.name for span in self.spans]

    def clear(self) -> None:
        with self._lock:
            self._spans.clear()


def log_span(span: Span) -> None:
    """Span listener that logs each finished span as one JSON line."""
    if span_logger.isEnabledFor(logging.INFO):
        span_logger.info(json_dumps(span.to_dict()))


def get_tracer(name: str | None = None, version: str = "1.0.0") -> Tracer:
    """
    Get a tracer from the global provider.

    Args:
        name: Instrumentation scope name (defaults to ``tracer_name`` config)
        version: Instrumentation version

    Returns:
        Tracer instance
    """
    return TracerProvider.get_instance().get_tracer(name or get_config().tracer_name, version)


def get_current_span_context() -> SpanContext | None:
    """
    Get the context of the active span.

    Returns:
        Current SpanContext or None if no active span
    """
    return _current_span_context.get()


def add_span_listener(listener: SpanListener) -> None:
    """Register a finished-span listener on the global provider."""
    TracerProvider.get_instance().add_listener(listener)


def remove_span_listener(listener: SpanListener) -> None:
    """Unregister a finished-span listener from the global provider."""
    TracerProvider.get_instance().remove_listener(listener)
