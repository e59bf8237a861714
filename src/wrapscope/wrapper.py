"""
wrapscope.wrapper
~~~~~~~~~~~~~~~~~

Builds span-emitting replacements for callables.

The replacement has the same call mode as the original (plain function,
coroutine function, generator function or async generator function), so
callers and ``inspect`` see no difference. Each call:

    1. snapshots the logical caller (caller.* tags)
    2. opens a guarded span named after the callable
    3. tags it with caller.*, source.* and the arguments.* captured by the
       signature, if there is one
    4. calls the original with the same arguments
    5. on an exception, tags error/message and re-raises the same object

The span is closed on every exit path.

Example:
    >>> @wrap_scope("($order_id, %options)")
    ... def checkout(order_id, **options):
    ...     ...
"""

from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from . import callstack
from .callstack import CallSite, capture_call_site, install_stack_shim, register_wrapper_code
from .config import WrapScopeConfig, get_config
from .core import get_tracer
from .extract import extract_tags
from .signature import CompiledSignature, parse_signature
from .types import F, ScopedSpan, SpanBackend

logger = logging.getLogger("wrapscope.wrapper")

__all__ = [
    "SourceInfo",
    "build_wrapper",
    "wrap_scope",
    "is_wrapped",
    "original_of",
]

WRAPPED_MARKER = "_wrapscope_wrapped"


@dataclass(frozen=True, slots=True)
class SourceInfo:
    """
    Where the original callable is defined. Computed once, at wrap time.

    Attributes:
        package: Defining module name
        subname: ``<module>.<qualname>``
        file: Source file (None for callables without Python code)
        line: First line of the definition (None without Python code)
    """
    package: str
    subname: str
    file: str | None = None
    line: int | None = None

    @classmethod
    def from_callable(cls, func: Callable[..., Any]) -> SourceInfo:
        target = inspect.unwrap(func)
        package = getattr(target, '__module__', None) or ''
        qualname = getattr(target, '__qualname__', None) or getattr(target, '__name__', None) or repr(target)
        subname = f"{package}.{qualname}" if package else qualname

        code = getattr(target, '__code__', None)
        if code is None:
            return cls(package=package, subname=subname)

        try:
            file = inspect.getsourcefile(target) or code.co_filename
        except TypeError:
            file = code.co_filename
        return cls(package=package, subname=subname, file=file, line=code.co_firstlineno)

    def to_attributes(self) -> dict[str, Any]:
        attrs: dict[str, Any] = {}
        if self.file is not None:
            attrs['source.file'] = self.file
        if self.line is not None:
            attrs['source.line'] = self.line
        attrs['source.package'] = self.package
        attrs['source.subname'] = self.subname
        return attrs


class _CallTagger:
    """
    Per-wrapper state shared by every call: static tags, signature, backend.
    """

    __slots__ = ('span_name', 'signature', 'static_attrs', '_tracer', '_config')

    def __init__(
        self,
        span_name: str,
        signature: CompiledSignature | None,
        source: SourceInfo,
        tracer: SpanBackend | None,
        config: WrapScopeConfig | None,
    ) -> None:
        self.span_name = span_name
        self.signature = signature
        self.static_attrs = source.to_attributes()
        self._tracer = tracer
        self._config = config

    @property
    def tracer(self) -> SpanBackend:
        return self._tracer if self._tracer is not None else get_tracer()

    def annotate(
        self,
        span: ScopedSpan,
        site: CallSite | None,
        args: Sequence[Any],
        kwargs: Mapping[str, Any],
    ) -> None:
        """Set caller.*, source.* and arguments.* tags; never raises."""
        try:
            attrs: dict[str, Any] = site.to_attributes() if site is not None else {}
            attrs.update(self.static_attrs)
            if self.signature is not None:
                max_length = (self._config or get_config()).max_tag_length
                attrs.update(extract_tags(self.signature, args, kwargs, max_length))
            span.set_attributes(attrs)
        except Exception:
            logger.debug(f"Could not tag span for {self.span_name}", exc_info=True)

    def tag_error(self, span: ScopedSpan, exc: BaseException) -> None:
        try:
            span.set_attributes({'error': True, 'message': str(exc)})
        except Exception:
            logger.debug(f"Could not tag error for {self.span_name}", exc_info=True)


def build_wrapper(
    original: Callable[..., Any],
    signature: CompiledSignature | None = None,
    *,
    name: str | None = None,
    source: SourceInfo | None = None,
    tracer: SpanBackend | None = None,
    config: WrapScopeConfig | None = None,
) -> Callable[..., Any]:
    """
    Build the span-emitting replacement for ``original``.

    Args:
        original: The callable to wrap
        signature: Compiled argument-capture signature (no arguments.* tags if None)
        name: Span name (defaults to the callable's ``<module>.<qualname>``)
        source: Definition-site metadata (computed from ``original`` if None)
        tracer: Span backend (the global tracer is used per call if None)
        config: Pinned configuration (the global one is read per call if None)

    With ``hide_wrapper_frames`` set, the process-wide stack shim is
    installed along with the first wrapper.

    Returns:
        The wrapper, carrying ``__wrapped__`` pointing at ``original``
    """
    source = source or SourceInfo.from_callable(original)
    tagger = _CallTagger(name or source.subname, signature, source, tracer, config)

    if inspect.isasyncgenfunction(original):
        wrapper = _async_gen_wrapper(original, tagger)
    elif inspect.isgeneratorfunction(original):
        wrapper = _gen_wrapper(original, tagger)
    elif inspect.iscoroutinefunction(original):
        wrapper = _async_wrapper(original, tagger)
    else:
        wrapper = _sync_wrapper(original, tagger)

    register_wrapper_code(wrapper.__code__)
    setattr(wrapper, WRAPPED_MARKER, True)

    if (config or get_config()).hide_wrapper_frames:
        install_stack_shim()
    return wrapper


def _sync_wrapper(original: Callable[..., Any], tagger: _CallTagger) -> Callable[..., Any]:
    @functools.wraps(original)
    def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
        __tracebackhide__ = True
        site = capture_call_site()
        with tagger.tracer.start_span(tagger.span_name) as span:
            tagger.annotate(span, site, args, kwargs)
            token = callstack._enter_call_site(site)
            try:
                return original(*args, **kwargs)
            except Exception as exc:
                tagger.tag_error(span, exc)
                raise
            finally:
                callstack._exit_call_site(token)

    return sync_wrapper


def _async_wrapper(original: Callable[..., Any], tagger: _CallTagger) -> Callable[..., Any]:
    @functools.wraps(original)
    async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
        __tracebackhide__ = True
        site = capture_call_site()
        with tagger.tracer.start_span(tagger.span_name) as span:
            tagger.annotate(span, site, args, kwargs)
            token = callstack._enter_call_site(site)
            try:
                return await original(*args, **kwargs)
            except Exception as exc:
                tagger.tag_error(span, exc)
                raise
            finally:
                callstack._exit_call_site(token)

    return async_wrapper


def _gen_wrapper(original: Callable[..., Any], tagger: _CallTagger) -> Callable[..., Any]:
    # Detached span: the block spans yields, so it must not become the
    # consumer's active span.
    @functools.wraps(original)
    def gen_wrapper(*args: Any, **kwargs: Any) -> Any:
        __tracebackhide__ = True
        site = capture_call_site()
        with tagger.tracer.start_span(tagger.span_name, activate=False) as span:
            tagger.annotate(span, site, args, kwargs)
            try:
                return (yield from original(*args, **kwargs))
            except Exception as exc:
                tagger.tag_error(span, exc)
                raise

    return gen_wrapper


def _async_gen_wrapper(original: Callable[..., Any], tagger: _CallTagger) -> Callable[..., Any]:
    @functools.wraps(original)
    async def async_gen_wrapper(*args: Any, **kwargs: Any) -> Any:
        __tracebackhide__ = True
        site = capture_call_site()
        with tagger.tracer.start_span(tagger.span_name, activate=False) as span:
            tagger.annotate(span, site, args, kwargs)
            agen = original(*args, **kwargs)
            try:
                item = await agen.__anext__()
                while True:
                    try:
                        sent = yield item
                    except GeneratorExit:
                        raise
                    except BaseException as thrown:
                        item = await agen.athrow(thrown)
                    else:
                        item = await agen.asend(sent)
            except StopAsyncIteration:
                return
            except Exception as exc:
                tagger.tag_error(span, exc)
                raise
            finally:
                await agen.aclose()

    return async_gen_wrapper


def wrap_scope(
    signature: str | CompiledSignature | Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    tracer: SpanBackend | None = None,
) -> Any:
    """
    Decorator form of build_wrapper().

    Supports both:
        @wrap_scope
        def func(): ...

        @wrap_scope("($user, undef, @rest[0..2])", name="accounts.sync")
        def func(user, session, *rest): ...

    Raises:
        SignatureSyntaxError: At decoration time, for a malformed signature
    """
    if callable(signature):
        # Case: @wrap_scope (bare)
        return build_wrapper(signature, tracer=tracer, name=name)

    def decorator(func: F) -> F:
        compiled = signature
        if isinstance(compiled, str):
            owner = name or SourceInfo.from_callable(func).subname
            compiled = parse_signature(compiled, owner=owner)
        return build_wrapper(func, compiled, name=name, tracer=tracer)  # type: ignore[return-value]

    return decorator


def is_wrapped(obj: Any) -> bool:
    """True if ``obj`` is a wrapper built by wrapscope."""
    return bool(getattr(obj, WRAPPED_MARKER, False))


def original_of(obj: Any) -> Any:
    """The callable a wrapscope wrapper replaced (``obj`` itself otherwise)."""
    if is_wrapped(obj):
        return obj.__wrapped__
    return obj
