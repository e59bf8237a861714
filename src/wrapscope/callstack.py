"""
wrapscope.callstack
~~~~~~~~~~~~~~~~~~~

Call-site snapshots and wrapper-frame elision.

Every wrapper built by wrapscope registers its code object here. Stack walks
done through this module skip those frames, so "who called me" answers
with the caller of the original call rather than the wrapper:

    - capture_call_site(): snapshot taken by a wrapper for its caller.*
      tags.
    - logical_stack() / logical_caller(): like inspect.stack(), minus
      wrapper frames.
    - current_call_site(): the snapshot of the wrapped call currently
      running in this context, for code that would rather not walk frames.

install_stack_shim() goes further and makes inspect.stack() and
traceback.extract_stack() themselves skip wrapper frames, process-wide.
It wraps whatever is installed at the time; stacking it with other
overrides of those functions is best effort.
"""

from __future__ import annotations

import contextvars
import functools
import inspect
import logging
import sys
import threading
import traceback
from dataclasses import dataclass
from types import CodeType, FrameType
from typing import Any

logger = logging.getLogger("wrapscope.callstack")

__all__ = [
    "CallSite",
    "register_wrapper_code",
    "is_wrapper_frame",
    "capture_call_site",
    "logical_stack",
    "logical_caller",
    "current_call_site",
    "install_stack_shim",
    "uninstall_stack_shim",
    "stack_shim_installed",
]

_wrapper_codes: set[CodeType] = set()

_current_call_site: contextvars.ContextVar[CallSite | None] = contextvars.ContextVar(
    'wrapscope_current_call_site', default=None
)


@dataclass(frozen=True, slots=True)
class CallSite:
    """
    Where a wrapped callable was called from.

    Attributes:
        file: Caller's file name
        line: Line number of the call
        package: Caller's module name
        subname: ``<module>.<qualname>`` of the enclosing function, or None
            for module-level code
    """
    file: str
    line: int
    package: str
    subname: str | None = None

    @classmethod
    def from_frame(cls, frame: FrameType) -> CallSite:
        code = frame.f_code
        package = frame.f_globals.get('__name__', '')
        subname = None
        if code.co_name != '<module>':
            qualname = getattr(code, 'co_qualname', code.co_name)
            subname = f"{package}.{qualname}" if package else qualname
        return cls(
            file=code.co_filename,
            line=frame.f_lineno,
            package=package,
            subname=subname,
        )

    def to_attributes(self) -> dict[str, Any]:
        """caller.* tags; caller.subname is left out for module-level code."""
        attrs: dict[str, Any] = {
            'caller.file': self.file,
            'caller.line': self.line,
            'caller.package': self.package,
        }
        if self.subname is not None:
            attrs['caller.subname'] = self.subname
        return attrs


def register_wrapper_code(code: CodeType) -> None:
    """Mark frames running ``code`` as wrapper frames."""
    _wrapper_codes.add(code)


def is_wrapper_frame(frame: FrameType) -> bool:
    return frame.f_code in _wrapper_codes


def _skip_wrappers(frame: FrameType | None) -> FrameType | None:
    while frame is not None and frame.f_code in _wrapper_codes:
        frame = frame.f_back
    return frame


def capture_call_site() -> CallSite | None:
    """
    Snapshot the logical caller of the running wrapper.

    Meant to be called from inside a wrapper: the walk starts at the
    calling frame and skips every wrapper frame, so nested wrappers each
    report the first non-wrapper frame above them.

    Returns:
        The CallSite, or None if the stack ran out
    """
    frame = _skip_wrappers(sys._getframe(1))
    try:
        if frame is None:
            return None
        return CallSite.from_frame(frame)
    finally:
        del frame  # Avoid reference cycles


def logical_stack(context: int = 1) -> list[inspect.FrameInfo]:
    """
    Return the calling stack without wrapper frames.

    Same shape as inspect.stack(): index 0 is the frame that called
    logical_stack().
    """
    frame = sys._getframe(1)
    try:
        return [
            info for info in inspect.getouterframes(frame, context)
            if info.frame.f_code not in _wrapper_codes
        ]
    finally:
        del frame


def logical_caller(depth: int = 1) -> inspect.FrameInfo | None:
    """
    Return the frame ``depth`` logical levels above the calling frame.

    ``logical_caller()`` inside a wrapped function is the code that called
    the wrapped name, never the wrapper.
    """
    frame: FrameType | None = sys._getframe(1)
    try:
        for _ in range(depth):
            frame = _skip_wrappers(frame.f_back) if frame is not None else None
        if frame is None:
            return None
        return inspect.FrameInfo(frame, *inspect.getframeinfo(frame, 1))
    finally:
        del frame


def current_call_site() -> CallSite | None:
    """Snapshot of the innermost wrapped call running in this context."""
    return _current_call_site.get()


def _enter_call_site(site: CallSite | None) -> contextvars.Token:
    return _current_call_site.set(site)


def _exit_call_site(token: contextvars.Token) -> None:
    _current_call_site.reset(token)


# =============================================================================
# Process-wide shim
# =============================================================================

_shim_lock = threading.Lock()
_shim_originals: dict[str, Any] = {}


def _make_stack_shim(original: Any) -> Any:
    @functools.wraps(original)
    def stack(context: int = 1) -> list[inspect.FrameInfo]:
        # The original sees this shim as its caller; the shim's own code is
        # registered as a wrapper frame, so it is filtered with the rest.
        return [
            info for info in original(context)
            if info.frame.f_code not in _wrapper_codes
        ]

    register_wrapper_code(stack.__code__)
    return stack


def _make_extract_stack_shim(original: Any) -> Any:
    @functools.wraps(original)
    def extract_stack(f: FrameType | None = None, limit: int | None = None) -> traceback.StackSummary:
        if f is None:
            f = sys._getframe().f_back
        # FrameSummary entries carry no code object; match on position instead
        hidden = {
            (frame.f_code.co_filename, lineno, frame.f_code.co_name)
            for frame, lineno in traceback.walk_stack(f)
            if frame.f_code in _wrapper_codes
        }
        entries = [
            entry for entry in original(f)
            if (entry.filename, entry.lineno, entry.name) not in hidden
        ]
        # Same limit semantics as extract_stack: newest frames are at the end
        if limit is not None:
            entries = entries[max(len(entries) - limit, 0):] if limit >= 0 else entries[:-limit]
        return traceback.StackSummary.from_list(entries)

    return extract_stack


def install_stack_shim() -> bool:
    """
    Make inspect.stack() and traceback.extract_stack() skip wrapper frames.

    Returns:
        True if the shim was installed by this call, False if already active
    """
    with _shim_lock:
        if _shim_originals:
            return False

        _shim_originals['inspect.stack'] = inspect.stack
        _shim_originals['traceback.extract_stack'] = traceback.extract_stack

        inspect.stack = _make_stack_shim(inspect.stack)
        traceback.extract_stack = _make_extract_stack_shim(traceback.extract_stack)

    logger.debug("Installed wrapper-frame stack shim")
    return True


def uninstall_stack_shim() -> None:
    """
    Restore the functions replaced by install_stack_shim().

    A function is only restored if the shim is still the installed
    override; anything installed on top of it is left alone.
    """
    with _shim_lock:
        if not _shim_originals:
            return

        original_stack = _shim_originals.pop('inspect.stack')
        if getattr(inspect.stack, '__wrapped__', None) is original_stack:
            inspect.stack = original_stack
        else:
            logger.warning("inspect.stack was overridden after the wrapscope shim; leaving it in place")

        original_extract = _shim_originals.pop('traceback.extract_stack')
        if getattr(traceback.extract_stack, '__wrapped__', None) is original_extract:
            traceback.extract_stack = original_extract
        else:
            logger.warning("traceback.extract_stack was overridden after the wrapscope shim; leaving it in place")

    logger.debug("Removed wrapper-frame stack shim")


def stack_shim_installed() -> bool:
    return bool(_shim_originals)
