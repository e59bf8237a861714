"""
wrapscope.api
~~~~~~~~~~~~~

This module implements the wrapscope public API.

Design Principles:
    1. A wrapped callable behaves exactly like the original for its callers
    2. Tracing never changes program behaviour: tagging problems are absorbed,
       the original's exceptions are re-raised untouched
    3. Every span is closed, whatever way the call ends
    4. Names are wrapped where they are bound; callers need no changes
"""

from typing import Any

from ._compat import JSON_ENCODER

# Store capabilities for runtime inspection
_CAPABILITIES = {
    "json_backend": JSON_ENCODER,
}


def get_capabilities() -> dict[str, Any]:
    """
    Get the current runtime capabilities of wrapscope.

    Returns:
        Capability flags showing which optional dependencies are active

    !!! example
        ```python
        caps = get_capabilities()
        if caps['json_backend'] == 'json':
            print("Install orjson for faster span logging")
        ```
    """
    return _CAPABILITIES.copy()


from .config import configure, get_config, reset_config, WrapScopeConfig
from .core import (
    get_tracer, get_current_span_context, Tracer, TracerProvider,
    add_span_listener, remove_span_listener, InMemorySpanCollector, log_span,
)
from .models import Span, StatusCode, SpanContext
from .exceptions import (
    WrapScopeError, SignatureSyntaxError, NameListError, UnresolvedCallableWarning,
)
from .signature import (
    CaptureKind, CaptureDescriptor, CompiledSignature, IndexRange, parse_signature,
)
from .extract import extract_tags
from .callstack import (
    CallSite, current_call_site, logical_stack, logical_caller,
    install_stack_shim, uninstall_stack_shim, stack_shim_installed,
)
from .wrapper import SourceInfo, build_wrapper, wrap_scope, is_wrapped, original_of
from .registry import Registry, WrappedCallableRecord, get_registry, reset_registry
from .discovery import (
    WrapEntry, parse_name_list, read_name_file, expand_patterns, entries_from_env, load_entries,
)
from .integrations import install_import_hook, uninstall_import_hook
