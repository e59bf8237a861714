"""
wrapscope
~~~~~~~~~

Wraps named callables in tracing spans without editing their source.
"""

from .api import *
from .api import get_capabilities

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "configure", "get_config", "reset_config", "WrapScopeConfig",

    # Tracing backend
    "get_tracer", "get_current_span_context", "Tracer", "TracerProvider",
    "add_span_listener", "remove_span_listener", "InMemorySpanCollector", "log_span",

    # Models
    "Span", "StatusCode", "SpanContext",

    # Errors
    "WrapScopeError", "SignatureSyntaxError", "NameListError", "UnresolvedCallableWarning",

    # Signatures
    "CaptureKind", "CaptureDescriptor", "CompiledSignature", "IndexRange",
    "parse_signature", "extract_tags",

    # Call stack
    "CallSite", "current_call_site", "logical_stack", "logical_caller",
    "install_stack_shim", "uninstall_stack_shim", "stack_shim_installed",

    # Wrapping
    "SourceInfo", "build_wrapper", "wrap_scope", "is_wrapped", "original_of",

    # Registry
    "Registry", "WrappedCallableRecord", "get_registry", "reset_registry",

    # Discovery
    "WrapEntry", "parse_name_list", "read_name_file", "expand_patterns", "entries_from_env",
    "load_entries",
    "install_import_hook", "uninstall_import_hook",

    # Introspection
    "get_capabilities",
]
