"""
Compatibility layer for optional dependencies.

orjson is preferred for encoding span dumps; the stdlib encoder is used when
it is missing. Modules should import the helpers from here rather than
importing orjson directly.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "json_dumps",
    "json_loads",
    "JSON_ENCODER",
]

# =============================================================================
# JSON Serialization
# =============================================================================

try:
    import orjson

    def json_dumps(obj: Any) -> str:
        """Serialize to JSON string (fast path with orjson)."""
        return orjson.dumps(obj, default=repr).decode('utf-8')

    def json_loads(data: str | bytes) -> Any:
        """Deserialize from JSON (fast path with orjson)."""
        return orjson.loads(data)

    JSON_ENCODER = "orjson"

except ImportError:
    import json

    def json_dumps(obj: Any) -> str:
        """Serialize to JSON string (stdlib fallback)."""
        return json.dumps(obj, separators=(',', ':'), default=repr)

    def json_loads(data: str | bytes) -> Any:
        """Deserialize from JSON (stdlib fallback)."""
        return json.loads(data)

    JSON_ENCODER = "json"
