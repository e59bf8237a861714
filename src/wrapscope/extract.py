"""
wrapscope.extract
~~~~~~~~~~~~~~~~~

Applies a compiled signature to the arguments of one call.

Extraction is best effort. A reference-kind descriptor whose argument has
the wrong type contributes no tags, and missing arguments are simply
absent. Nothing here raises into the traced program.

Keyword arguments:
    - ``$name`` falls back to ``kwargs[name]`` once positional arguments
      run out.
    - ``%name`` merges the keyword arguments not claimed by a scalar after
      the positional key/value pairs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from .signature import CaptureDescriptor, CaptureKind, CompiledSignature
from .types import TagSet, TagValue

logger = logging.getLogger("wrapscope.extract")

__all__ = [
    "ARGUMENT_PREFIX",
    "extract_tags",
    "render_value",
]

ARGUMENT_PREFIX = "arguments"

_SCALAR_TYPES = (str, int, float, bool)
_NOT_SEQUENCES = (str, bytes, bytearray)


def render_value(value: Any, max_length: int = 1000) -> TagValue:
    """
    Turn an argument value into a tag value.

    Scalars pass through; everything else is ``repr()``-ed and truncated.
    """
    if isinstance(value, _SCALAR_TYPES):
        return value
    try:
        text = repr(value)
    except Exception:
        return "<unrepresentable>"
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def _as_sequence(value: Any) -> Sequence[Any] | None:
    if isinstance(value, Sequence) and not isinstance(value, _NOT_SEQUENCES):
        return value
    return None


def _as_mapping(value: Any) -> Mapping[Any, Any] | None:
    if isinstance(value, Mapping):
        return value
    return None


def _pairs(items: Sequence[Any]) -> Iterator[tuple[Any, Any]]:
    """Alternating key/value items; a dangling last key is dropped."""
    for i in range(0, len(items) - 1, 2):
        yield items[i], items[i + 1]


def _indexed(descriptor: CaptureDescriptor, items: Sequence[Any]) -> Iterator[tuple[str, Any]]:
    if descriptor.indices is None:
        for index, value in enumerate(items):
            yield str(index), value
        return
    length = len(items)
    for index_range in descriptor.indices:
        for index in index_range.resolve(length):
            yield str(index), items[index]


def _keyed(descriptor: CaptureDescriptor, pairs: Iterable[tuple[Any, Any]]) -> Iterator[tuple[str, Any]]:
    merged: dict[str, Any] = {}
    for key, value in pairs:
        merged[str(key)] = value
    if descriptor.keys is None:
        yield from merged.items()
        return
    for key in descriptor.keys:
        if key in merged:
            yield key, merged[key]


def extract_tags(
    signature: CompiledSignature,
    args: Sequence[Any],
    kwargs: Mapping[str, Any] | None = None,
    max_length: int = 1000,
) -> TagSet:
    """
    Produce the ``arguments.*`` tags for one call.

    Args:
        signature: Compiled signature of the wrapped callable
        args: Positional arguments of the call
        kwargs: Keyword arguments of the call
        max_length: Truncation limit for rendered non-scalar values

    Returns:
        Flat tag mapping in descriptor order

    Example:
        >>> from wrapscope.signature import parse_signature
        >>> extract_tags(parse_signature("$a, undef, $c"), (1, 2, 3))
        {'arguments.a': 1, 'arguments.c': 3}
    """
    kwargs = kwargs or {}
    tags: TagSet = {}
    position = 0
    claimed: set[str] = set()

    def take_one(name: str | None) -> tuple[bool, Any]:
        # One positional argument, or the keyword of the same name once they run out.
        if position < len(args):
            return True, args[position]
        if name is not None and name in kwargs:
            claimed.add(name)
            return True, kwargs[name]
        return False, None

    def collect(descriptor: CaptureDescriptor) -> list[tuple[str, Any]]:
        kind = descriptor.kind

        if kind is CaptureKind.SCALAR:
            found, value = take_one(descriptor.name)
            return [("", value)] if found else []

        if kind is CaptureKind.ARRAY:
            return list(_indexed(descriptor, args[position:]))

        if kind is CaptureKind.HASH:
            extra = [(k, v) for k, v in kwargs.items() if k not in claimed]
            return list(_keyed(descriptor, [*_pairs(args[position:]), *extra]))

        if kind is CaptureKind.ARRAY_REF:
            found, value = take_one(descriptor.name)
            sequence = _as_sequence(value) if found else None
            return list(_indexed(descriptor, sequence)) if sequence is not None else []

        if kind is CaptureKind.HASH_REF:
            found, value = take_one(descriptor.name)
            mapping = _as_mapping(value) if found else None
            return list(_keyed(descriptor, mapping.items())) if mapping is not None else []

        return []

    for descriptor in signature:
        if descriptor.kind is not CaptureKind.SKIP:
            try:
                entries = collect(descriptor)
            except Exception:
                logger.debug(f"Skipping {descriptor.describe()}: argument could not be read", exc_info=True)
                entries = []

            base = f"{ARGUMENT_PREFIX}.{descriptor.name}"
            scalar = descriptor.kind is CaptureKind.SCALAR
            for key, value in entries:
                tags[base if scalar else f"{base}.{key}"] = render_value(value, max_length)

        if descriptor.kind.consumes_rest:
            position = len(args)
        else:
            position += 1

    return tags
