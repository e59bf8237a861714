"""
wrapscope.signature
~~~~~~~~~~~~~~~~~~~

Compiles argument-capture signatures into capture descriptors.

A signature describes how the positional arguments of a call map onto
``arguments.*`` span tags. It is a comma-separated list, optionally wrapped
in parentheses, of:

    $name               one argument -> arguments.name
    undef               skip one argument
    @name               all remaining arguments -> arguments.name.<i>
    @name[0, 2..4]      only the listed indices of the remaining arguments
    \\@name[...]        one argument holding a sequence (slice optional)
    %name               remaining arguments as key/value pairs -> arguments.name.<key>
    %name{"a", 'b'}     only the listed keys
    \\%name{...}        one argument holding a mapping (slice optional)

Only literal integers, integer ranges and quoted string literals are allowed
inside slices. Parsing happens once, when a callable is wrapped.

Example:
    >>> sig = parse_signature("($config, undef, @rest[0, 2])")
    >>> [d.kind.name for d in sig]
    ['SCALAR', 'SKIP', 'ARRAY']
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from collections.abc import Iterator

from .exceptions import SignatureSyntaxError

__all__ = [
    "CaptureKind",
    "IndexRange",
    "CaptureDescriptor",
    "CompiledSignature",
    "parse_signature",
]


class CaptureKind(Enum):
    """How one formal argument position projects into tags."""
    SCALAR = "scalar"
    SKIP = "skip"
    ARRAY = "array"
    ARRAY_REF = "array_ref"
    HASH = "hash"
    HASH_REF = "hash_ref"

    @property
    def consumes_rest(self) -> bool:
        """True for kinds that swallow every remaining positional argument."""
        return self in (CaptureKind.ARRAY, CaptureKind.HASH)

    @property
    def is_indexed(self) -> bool:
        return self in (CaptureKind.ARRAY, CaptureKind.ARRAY_REF)

    @property
    def is_keyed(self) -> bool:
        return self in (CaptureKind.HASH, CaptureKind.HASH_REF)


@dataclass(frozen=True, slots=True)
class IndexRange:
    """Inclusive index range; a single index has ``start == end``."""
    start: int
    end: int

    def resolve(self, length: int) -> Iterator[int]:
        """
        Yield the non-negative indices this range selects in a sequence of ``length``.

        Negative bounds count from the end. Out-of-range indices are dropped.
        """
        start = self.start + length if self.start < 0 else self.start
        end = self.end + length if self.end < 0 else self.end
        yield from range(max(start, 0), min(end, length - 1) + 1)


@dataclass(frozen=True, slots=True)
class CaptureDescriptor:
    """
    One parsed argument spec.

    ``indices`` is set only for sliced array kinds, ``keys`` only for sliced
    hash kinds. ``None`` means capture everything.
    """
    kind: CaptureKind
    name: str | None = None
    indices: tuple[IndexRange, ...] | None = None
    keys: tuple[str, ...] | None = None

    @property
    def is_sliced(self) -> bool:
        return self.indices is not None or self.keys is not None

    def describe(self) -> str:
        """Render the descriptor back in signature syntax."""
        if self.kind is CaptureKind.SKIP:
            return "undef"
        if self.kind is CaptureKind.SCALAR:
            return f"${self.name}"
        prefix = "\\" if self.kind in (CaptureKind.ARRAY_REF, CaptureKind.HASH_REF) else ""
        if self.kind.is_indexed:
            text = f"{prefix}@{self.name}"
            if self.indices is not None:
                parts = [str(r.start) if r.start == r.end else f"{r.start}..{r.end}" for r in self.indices]
                text += "[" + ", ".join(parts) + "]"
            return text
        text = f"{prefix}%{self.name}"
        if self.keys is not None:
            text += "{" + ", ".join(repr(k) for k in self.keys) + "}"
        return text


@dataclass(frozen=True, slots=True)
class CompiledSignature:
    """
    Ordered, immutable sequence of capture descriptors.

    Two signatures compare equal when their descriptors do; the source text
    is kept for diagnostics only.
    """
    descriptors: tuple[CaptureDescriptor, ...] = ()
    text: str = field(default="", compare=False)

    def __iter__(self) -> Iterator[CaptureDescriptor]:
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    def __bool__(self) -> bool:
        return bool(self.descriptors)

    def __str__(self) -> str:
        return "(" + ", ".join(d.describe() for d in self.descriptors) + ")"


# =============================================================================
# Scanner
# =============================================================================

_TOKEN_SPEC = [
    ('WS', r'\s+'),
    ('RANGE', r'\.\.'),
    ('INT', r'-?\d+'),
    ('STRING', r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\''),
    ('IDENT', r'[A-Za-z_]\w*'),
    ('SIGIL', r'[$@%]'),
    ('REF', r'\\'),
    ('PUNCT', r'[(),\[\]{}]'),
    ('MISMATCH', r'.'),
]
_TOKEN_RE = re.compile('|'.join(f'(?P<{name}>{pattern})' for name, pattern in _TOKEN_SPEC), re.DOTALL)
_ESCAPE_RE = re.compile(r'\\(.)', re.DOTALL)


@dataclass(frozen=True, slots=True)
class _Token:
    type: str
    value: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind == 'WS':
            continue
        tokens.append(_Token(kind, match.group(), match.start()))
    tokens.append(_Token('END', '', len(text)))
    return tokens


# =============================================================================
# Parser
# =============================================================================

class _Parser:
    """Recursive-descent parser over the token list."""

    def __init__(self, text: str, owner: str) -> None:
        self.text = text
        self.owner = owner
        self.tokens = _tokenize(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def advance(self) -> _Token:
        token = self.tokens[self.index]
        if token.type != 'END':
            self.index += 1
        return token

    def error(self, message: str, token: _Token | None = None) -> SignatureSyntaxError:
        token = token or self.current
        return SignatureSyntaxError(message, owner=self.owner, position=token.pos, token=token.value)

    def is_punct(self, value: str) -> bool:
        return self.current.type == 'PUNCT' and self.current.value == value

    def expect_punct(self, value: str, what: str) -> _Token:
        if not self.is_punct(value):
            raise self.error(f"expected {what}")
        return self.advance()

    def parse(self) -> tuple[CaptureDescriptor, ...]:
        parenthesized = self.is_punct('(')
        if parenthesized:
            self.advance()

        descriptors = self.parse_list(closer=')' if parenthesized else None)

        if parenthesized:
            self.expect_punct(')', "',' or ')'")
        if self.current.type != 'END':
            raise self.error("unexpected trailing input")

        return tuple(descriptors)

    def parse_list(self, closer: str | None) -> list[CaptureDescriptor]:
        descriptors: list[CaptureDescriptor] = []

        def at_end() -> bool:
            return self.current.type == 'END' or (closer is not None and self.is_punct(closer))

        while not at_end():
            start = self.current
            descriptor = self.parse_arg()
            if descriptors and descriptors[-1].kind.consumes_rest:
                raise self.error(
                    f"{descriptors[-1].describe()} takes all remaining arguments and must come last",
                    start,
                )
            descriptors.append(descriptor)

            if self.is_punct(','):
                self.advance()
            elif not at_end():
                raise self.error("expected ','")

        return descriptors

    def parse_arg(self) -> CaptureDescriptor:
        token = self.current

        if token.type == 'IDENT' and token.value == 'undef':
            self.advance()
            return CaptureDescriptor(CaptureKind.SKIP)

        is_ref = False
        if token.type == 'REF':
            self.advance()
            is_ref = True
            token = self.current
            if token.type != 'SIGIL' or token.value == '$':
                raise self.error("expected '@' or '%' after '\\'")

        if token.type != 'SIGIL':
            raise self.error("expected an argument spec ($name, @name, %name, \\@name, \\%name or undef)")
        sigil = self.advance().value
        name = self.parse_name()

        if sigil == '$':
            return CaptureDescriptor(CaptureKind.SCALAR, name)

        if sigil == '@':
            kind = CaptureKind.ARRAY_REF if is_ref else CaptureKind.ARRAY
            indices = self.parse_index_slice() if self.is_punct('[') else None
            return CaptureDescriptor(kind, name, indices=indices)

        kind = CaptureKind.HASH_REF if is_ref else CaptureKind.HASH
        keys = self.parse_key_slice() if self.is_punct('{') else None
        return CaptureDescriptor(kind, name, keys=keys)

    def parse_name(self) -> str:
        if self.current.type != 'IDENT':
            raise self.error("expected a name")
        return self.advance().value

    def parse_index_slice(self) -> tuple[IndexRange, ...]:
        self.advance()  # [
        ranges = []
        while True:
            start = self.parse_int()
            end = start
            if self.current.type == 'RANGE':
                self.advance()
                end = self.parse_int()
            ranges.append(IndexRange(start, end))

            if self.is_punct(','):
                self.advance()
                if self.is_punct(']'):
                    break
                continue
            break
        self.expect_punct(']', "',' or ']'")
        return tuple(ranges)

    def parse_int(self) -> int:
        if self.current.type != 'INT':
            raise self.error("only integer literals and ranges are allowed in an index slice")
        return int(self.advance().value)

    def parse_key_slice(self) -> tuple[str, ...]:
        self.advance()  # {
        keys = []
        while True:
            if self.current.type != 'STRING':
                raise self.error("only quoted string literals are allowed in a key slice")
            raw = self.advance().value
            keys.append(_ESCAPE_RE.sub(r'\1', raw[1:-1]))

            if self.is_punct(','):
                self.advance()
                if self.is_punct('}'):
                    break
                continue
            break
        self.expect_punct('}', "',' or '}'")
        return tuple(keys)


def parse_signature(text: str, owner: str = "") -> CompiledSignature:
    """
    Compile a signature string.

    Args:
        text: Signature, with or without surrounding parentheses
        owner: Qualified name the signature belongs to, used in error messages

    Returns:
        The compiled signature (empty for an empty string)

    Raises:
        SignatureSyntaxError: If the text is malformed
    """
    descriptors = _Parser(text, owner).parse()
    return CompiledSignature(descriptors=descriptors, text=text)
