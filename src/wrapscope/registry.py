"""
wrapscope.registry
~~~~~~~~~~~~~~~~~~

Locates callables by qualified name and swaps in their wrappers.

Qualified names are dotted import paths. The longest prefix that is an
already-imported module is the module; the rest is an attribute path:

    billing.invoices.render            module function
    billing.invoices.Invoice.total     method (staticmethod/classmethod too)
    billing.invoices:Invoice.total     explicit module/attribute split

The registry never imports anything. A name that cannot be resolved yet is
kept pending; install_pending() retries it (the import hook calls it when
modules load) and whatever is still pending at exit is reported once as an
UnresolvedCallableWarning.

Installation is serialised by a lock, and the swap itself is one setattr
on the owning module or class.
"""

from __future__ import annotations

import atexit
import logging
import sys
import threading
import warnings
from dataclasses import dataclass
from collections.abc import Callable, Iterable
from typing import Any

from .config import WrapScopeConfig, get_config
from .discovery import WrapEntry
from .exceptions import SignatureSyntaxError, UnresolvedCallableWarning
from .signature import CompiledSignature, parse_signature
from .types import SpanBackend
from .wrapper import SourceInfo, build_wrapper, is_wrapped

logger = logging.getLogger("wrapscope.registry")

__all__ = [
    "WrappedCallableRecord",
    "Registry",
    "get_registry",
    "reset_registry",
]

_MISSING = object()


@dataclass(frozen=True, slots=True)
class WrappedCallableRecord:
    """
    One installed wrapper.

    Attributes:
        name: Qualified name as requested
        original: The callable that was replaced
        wrapper: The replacement (before any staticmethod/classmethod re-wrap)
        signature: Compiled signature, if one was given
        source: Definition-site metadata of the original
        owner: Module or class the name was rebound on
        attribute: Attribute name on the owner
        replaced: Exact object that was bound before (descriptor included)
        owned: Whether the owner held the attribute itself (False when inherited)
    """
    name: str
    original: Callable[..., Any]
    wrapper: Callable[..., Any]
    signature: CompiledSignature | None
    source: SourceInfo
    owner: Any
    attribute: str
    replaced: Any
    owned: bool = True


@dataclass(slots=True)
class _Target:
    owner: Any
    attribute: str
    raw: Any
    owned: bool


def _split_name(name: str) -> tuple[str | None, list[str]]:
    """Split a qualified name into (imported module name, attribute path)."""
    if ':' in name:
        module_name, _, path = name.partition(':')
        return module_name, path.split('.')

    parts = name.split('.')
    for i in range(len(parts) - 1, 0, -1):
        module_name = '.'.join(parts[:i])
        if sys.modules.get(module_name) is not None:
            return module_name, parts[i:]
    return None, parts


def _resolve(name: str) -> _Target | None:
    module_name, path = _split_name(name)
    if module_name is None or not all(path):
        return None

    owner: Any = sys.modules.get(module_name)
    if owner is None:
        return None

    for attr in path[:-1]:
        owner = getattr(owner, attr, _MISSING)
        if owner is _MISSING:
            return None

    attribute = path[-1]
    if isinstance(owner, type):
        # Raw descriptor from the MRO, so staticmethod/classmethod survive.
        for klass in owner.__mro__:
            if attribute in klass.__dict__:
                return _Target(owner, attribute, klass.__dict__[attribute], klass is owner)
        return None

    raw = getattr(owner, attribute, _MISSING)
    if raw is _MISSING:
        return None
    return _Target(owner, attribute, raw, True)


def _belongs_to(name: str, module_name: str) -> bool:
    if ':' in name:
        module_part = name.partition(':')[0]
        return module_part == module_name or module_part.startswith(module_name + '.')
    return name.startswith(module_name + '.')


class Registry:
    """
    Owns the qualified name -> WrappedCallableRecord mapping.

    Thread Safety:
        Installation takes an internal lock, so concurrent installs are
        serialised. Wrapped callables never touch the registry when called.

    !!! example
        ```python
        registry = Registry()
        registry.install("billing.invoices.render", "($invoice, %options)")
        registry.install("billing.invoices.Invoice.total")
        registry.register_exit_report()
        ```
    """

    def __init__(
        self,
        tracer: SpanBackend | None = None,
        config: WrapScopeConfig | None = None,
    ) -> None:
        self._tracer = tracer
        self._config = config
        self._records: dict[str, WrappedCallableRecord] = {}
        self._pending: dict[str, CompiledSignature | None] = {}
        self._lock = threading.RLock()
        self._exit_report_registered = False

    def __repr__(self) -> str:
        return f"<Registry installed={len(self._records)} pending={len(self._pending)}>"

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)

    @property
    def config(self) -> WrapScopeConfig:
        return self._config or get_config()

    def get(self, name: str) -> WrappedCallableRecord | None:
        return self._records.get(name)

    def records(self) -> list[WrappedCallableRecord]:
        with self._lock:
            return list(self._records.values())

    def unresolved(self) -> list[str]:
        """Names requested but not bound yet, sorted."""
        with self._lock:
            return sorted(self._pending)

    def has_pending_in(self, module_name: str) -> bool:
        """True if a pending name could live in ``module_name`` or below it."""
        with self._lock:
            return any(_belongs_to(name, module_name) for name in self._pending)

    def install(
        self,
        name: str,
        signature: str | CompiledSignature | None = None,
    ) -> WrappedCallableRecord | None:
        """
        Wrap the callable currently bound to ``name``.

        Args:
            name: Qualified name
            signature: Signature text or compiled signature (no arguments.* tags if None)

        Returns:
            The record, or None if the name is not bound yet (it stays pending)
            or is already a wrapscope wrapper installed elsewhere

        Raises:
            SignatureSyntaxError: If the signature text is malformed
        """
        compiled = parse_signature(signature, owner=name) if isinstance(signature, str) else signature

        with self._lock:
            existing = self._records.get(name)
            if existing is not None:
                logger.debug(f"{name} is already wrapped")
                return existing

            target = _resolve(name)
            if target is None:
                self._pending[name] = compiled
                logger.debug(f"{name} is not bound yet; keeping it pending")
                return None

            return self._install_target(name, target, compiled)

    def _install_target(
        self,
        name: str,
        target: _Target,
        compiled: CompiledSignature | None,
    ) -> WrappedCallableRecord | None:
        raw = target.raw
        rewrap: Callable[[Any], Any] | None = None
        func = raw
        if isinstance(raw, (staticmethod, classmethod)):
            rewrap = type(raw)
            func = raw.__func__

        if not callable(func):
            self._pending.pop(name, None)
            logger.warning(f"{name} is bound to a non-callable {type(func).__name__}; not wrapping it")
            return None

        if isinstance(func, type):
            # A function in its place would break isinstance() and subclassing
            self._pending.pop(name, None)
            logger.warning(f"{name} is a class; wrap its methods instead")
            return None

        if is_wrapped(func):
            self._pending.pop(name, None)
            logger.debug(f"{name} is already a wrapscope wrapper; leaving it alone")
            return None

        source = SourceInfo.from_callable(func)
        wrapper = build_wrapper(
            func,
            compiled,
            name=name.replace(':', '.'),
            source=source,
            tracer=self._tracer,
            config=self._config,
        )
        setattr(target.owner, target.attribute, rewrap(wrapper) if rewrap else wrapper)

        record = WrappedCallableRecord(
            name=name,
            original=func,
            wrapper=wrapper,
            signature=compiled,
            source=source,
            owner=target.owner,
            attribute=target.attribute,
            replaced=raw,
            owned=target.owned,
        )
        self._records[name] = record
        self._pending.pop(name, None)
        logger.info(f"Wrapped {name}")
        return record

    def install_many(
        self,
        entries: Iterable[WrapEntry | str | tuple[str, str | None]],
    ) -> list[WrappedCallableRecord]:
        """
        Install several names independently.

        A malformed signature is logged and only that entry is skipped;
        unresolved names stay pending.

        Returns:
            Records for the names that were wrapped now
        """
        records = []
        for entry in entries:
            if isinstance(entry, str):
                entry = WrapEntry(entry)
            elif not isinstance(entry, WrapEntry):
                entry = WrapEntry(*entry)

            try:
                record = self.install(entry.name, entry.signature)
            except SignatureSyntaxError as e:
                logger.error(str(e))
                continue
            if record is not None:
                records.append(record)
        return records

    def install_pending(self, module_name: str | None = None) -> list[WrappedCallableRecord]:
        """
        Retry pending names, optionally only those under ``module_name``.

        Returns:
            Records for the names that were wrapped now
        """
        records = []
        with self._lock:
            for name, compiled in list(self._pending.items()):
                if module_name is not None and not _belongs_to(name, module_name):
                    continue
                target = _resolve(name)
                if target is None:
                    continue
                record = self._install_target(name, target, compiled)
                if record is not None:
                    records.append(record)
        return records

    def uninstall(self, name: str) -> bool:
        """
        Put the original back.

        Returns:
            False if ``name`` was not installed by this registry
        """
        with self._lock:
            record = self._records.pop(name, None)
            if record is None:
                return False

            if record.owned:
                setattr(record.owner, record.attribute, record.replaced)
            else:
                delattr(record.owner, record.attribute)

        logger.info(f"Unwrapped {name}")
        return True

    def uninstall_all(self) -> None:
        for name in list(self._records):
            self.uninstall(name)

    def report_unresolved(self) -> list[str]:
        """
        Warn once about every name that is still pending.

        Does nothing when ``warn_unresolved`` is off.

        Returns:
            The names reported (empty when nothing was reported)
        """
        names = self.unresolved()
        if not names or not self.config.warn_unresolved:
            return []

        logger.warning(f"Requested callables never found: {', '.join(names)}")
        warnings.warn(UnresolvedCallableWarning(names), stacklevel=2)
        return names

    def register_exit_report(self) -> None:
        """Arrange for report_unresolved() to run at interpreter exit."""
        with self._lock:
            if self._exit_report_registered:
                return
            atexit.register(self.report_unresolved)
            self._exit_report_registered = True


_default_registry: Registry | None = None
_default_registry_lock = threading.Lock()


def get_registry() -> Registry:
    """Process-wide registry used by the import hook and the CLI."""
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = Registry()
    return _default_registry


def reset_registry() -> None:
    """
    Drop the process-wide registry, restoring everything it wrapped.

    Primarily for testing purposes.
    """
    global _default_registry
    with _default_registry_lock:
        if _default_registry is not None:
            _default_registry.uninstall_all()
        _default_registry = None
