"""
wrapscope.integrations
~~~~~~~~~~~~~~~~~~~~~~

Import-time installation via Python import hooks.

Names requested before their module is imported stay pending in the
registry. This module puts a finder on ``sys.meta_path`` that notices when
such a module is imported and wraps the pending names as soon as the module
body has run, before any importer can grab a reference to the originals.

How Python Import Hooks Work:
    When Python imports a module:
    1. Python iterates through `sys.meta_path` looking for a finder
    2. Each finder's `find_spec()` is called with the module name
    3. If a finder returns a spec, that spec's loader loads the module
    4. We intercept step 2-3 to install wrappers after the real module loads

The Patching Strategy:
    1. Register our finder FIRST in `sys.meta_path`
    2. When a module with pending names is imported:
       a. Temporarily remove ourselves from meta_path
       b. Let Python find the real module
       c. Add ourselves back
       d. Return the real spec with its loader swapped for ours
    3. Our loader:
       a. Executes the real module
       b. Calls registry.install_pending(module name)
"""

from __future__ import annotations

import sys
import logging
import importlib.abc
import importlib.util
import threading
from importlib.machinery import ModuleSpec
from types import ModuleType
from typing import Any

from .registry import Registry, get_registry

logger = logging.getLogger("wrapscope.integrations")

__all__ = [
    "WrapScopeLoader",
    "WrapScopeImportHook",
    "install_import_hook",
    "uninstall_import_hook",
]


class WrapScopeLoader(importlib.abc.Loader):
    """
    Loader that installs pending wrappers after the real module executes.

    Everything else is delegated to the real loader.
    """

    def __init__(self, real_loader: Any, registry: Registry) -> None:
        self.real_loader = real_loader
        self.registry = registry

    def create_module(self, spec: ModuleSpec) -> ModuleType | None:
        """Delegate module creation to real loader."""
        if hasattr(self.real_loader, 'create_module'):
            return self.real_loader.create_module(spec)
        return None

    def exec_module(self, module: ModuleType) -> None:
        """Execute module then wrap the names pending in it."""
        self.real_loader.exec_module(module)

        records = self.registry.install_pending(module.__name__)
        if records:
            logger.info(f"Wrapped {len(records)} callables on import of {module.__name__}")

    def __getattr__(self, name: str) -> Any:
        # get_source, get_code, is_package, ... for tools that introspect loaders
        return getattr(self.real_loader, name)


class WrapScopeImportHook(importlib.abc.MetaPathFinder):
    """
    Meta path finder for modules that have pending names.
    """

    def __init__(self, registry: Registry) -> None:
        self.registry = registry
        self._finding = threading.local()

    def find_spec(
        self,
        fullname: str,
        path: Any | None,
        target: Any | None = None,
    ) -> ModuleSpec | None:
        """Find module spec, intercepting modules with pending names."""
        if getattr(self._finding, 'active', False):
            return None
        if not self.registry.has_pending_in(fullname):
            return None

        # Step aside so the regular finders locate the real module
        self._finding.active = True
        try:
            real_spec = importlib.util.find_spec(fullname)
        finally:
            self._finding.active = False

        if real_spec is None or real_spec.loader is None:
            return None
        if not hasattr(real_spec.loader, 'exec_module'):
            return None

        real_spec.loader = WrapScopeLoader(real_spec.loader, self.registry)
        return real_spec


# Global hook instance
_import_hook: WrapScopeImportHook | None = None


def install_import_hook(registry: Registry | None = None) -> WrapScopeImportHook:
    """
    Install the import hook into sys.meta_path.

    Call this before the modules holding the requested names are imported.

    Examples:
        !!! example "Wrap a module's functions as it is imported"
            ```python
            from wrapscope import get_registry, install_import_hook

            registry = get_registry()
            registry.install("billing.invoices.render", "($invoice)")  # pending
            install_import_hook(registry)

            import billing.invoices  # render is wrapped here
            ```
    """
    global _import_hook

    if _import_hook is not None:
        return _import_hook

    _import_hook = WrapScopeImportHook(registry or get_registry())
    sys.meta_path.insert(0, _import_hook)

    logger.info("Installed wrapscope import hook")
    return _import_hook


def uninstall_import_hook() -> None:
    """
    Remove the import hook from sys.meta_path.

    Primarily for testing purposes.
    """
    global _import_hook

    if _import_hook is None:
        return

    if _import_hook in sys.meta_path:
        sys.meta_path.remove(_import_hook)

    _import_hook = None
    logger.info("Removed wrapscope import hook")
