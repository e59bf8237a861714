#!/usr/bin/env python
"""
test_integrations.py
~~~~~~~~~~~~~~~~~~~~

Unit tests for wrapping names on import.

Tests:
    1. A pending name is wrapped when its module is imported
    2. Importers that use ``from module import name`` get the wrapper
    3. Modules without pending names are left to the normal import system
    4. Hook install/uninstall is idempotent
"""

from __future__ import annotations

import importlib
import sys
import tempfile
import textwrap
import unittest
from pathlib import Path

from support import SpanTestCase

from wrapscope.integrations import (
    WrapScopeImportHook,
    WrapScopeLoader,
    install_import_hook,
    uninstall_import_hook,
)
from wrapscope.registry import Registry
from wrapscope.wrapper import is_wrapped


class ImportHookTestCase(SpanTestCase):
    """Temporary package directory on sys.path plus a private registry."""

    modules = ("hooked_greetings", "hooked_consumer", "hooked_pkg", "hooked_pkg.inner", "hooked_plain")

    def setUp(self) -> None:
        super().setUp()
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)

        self.write("hooked_greetings.py", """
            def greet(name, punctuation="!"):
                return f"hello {name}{punctuation}"

            class Greeter:
                def wave(self, times):
                    return "o/" * times
        """)
        self.write("hooked_consumer.py", """
            from hooked_greetings import greet

            def welcome(name):
                return greet(name)
        """)
        self.write("hooked_pkg/__init__.py", "")
        self.write("hooked_pkg/inner.py", """
            def work():
                return 42
        """)
        self.write("hooked_plain.py", """
            def untouched():
                return None
        """)

        sys.path.insert(0, str(self.root))
        importlib.invalidate_caches()
        self.addCleanup(self.forget_modules)

        self.registry = Registry()
        self.addCleanup(self.registry.uninstall_all)
        self.addCleanup(uninstall_import_hook)

    def write(self, relative: str, source: str) -> None:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source), encoding="utf-8")

    def forget_modules(self) -> None:
        sys.path.remove(str(self.root))
        for name in self.modules:
            sys.modules.pop(name, None)


class TestImportHook(ImportHookTestCase):

    def test_pending_name_is_wrapped_on_import(self) -> None:
        self.assertIsNone(self.registry.install("hooked_greetings.greet", "($name)"))
        install_import_hook(self.registry)

        module = importlib.import_module("hooked_greetings")

        self.assertTrue(is_wrapped(module.greet))
        self.assertEqual(module.greet("ann"), "hello ann!")
        self.assertEqual(self.registry.unresolved(), [])

        span = self.only_span()
        self.assertEqual(span.name, "hooked_greetings.greet")
        self.assertEqual(span.attributes["arguments.name"], "ann")
        self.assertEqual(span.attributes["source.file"], str(self.root / "hooked_greetings.py"))

    def test_from_import_sees_wrapper(self) -> None:
        self.registry.install("hooked_greetings.greet")
        install_import_hook(self.registry)

        consumer = importlib.import_module("hooked_consumer")

        self.assertTrue(is_wrapped(consumer.greet))
        self.assertEqual(consumer.welcome("bo"), "hello bo!")
        self.assertEqual(
            self.only_span().attributes["caller.subname"],
            "hooked_consumer.welcome",
        )

    def test_method_in_imported_module(self) -> None:
        self.registry.install("hooked_greetings.Greeter.wave", "(undef, $times)")
        install_import_hook(self.registry)

        module = importlib.import_module("hooked_greetings")
        self.assertEqual(module.Greeter().wave(2), "o/o/")
        self.assertEqual(self.only_span().attributes["arguments.times"], 2)

    def test_submodule(self) -> None:
        self.registry.install("hooked_pkg.inner.work")
        install_import_hook(self.registry)

        inner = importlib.import_module("hooked_pkg.inner")
        self.assertTrue(is_wrapped(inner.work))
        self.assertEqual(inner.work(), 42)

    def test_explicit_module_split(self) -> None:
        self.registry.install("hooked_pkg.inner:work")
        install_import_hook(self.registry)

        inner = importlib.import_module("hooked_pkg.inner")
        self.assertTrue(is_wrapped(inner.work))

    def test_unrelated_module_uses_normal_loader(self) -> None:
        self.registry.install("hooked_greetings.greet")
        hook = install_import_hook(self.registry)

        self.assertIsNone(hook.find_spec("hooked_plain", None))
        module = importlib.import_module("hooked_plain")
        self.assertNotIsInstance(module.__spec__.loader, WrapScopeLoader)
        self.assertFalse(is_wrapped(module.untouched))

    def test_missing_attribute_stays_pending(self) -> None:
        self.registry.install("hooked_greetings.farewell")
        install_import_hook(self.registry)

        importlib.import_module("hooked_greetings")
        self.assertEqual(self.registry.unresolved(), ["hooked_greetings.farewell"])

    def test_loader_delegates(self) -> None:
        self.registry.install("hooked_greetings.greet")
        hook = install_import_hook(self.registry)

        spec = hook.find_spec("hooked_greetings", None)
        self.assertIsInstance(spec.loader, WrapScopeLoader)
        self.assertIn("def greet", spec.loader.get_source("hooked_greetings"))


class TestHookInstallation(unittest.TestCase):

    def tearDown(self) -> None:
        uninstall_import_hook()

    def test_install_is_idempotent(self) -> None:
        first = install_import_hook(Registry())
        second = install_import_hook(Registry())

        self.assertIs(first, second)
        self.assertIsInstance(first, WrapScopeImportHook)
        self.assertIs(sys.meta_path[0], first)
        self.assertEqual(sum(1 for finder in sys.meta_path if finder is first), 1)

    def test_uninstall(self) -> None:
        hook = install_import_hook(Registry())
        uninstall_import_hook()
        self.assertNotIn(hook, sys.meta_path)
        uninstall_import_hook()


if __name__ == '__main__':
    unittest.main()
