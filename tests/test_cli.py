#!/usr/bin/env python
"""
test_cli.py
~~~~~~~~~~~

Unit tests for the wrapscope-run command.
"""

from __future__ import annotations

import logging
import sys
import tempfile
import textwrap
import unittest
import warnings
from pathlib import Path

from support import SpanTestCase

from wrapscope.callstack import stack_shim_installed, uninstall_stack_shim
from wrapscope.cli import main, parse_args, run_script
from wrapscope.config import get_config
from wrapscope.exceptions import UnresolvedCallableWarning
from wrapscope.integrations import uninstall_import_hook
from wrapscope.registry import reset_registry


class CliTestCase(SpanTestCase):

    def setUp(self) -> None:
        super().setUp()
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name)

        self.write("cli_target.py", """
            def compute(a, b):
                return a + b
        """)
        self.script = self.write("script.py", """
            import sys
            import cli_target

            if cli_target.compute(2, 3) != 5:
                sys.exit(9)
            sys.exit(int(sys.argv[1]) if len(sys.argv) > 1 else None)
        """)
        self.names = self.write("wrap.txt", """
            # traced by the CLI tests
            cli_target.compute($a, $b)
            missing_cli_module.nothing
        """)

        self.saved_path = list(sys.path)
        self.addCleanup(self.restore)

    def write(self, name: str, source: str) -> str:
        path = self.root / name
        path.write_text(textwrap.dedent(source), encoding="utf-8")
        return str(path)

    def restore(self) -> None:
        uninstall_stack_shim()
        uninstall_import_hook()
        reset_registry()
        sys.modules.pop("cli_target", None)
        sys.path[:] = self.saved_path


class TestMain(CliTestCase):

    def test_runs_script_with_wrapped_callables(self) -> None:
        with self.assertWarns(UnresolvedCallableWarning) as cm:
            code = main(["-q", "-f", self.names, self.script, "7"])

        self.assertEqual(code, 7)
        self.assertEqual(cm.warning.names, ["missing_cli_module.nothing"])

        span = self.only_span()
        self.assertEqual(span.name, "cli_target.compute")
        self.assertEqual(span.attributes["arguments.a"], 2)
        self.assertEqual(span.attributes["arguments.b"], 3)
        self.assertEqual(span.attributes["caller.package"], "__main__")
        self.assertEqual(span.attributes["caller.file"], self.script)

    def test_no_warn_unresolved(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            code = main(["-q", "--no-warn-unresolved", "-f", self.names, self.script])
        self.assertEqual(code, 0)
        self.assertEqual(len(self.collector), 1)

    def test_missing_name_file(self) -> None:
        with self.assertLogs("wrapscope", level="ERROR"):
            code = main(["-q", "-f", str(self.root / "absent.txt"), self.script])
        self.assertEqual(code, 2)
        self.assertEqual(len(self.collector), 0)

    def test_disable(self) -> None:
        code = main(["-q", "--disable", "-f", self.names, self.script])
        self.assertEqual(code, 0)
        self.assertFalse(get_config().enabled)
        self.assertEqual(len(self.collector), 0)

    def test_hide_frames(self) -> None:
        main(["-q", "--hide-frames", "--no-warn-unresolved", "-f", self.names, self.script])
        self.assertTrue(stack_shim_installed())

    def keep_logger_state(self) -> None:
        wrapscope_logger = logging.getLogger("wrapscope")
        handlers = list(wrapscope_logger.handlers)
        propagate = wrapscope_logger.propagate
        level = wrapscope_logger.level

        def restore() -> None:
            wrapscope_logger.handlers[:] = handlers
            wrapscope_logger.propagate = propagate
            wrapscope_logger.setLevel(level)

        self.addCleanup(restore)

    def test_verbose_logging_while_script_runs(self) -> None:
        self.keep_logger_state()
        level_script = self.write("level.py", """
            import logging
            import sys

            sys.exit(logging.getLogger("wrapscope").getEffectiveLevel())
        """)

        code = main(["-v", "--no-warn-unresolved", "-f", self.names, level_script])
        self.assertEqual(code, logging.DEBUG)

        code = main(["-v", "--disable", level_script])
        self.assertEqual(code, logging.DEBUG)


class TestRunScript(CliTestCase):

    def test_argv_is_restored(self) -> None:
        saved = sys.argv
        self.assertEqual(run_script(self.script, ["3"]), 3)
        self.assertIs(sys.argv, saved)

    def test_script_failure(self) -> None:
        failing = self.write("failing.py", "raise RuntimeError('script bug')\n")
        with self.assertLogs("wrapscope", level="ERROR"):
            self.assertEqual(run_script(failing, []), 1)

    def test_string_exit_code(self) -> None:
        exiting = self.write("exiting.py", "import sys\nsys.exit('fatal: no config')\n")
        self.assertEqual(run_script(exiting, []), 1)

    def test_keyboard_interrupt(self) -> None:
        interrupted = self.write("interrupted.py", "raise KeyboardInterrupt\n")
        self.assertEqual(run_script(interrupted, []), 130)


class TestParseArgs(unittest.TestCase):

    def test_script_arguments_are_passed_through(self) -> None:
        args = parse_args(["-f", "a.txt", "-f", "b.txt", "--log-spans", "app.py", "--port", "8080", "-v"])
        self.assertEqual(args.files, ["a.txt", "b.txt"])
        self.assertTrue(args.log_spans)
        self.assertFalse(args.verbose)
        self.assertEqual(args.script, "app.py")
        self.assertEqual(args.script_args, ["--port", "8080", "-v"])


if __name__ == '__main__':
    unittest.main()
