"""
wrapscope.cli
~~~~~~~~~~~~~

Command-line interface for running Python scripts with wrapped callables.

Examples:
    !!! example "Basic usage"
        ```bash
        wrapscope-run -f conf/wrap.txt my_service.py
        ```

    !!! example "Names from the environment, spans on stderr"
        ```bash
        WRAPSCOPE_FILE="conf/*.wrap" wrapscope-run --log-spans -v my_service.py --port 8080
        ```

Execution Flow:
    1. Parse CLI arguments.
    2. Configure wrapscope.
    3. Load the name lists and wrap what is already importable.
    4. Install the import hook so the rest is wrapped as it is imported.
    5. Execute the target script.
    6. Report the names that were never found.

Functions defined in the script itself (``__main__``) cannot be wrapped
this way; put them in a module the script imports.
"""

from __future__ import annotations

import sys
import os
import logging
import argparse
import runpy

from .config import configure
from .core import add_span_listener, log_span
from .callstack import install_stack_shim
from .discovery import load_entries
from .exceptions import NameListError
from .integrations import install_import_hook
from .registry import get_registry

__all__ = [
    "main",
    "setup_logging",
    "run_script",
]

logger = logging.getLogger("wrapscope")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for wrapscope."""
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        '[wrapscope] %(levelname)s %(name)s: %(message)s'
    )
    handler.setFormatter(formatter)

    wrapscope_logger = logging.getLogger("wrapscope")
    wrapscope_logger.setLevel(level)
    wrapscope_logger.addHandler(handler)
    wrapscope_logger.propagate = False


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='wrapscope-run',
        description='Run a Python script with span-emitting wrappers around listed callables',
        epilog='''
Examples:
    wrapscope-run -f conf/wrap.txt my_service.py
    wrapscope-run -f 'conf/*.wrap' --log-spans my_service.py --service-arg
        ''',
    )

    parser.add_argument(
        '-f', '--file',
        dest='files',
        action='append',
        default=[],
        metavar='FILE',
        help='Name-list file or glob; repeatable (also read from $WRAPSCOPE_FILE)',
    )
    parser.add_argument(
        '--no-warn-unresolved',
        action='store_true',
        help='Do not warn about requested callables that were never found',
    )
    parser.add_argument(
        '--hide-frames',
        action='store_true',
        help='Hide wrapper frames from inspect.stack() and traceback.extract_stack()',
    )
    parser.add_argument(
        '--log-spans',
        action='store_true',
        help='Log every finished span as a JSON line',
    )

    # Logging
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging',
    )
    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Disable wrapscope logging',
    )

    parser.add_argument(
        '--disable',
        action='store_true',
        help='Run the script without wrapping anything',
    )

    # Target script (everything after this is passed to the script)
    parser.add_argument(
        'script',
        help='Path to the Python script to run',
    )
    parser.add_argument(
        'script_args',
        nargs=argparse.REMAINDER,
        help='Arguments to pass to the script',
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the wrapscope-run CLI.

    Returns:
        Process exit code
    """
    args = parse_args(argv)

    config_kwargs = {}
    if not args.quiet:
        setup_logging(verbose=args.verbose)
        if args.verbose:
            # configure() sets the wrapscope logger level from log_level
            config_kwargs['log_level'] = 'DEBUG'

    if args.disable:
        logger.info("Instrumentation disabled, running in passthrough mode")
        configure(enabled=False, **config_kwargs)
        return run_script(args.script, args.script_args)

    if args.no_warn_unresolved:
        config_kwargs['warn_unresolved'] = False
    if args.hide_frames:
        config_kwargs['hide_wrapper_frames'] = True
    if args.log_spans:
        config_kwargs['log_spans'] = True
    config = configure(**config_kwargs)

    try:
        entries = load_entries(args.files)
    except NameListError as e:
        logger.error(str(e))
        return 2

    if config.log_spans:
        add_span_listener(log_span)
        logging.getLogger("wrapscope.spans").setLevel(logging.INFO)

    if config.hide_wrapper_frames:
        install_stack_shim()

    # Wrap what is already imported, then catch the rest on import
    registry = get_registry()
    wrapped = registry.install_many(entries)
    install_import_hook(registry)
    logger.info(f"{len(wrapped)} of {len(entries)} callables wrapped before start")

    logger.info(f"Running script: {args.script}")
    try:
        return run_script(args.script, args.script_args)
    finally:
        registry.report_unresolved()


def run_script(script_path: str, script_args: list[str]) -> int:
    """
    Run the target Python script as ``__main__``.

    Args:
        script_path: Path to the script
        script_args: Arguments to pass to the script

    Returns:
        The script's exit code
    """
    saved_argv = sys.argv
    sys.argv = [script_path] + list(script_args)

    # Add script directory to sys.path
    script_dir = os.path.dirname(os.path.abspath(script_path))
    if script_dir not in sys.path:
        sys.path.insert(0, script_dir)

    try:
        runpy.run_path(script_path, run_name='__main__')
    except SystemExit as e:
        if e.code is None:
            return 0
        if isinstance(e.code, int):
            return e.code
        print(e.code, file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Script execution failed: {e}", exc_info=True)
        return 1
    finally:
        sys.argv = saved_argv
    return 0


if __name__ == '__main__':
    sys.exit(main())
