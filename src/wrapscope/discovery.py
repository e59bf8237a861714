"""
wrapscope.discovery
~~~~~~~~~~~~~~~~~~~

Reads the lists of callables to wrap.

Name-list format, one qualified name per line:

    # comment line
    billing.invoices.render($invoice, %options)   # inline signature
    billing.invoices.Invoice.total

Blank lines are ignored and ``#`` starts a comment (unless it is inside a
quoted slice key). Files can be given directly, as glob patterns, or in
the WRAPSCOPE_FILE environment variable as a colon-separated list.
"""

from __future__ import annotations

import glob
import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path
from typing import NamedTuple

from .config import get_config
from .exceptions import NameListError

logger = logging.getLogger("wrapscope.discovery")

__all__ = [
    "ENV_VAR",
    "WrapEntry",
    "parse_name_list",
    "read_name_file",
    "expand_patterns",
    "entries_from_env",
    "load_entries",
]

ENV_VAR = "WRAPSCOPE_FILE"

_LINE_RE = re.compile(r'^(?P<name>[A-Za-z_][\w.:]*)\s*(?P<signature>\(.*\))?$', re.DOTALL)


class WrapEntry(NamedTuple):
    """A requested qualified name and its optional signature text."""
    name: str
    signature: str | None = None


def _strip_comment(line: str) -> str:
    quote = None
    escaped = False
    for i, char in enumerate(line):
        if escaped:
            escaped = False
        elif char == '\\':
            escaped = True
        elif quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == '#':
            return line[:i]
    return line


def parse_name_list(text: str, source: str = "<string>") -> list[WrapEntry]:
    """
    Parse name-list text.

    Malformed lines are logged and skipped.

    Args:
        text: File contents
        source: Where the text came from, for log messages

    Returns:
        Entries in file order
    """
    entries = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = _strip_comment(line).strip()
        if not line:
            continue

        match = _LINE_RE.match(line)
        if match is None:
            logger.warning(f"{source}:{lineno}: not a qualified name: {line!r}")
            continue

        entries.append(WrapEntry(match.group('name'), match.group('signature')))
    return entries


def read_name_file(path: str | os.PathLike[str]) -> list[WrapEntry]:
    """
    Read one name-list file.

    Raises:
        NameListError: If the file cannot be read
    """
    try:
        text = Path(path).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise NameListError(f"Cannot read name list {os.fspath(path)!r}: {e}") from e
    return parse_name_list(text, source=os.fspath(path))


def expand_patterns(patterns: Iterable[str]) -> list[str]:
    """
    Expand glob patterns into file paths.

    Literal paths are kept even when missing, so reading them reports the
    problem; wildcard patterns that match nothing are dropped. The result is
    de-duplicated and keeps the order patterns were given in.
    """
    paths: list[str] = []
    seen: set[str] = set()
    for pattern in patterns:
        pattern = os.path.expanduser(pattern.strip())
        if not pattern:
            continue
        if glob.has_magic(pattern):
            matches = sorted(glob.glob(pattern))
            if not matches:
                logger.debug(f"Pattern {pattern!r} matched no files")
        else:
            matches = [pattern]
        for path in matches:
            if path not in seen:
                seen.add(path)
                paths.append(path)
    return paths


def entries_from_env(var: str = ENV_VAR) -> list[WrapEntry]:
    """Read every name list named by a colon-separated environment variable."""
    patterns = [part for part in os.environ.get(var, "").split(":") if part.strip()]
    return [entry for path in expand_patterns(patterns) for entry in read_name_file(path)]


def load_entries(patterns: Iterable[str] = (), include_configured: bool = True) -> list[WrapEntry]:
    """
    Read name lists from explicit patterns plus the configured ``files``.

    ``files`` defaults to the WRAPSCOPE_FILE environment variable.

    Raises:
        NameListError: If a named file cannot be read
    """
    all_patterns = list(patterns)
    if include_configured:
        all_patterns.extend(get_config().files)

    entries = []
    for path in expand_patterns(all_patterns):
        found = read_name_file(path)
        logger.debug(f"Loaded {len(found)} names from {path}")
        entries.extend(found)
    return entries
