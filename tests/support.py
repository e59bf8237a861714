"""
Shared test fixtures.
"""

from __future__ import annotations

import unittest

from wrapscope.config import reset_config
from wrapscope.core import InMemorySpanCollector, TracerProvider, add_span_listener
from wrapscope.models import Span


class SpanTestCase(unittest.TestCase):
    """Fresh configuration and provider per test, spans collected in memory."""

    def setUp(self) -> None:
        reset_config()
        TracerProvider.reset()
        self.collector = InMemorySpanCollector()
        add_span_listener(self.collector)

    def tearDown(self) -> None:
        TracerProvider.reset()
        reset_config()

    def only_span(self) -> Span:
        spans = self.collector.spans
        self.assertEqual(len(spans), 1, f"expected one span, got {[s.name for s in spans]}")
        return spans[0]
