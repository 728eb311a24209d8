"""
Tests for JSON logging with correlation IDs
"""

import json
import logging

from app.middleware import get_correlation_id, use_correlation_id
from app.services.monitoring.logging import SERVICE_NAME, CorrelationJsonFormatter, setup_logging


def _format(message: str) -> dict:
    formatter = CorrelationJsonFormatter('%(levelname)s %(name)s %(message)s')
    record = logging.LogRecord("quote_matcher", logging.INFO, __file__, 1, message, None, None)
    return json.loads(formatter.format(record))


class TestCorrelationJsonFormatter:

    def test_outside_request(self):
        entry = _format("hello")

        assert entry["message"] == "hello"
        assert entry["correlation_id"] == "none"
        assert entry["service"] == SERVICE_NAME

    def test_inside_correlation_scope(self):
        with use_correlation_id("abc123"):
            entry = _format("matched")
            assert get_correlation_id() == "abc123"

        assert entry["correlation_id"] == "abc123"
        assert get_correlation_id() == "none"


class TestSetupLogging:

    def test_idempotent(self):
        root = logging.getLogger()
        before = list(root.handlers)
        try:
            first = setup_logging("debug")
            second = setup_logging()

            assert first is second
            assert sum(isinstance(h.formatter, CorrelationJsonFormatter) for h in root.handlers) == 1
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
