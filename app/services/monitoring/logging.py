"""
Structured JSON Logging with Correlation ID
Provides JSON formatter that automatically injects correlation IDs into all log entries
"""

import logging
import sys

from pythonjsonlogger import jsonlogger
from asgi_correlation_id.context import correlation_id

from app.config import settings

SERVICE_NAME = "freight-quote-matcher"


class CorrelationJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with automatic correlation ID injection.

    Extends python-json-logger to add correlation_id field to every log record.
    The correlation ID is retrieved from async context (set by CorrelationIdMiddleware).
    """

    def add_fields(self, log_record, record, message_dict):
        """
        Add custom fields to log record:
        - correlation_id: From async context or 'none' outside a request
        - service: Application name for multi-service environments
        - environment: Deployment environment (development/production)
        - algorithm_version: Default matching profile of this deployment
        """
        super().add_fields(log_record, record, message_dict)

        log_record['correlation_id'] = correlation_id.get() or 'none'
        log_record['service'] = SERVICE_NAME
        log_record['environment'] = settings.environment
        log_record['algorithm_version'] = settings.match_algorithm_version


def setup_logging(level: str = None):
    """
    Configure structured JSON logging to stdout.

    Safe to call more than once: the handler is only attached the first time.

    Args:
        level: Log level name; defaults to settings.log_level

    Returns:
        logging.Handler: The configured handler (for testing)
    """
    root_logger = logging.getLogger()
    for existing in root_logger.handlers:
        if isinstance(existing.formatter, CorrelationJsonFormatter):
            return existing

    handler = logging.StreamHandler(sys.stdout)

    formatter = CorrelationJsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'asctime': 'timestamp', 'levelname': 'level'},
    )
    handler.setFormatter(formatter)

    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())

    return handler
