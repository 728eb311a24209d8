"""
Correlation ID Middleware
Request tracing from the HTTP request through queued matching jobs
"""

from contextlib import contextmanager
from typing import Optional

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id

__all__ = ["CorrelationIdMiddleware", "get_correlation_id", "use_correlation_id"]


def get_correlation_id() -> str:
    """
    Correlation ID of the current request, or 'none' outside one.

    Passed along with Dramatiq messages because the worker runs outside the
    request's async context.
    """
    return correlation_id.get() or 'none'


@contextmanager
def use_correlation_id(value: Optional[str]):
    """Make `value` the current correlation ID for the duration of the block."""
    token = correlation_id.set(value if value and value != 'none' else None)
    try:
        yield
    finally:
        correlation_id.reset(token)
