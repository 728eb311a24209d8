"""
Dramatiq Actors - Background Matching

Broker selection:
- RedisBroker when REDIS_URL is set (API and worker share one Redis namespace)
- StubBroker otherwise, so the API can start and tests can inspect queued
  messages without Redis

Usage:
    from app.actors import broker, match_quote
"""

from typing import Optional

import dramatiq
import structlog

from app.config import settings

logger = structlog.get_logger()

BROKER_NAMESPACE = "quote_matcher"
DEAD_MESSAGE_TTL_MS = 7 * 24 * 60 * 60 * 1000  # Failed matching jobs kept a week for inspection


def setup_broker(redis_url: Optional[str] = None) -> dramatiq.Broker:
    """
    Create the broker and make it the global Dramatiq broker.

    Args:
        redis_url: Overrides settings.redis_url (None = use settings)
    """
    redis_url = redis_url if redis_url is not None else settings.redis_url

    if redis_url:
        from dramatiq.brokers.redis import RedisBroker

        broker = RedisBroker(
            url=redis_url,
            namespace=BROKER_NAMESPACE,
            max_connections=10,
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True,
            dead_message_ttl=DEAD_MESSAGE_TTL_MS,
        )
    else:
        from dramatiq.brokers.stub import StubBroker

        broker = StubBroker()

    dramatiq.set_broker(broker)
    logger.info("broker_configured", type=type(broker).__name__, namespace=BROKER_NAMESPACE)
    return broker


broker = setup_broker()

# Registers match_quote with the broker
from app.actors.quote_matcher import match_quote, enqueue_matching  # noqa: F401, E402
