"""
Dramatiq Worker Entrypoint

Usage:
    dramatiq app.worker --processes 2 --threads 1 --queues quote_matching

Matching is CPU-bound (scoring up to match_candidate_limit candidates per
message), so scale with processes rather than threads.
"""

import structlog

from app.actors import broker, match_quote
from app.config import settings
from app.database import init_db
from app.services.monitoring.logging import setup_logging

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ]
)
logger = structlog.get_logger()

setup_logging()

# Actors open their own sessions through SessionLocal
init_db()

logger.info("worker_ready",
            broker=type(broker).__name__,
            queue=match_quote.queue_name,
            algorithm_version=settings.match_algorithm_version,
            candidate_limit=settings.match_candidate_limit)
