"""
Quote Matching Actor
Dramatiq actor that runs the matching engine for one quote in the background
"""

from typing import Any, Dict, Iterable, Optional

import dramatiq
import structlog

from app.actors import broker

logger = structlog.get_logger()


def should_retry(retries_so_far: int, exception: Exception) -> bool:
    """
    Retry only transient storage failures.

    Validation and not-found errors will fail the same way on every attempt.
    """
    # Lazy import to avoid import-time dependencies
    from sqlalchemy.exc import OperationalError
    from app.errors import StorageError

    if isinstance(exception, (StorageError, OperationalError, ConnectionError, TimeoutError)):
        will_retry = retries_so_far < 3
        logger.info("retryable_exception",
                    exception_type=type(exception).__name__,
                    retries=retries_so_far,
                    will_retry=will_retry)
        return will_retry

    logger.info("non_retryable_exception",
                exception_type=type(exception).__name__,
                retries=retries_so_far)
    return False


@dramatiq.actor(
    broker=broker,
    max_retries=3,
    min_backoff=5000,  # 5 seconds
    max_backoff=60000,  # 1 minute
    retry_when=should_retry,
    queue_name="quote_matching"
)
def match_quote(
    quote_id: int,
    algorithm_version: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Compute and persist matches and a price recommendation for one quote.

    Runs are upserts keyed on (source, matched, version), so a retried
    message leaves the same rows behind as a single successful run.

    Args:
        quote_id: ShippingQuote.quote_id to match
        algorithm_version: Profile to score with (settings default when None)
        correlation_id: ID of the request that queued the job, for log correlation

    Returns:
        dict with match_count, suggested_price and price_confidence
    """
    # Lazy imports to avoid circular dependencies and import-time side effects
    from app.database import SessionLocal
    from app.middleware import use_correlation_id
    from app.services.ignore_list import get_default_cache
    from app.services.quote_matching import QuoteMatchingService

    if SessionLocal is None:
        logger.error("match_quote_no_database", quote_id=quote_id)
        raise RuntimeError("Database not configured")

    logger.info("match_quote_start", quote_id=quote_id,
                algorithm_version=algorithm_version, correlation_id=correlation_id)

    db = SessionLocal()
    try:
        with use_correlation_id(correlation_id):
            service = QuoteMatchingService(db, ignore_list=get_default_cache())
            run = service.compute_matches(quote_id, algorithm_version)

        result = {
            "quote_id": quote_id,
            "algorithm_version": run.algorithm_version,
            "match_count": len(run.matches),
            "suggested_price": run.recommendation.suggested_price,
            "price_confidence": run.recommendation.price_confidence,
        }
        logger.info("match_quote_complete", **result)
        return result

    except Exception as e:
        logger.error("match_quote_failed",
                     quote_id=quote_id,
                     error=str(e),
                     exception_type=type(e).__name__)
        raise

    finally:
        db.close()


def enqueue_matching(quote_ids: Iterable[int], algorithm_version: Optional[str] = None) -> int:
    """Send one match_quote message per quote; returns the number queued."""
    from app.middleware import get_correlation_id

    current = get_correlation_id()
    count = 0
    for quote_id in quote_ids:
        match_quote.send(quote_id, algorithm_version, current)
        count += 1
    logger.info("matching_enqueued", count=count, algorithm_version=algorithm_version)
    return count
