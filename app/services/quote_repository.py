"""
Quote Repository
Read-only access to shipping quotes, returned as QuoteSnapshot instances
"""

from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models import ShippingQuote, QuoteSnapshot

logger = structlog.get_logger(__name__)


def validate_id(value, field: str) -> int:
    """Positive integer identifier; bools and other types are rejected."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer (got {value!r})", field=field)
    return value


class QuoteRepository:
    """
    Loads the target quote and its candidate pool.

    The pool is every other quote created no later than the target, most
    recent first, capped at `limit` rows.
    """

    def __init__(self, db: Session):
        self.db = db

    def exists(self, quote_id: int) -> bool:
        return self.db.query(ShippingQuote.quote_id).filter(
            ShippingQuote.quote_id == quote_id
        ).first() is not None

    def get_snapshot(self, quote_id: int) -> QuoteSnapshot:
        """
        Raises:
            ValidationError: malformed quote id
            NotFoundError: no such quote
        """
        validate_id(quote_id, "quote_id")
        quote = self.db.query(ShippingQuote).filter(ShippingQuote.quote_id == quote_id).first()
        if quote is None:
            raise NotFoundError("Quote", quote_id)
        return QuoteSnapshot.from_quote(quote)

    def candidate_pool(self, target: QuoteSnapshot, limit: Optional[int] = None) -> List[QuoteSnapshot]:
        query = self.db.query(ShippingQuote).filter(ShippingQuote.quote_id != target.quote_id)
        if target.created_at is not None:
            query = query.filter(ShippingQuote.created_at <= target.created_at)

        query = query.order_by(ShippingQuote.created_at.desc(), ShippingQuote.quote_id.asc())
        if limit:
            query = query.limit(limit)

        candidates = [QuoteSnapshot.from_quote(q) for q in query.all()]
        logger.debug("candidate_pool_loaded", quote_id=target.quote_id, count=len(candidates), limit=limit)
        return candidates
