"""
Feedback Store

Captures thumbs-up/down feedback on individual quote matches and exposes
read-only aggregates for later weight recalibration.

One row per (match, user). Re-submitting updates the row in place with a
single INSERT ... ON CONFLICT DO UPDATE, so concurrent submissions from the
same user never produce duplicates. Rows are never deleted.
"""

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

import structlog
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.database import insert_for
from app.errors import NotFoundError, StorageError, ValidationError
from app.models import ANONYMOUS_USER, VALID_FEEDBACK_REASONS, QuoteMatch, QuoteMatchFeedback
from app.services.quote_repository import validate_id

logger = structlog.get_logger(__name__)

VALID_RATINGS = (1, -1)
MAX_USER_ID_LENGTH = 255


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _round(value, digits: int) -> Optional[float]:
    return round(float(value), digits) if value is not None else None


class FeedbackStore:
    """
    Usage:
        store = FeedbackStore(db)
        row = store.record(match_id=301, rating=1, user_id="analyst@example.com",
                           reason="good_match", actual_price_used=1250)
        rows = store.list_for_match(301)
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self._clock = clock

    def record(
        self,
        match_id: int,
        rating: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        actual_price_used: Optional[float] = None,
    ) -> QuoteMatchFeedback:
        """
        Insert or update this user's feedback on a match.

        Args:
            match_id: QuoteMatch.match_id
            rating: exactly 1 (thumbs up) or -1 (thumbs down); bools are rejected
            user_id: submitting user, None for anonymous
            reason: one of VALID_FEEDBACK_REASONS
            notes: free text
            actual_price_used: price the user actually quoted, >= 0

        Returns:
            The stored row after the upsert

        Raises:
            ValidationError: any argument out of range (nothing is written)
            NotFoundError: match does not exist
            StorageError: database write failed
        """
        validate_id(match_id, "match_id")
        stored_user = self._validate_user(user_id)
        self._validate_rating(rating)
        if reason is not None and reason not in VALID_FEEDBACK_REASONS:
            raise ValidationError(
                f"feedback_reason must be one of {', '.join(VALID_FEEDBACK_REASONS)} (got {reason!r})",
                field="feedback_reason",
            )
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("feedback_notes must be a string", field="feedback_notes")
        if actual_price_used is not None:
            if isinstance(actual_price_used, bool) or not isinstance(actual_price_used, (int, float, Decimal)):
                raise ValidationError("actual_price_used must be a number", field="actual_price_used")
            if actual_price_used < 0:
                raise ValidationError("actual_price_used must not be negative", field="actual_price_used")

        log = logger.bind(match_id=match_id, user_id=stored_user or None)

        if self.db.query(QuoteMatch.match_id).filter(QuoteMatch.match_id == match_id).first() is None:
            raise NotFoundError("Match", match_id)

        now = self._clock()
        try:
            stmt = insert_for(self.db, QuoteMatchFeedback).values(
                match_id=match_id,
                user_id=stored_user,
                rating=rating,
                feedback_reason=reason,
                feedback_notes=notes,
                actual_price_used=actual_price_used,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["match_id", "user_id"],
                set_={
                    "rating": stmt.excluded.rating,
                    "feedback_reason": stmt.excluded.feedback_reason,
                    "feedback_notes": stmt.excluded.feedback_notes,
                    "actual_price_used": stmt.excluded.actual_price_used,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("feedback_write_failed", error=str(e))
            raise StorageError("feedback write", e) from e

        row = self.db.query(QuoteMatchFeedback).filter(
            QuoteMatchFeedback.match_id == match_id,
            QuoteMatchFeedback.user_id == stored_user
        ).one()
        self.db.refresh(row)

        log.info("feedback_recorded", feedback_id=row.feedback_id, rating=rating, reason=reason)
        return row

    def list_for_match(self, match_id: int) -> List[QuoteMatchFeedback]:
        """All feedback for a match, most recently updated first. Empty if none."""
        validate_id(match_id, "match_id")
        return self.db.query(QuoteMatchFeedback).filter(
            QuoteMatchFeedback.match_id == match_id
        ).order_by(
            QuoteMatchFeedback.updated_at.desc(),
            QuoteMatchFeedback.feedback_id.desc(),
        ).all()

    def statistics(
        self,
        algorithm_version: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Optional[float]]:
        """
        Aggregate feedback joined with the rated matches.

        avg_price_error is the mean |suggested_price - actual_price_used| over
        feedback that reported an actual price.
        """
        thumbs_up = func.count(case((QuoteMatchFeedback.rating == 1, 1)))
        thumbs_down = func.count(case((QuoteMatchFeedback.rating == -1, 1)))
        price_error = case(
            (
                QuoteMatchFeedback.actual_price_used.isnot(None),
                func.abs(QuoteMatch.suggested_price - QuoteMatchFeedback.actual_price_used),
            ),
        )

        query = self.db.query(
            func.count(QuoteMatchFeedback.feedback_id),
            thumbs_up,
            thumbs_down,
            func.avg(QuoteMatchFeedback.rating),
            func.avg(QuoteMatch.similarity_score),
            func.avg(price_error),
            func.count(QuoteMatchFeedback.actual_price_used),
        ).join(QuoteMatch, QuoteMatchFeedback.match_id == QuoteMatch.match_id)

        if algorithm_version:
            query = query.filter(QuoteMatch.match_algorithm_version == algorithm_version)
        if start_date is not None:
            query = query.filter(QuoteMatchFeedback.updated_at >= start_date)
        if end_date is not None:
            query = query.filter(QuoteMatchFeedback.updated_at <= end_date)

        total, up, down, avg_rating, avg_similarity, avg_error, price_count = query.one()
        return {
            "total_feedback": total,
            "thumbs_up": up,
            "thumbs_down": down,
            "avg_rating": _round(avg_rating, 4),
            "avg_similarity_score": _round(avg_similarity, 4),
            "approval_rate": round(up / total, 4) if total else None,
            "avg_price_error": _round(avg_error, 2),
            "price_feedback_count": price_count,
        }

    def breakdown_by_reason(self) -> List[Dict]:
        """Counts per (reason, rating), most common first."""
        count = func.count(QuoteMatchFeedback.feedback_id)
        rows = self.db.query(
            QuoteMatchFeedback.feedback_reason,
            QuoteMatchFeedback.rating,
            count,
        ).filter(
            QuoteMatchFeedback.feedback_reason.isnot(None)
        ).group_by(
            QuoteMatchFeedback.feedback_reason,
            QuoteMatchFeedback.rating,
        ).order_by(
            count.desc(),
            QuoteMatchFeedback.feedback_reason.asc(),
            QuoteMatchFeedback.rating.desc(),
        ).all()

        return [{"feedback_reason": reason, "rating": rating, "count": n} for reason, rating, n in rows]

    def criteria_performance(self, algorithm_version: Optional[str] = None) -> List[Dict]:
        """
        Average per-criterion score of rated matches, split by rating.

        Shows which criteria separate good matches from bad ones. Averaged in
        Python because match_criteria is JSONB on PostgreSQL and JSON text on SQLite.
        """
        query = self.db.query(QuoteMatchFeedback.rating, QuoteMatch).join(
            QuoteMatch, QuoteMatchFeedback.match_id == QuoteMatch.match_id
        )
        if algorithm_version:
            query = query.filter(QuoteMatch.match_algorithm_version == algorithm_version)

        sums = defaultdict(lambda: defaultdict(float))
        counts = defaultdict(lambda: defaultdict(int))
        overall = defaultdict(list)
        for rating, match in query.all():
            overall[rating].append(float(match.similarity_score))
            for name, score in (match.match_criteria or {}).items():
                if score is None:
                    continue
                sums[rating][name] += float(score)
                counts[rating][name] += 1

        result = []
        for rating in sorted(overall, reverse=True):
            scores = overall[rating]
            result.append({
                "rating": rating,
                "sample_count": len(scores),
                "avg_overall_score": round(sum(scores) / len(scores), 4),
                "avg_criteria_scores": {
                    name: round(sums[rating][name] / counts[rating][name], 4)
                    for name in sorted(sums[rating])
                },
            })
        return result

    @staticmethod
    def _validate_rating(rating) -> None:
        if isinstance(rating, bool) or not isinstance(rating, int) or rating not in VALID_RATINGS:
            raise ValidationError(f"rating must be 1 or -1 (got {rating!r})", field="rating")

    @staticmethod
    def _validate_user(user_id) -> str:
        if user_id is None:
            return ANONYMOUS_USER
        if not isinstance(user_id, str):
            raise ValidationError("user_id must be a string", field="user_id")
        user_id = user_id.strip()
        if not user_id:
            raise ValidationError("user_id must not be blank; omit it for anonymous feedback", field="user_id")
        if len(user_id) > MAX_USER_ID_LENGTH:
            raise ValidationError(
                f"user_id must be at most {MAX_USER_ID_LENGTH} characters", field="user_id"
            )
        return user_id
