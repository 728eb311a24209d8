"""
QuoteMatchFeedback Model
Human feedback on quote matches, captured for offline weight recalibration
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, SmallInteger, Text, ForeignKey,
    UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.sql import func
from app.database import Base

# Stored user_id for anonymous submissions. Non-null so (match_id, user_id)
# uniqueness holds for anonymous feedback too.
ANONYMOUS_USER = ""

VALID_FEEDBACK_REASONS = (
    "good_match",
    "excellent_suggestion",
    "wrong_route",
    "different_cargo",
    "price_outdated",
    "weight_mismatch",
    "service_mismatch",
    "different_client_type",
    "other",
)


class QuoteMatchFeedback(Base):
    """
    One row per (match, user).

    A second submission by the same user for the same match updates the
    row in place and refreshes updated_at. Rows are never deleted.
    """
    __tablename__ = "quote_match_feedback"

    # Primary Key
    feedback_id = Column(Integer, primary_key=True, index=True)

    # Keys
    match_id = Column(Integer, ForeignKey("quote_matches.match_id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, default=ANONYMOUS_USER, server_default="")

    # Feedback
    rating = Column(SmallInteger, nullable=False)  # -1 = thumbs down, 1 = thumbs up
    feedback_reason = Column(String(50), nullable=True)
    feedback_notes = Column(Text, nullable=True)

    # Ground truth for learning
    actual_price_used = Column(Numeric(12, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uq_user_match_feedback"),
        CheckConstraint("rating IN (-1, 1)", name="chk_rating_values"),
        Index("idx_feedback_match_updated", "match_id", "updated_at"),
    )

    @property
    def submitted_by(self):
        """user_id with the anonymous sentinel mapped back to None."""
        return None if self.user_id == ANONYMOUS_USER else self.user_id

    def __repr__(self):
        return f"<QuoteMatchFeedback(id={self.feedback_id}, match_id={self.match_id}, rating={self.rating})>"
