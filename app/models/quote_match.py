"""
QuoteMatch Model
Stores similarity matches between a quote and comparable prior quotes
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey,
    UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.sql import func
from app.database import Base, JSONVariant


class QuoteMatch(Base):
    """
    Result of comparing a source quote to one candidate quote.

    One row per (source, matched, algorithm version). Re-running with a new
    algorithm version inserts new rows; rows of older versions are kept for
    audit and side-by-side comparison. Re-running the same version upserts.
    """
    __tablename__ = "quote_matches"

    # Primary Key
    match_id = Column(Integer, primary_key=True, index=True)

    # Foreign Keys
    source_quote_id = Column(Integer, ForeignKey("shipping_quotes.quote_id"), nullable=False, index=True)
    matched_quote_id = Column(Integer, ForeignKey("shipping_quotes.quote_id"), nullable=False, index=True)

    # Similarity
    similarity_score = Column(Numeric(5, 4), nullable=False)  # 0.0000 to 1.0000
    match_criteria = Column(JSONVariant, nullable=False)
    """
    Per-criterion scores for criteria present on both quotes only:
    {"origin": 1.0, "destination": 0.6, "weight": 0.92, "service_type": 1.0}
    Absent criteria are listed in scoring_details["absent_criteria"].
    """

    # Price suggestion (from the run's PriceRecommender output)
    suggested_price = Column(Numeric(12, 2), nullable=True)
    price_confidence = Column(Numeric(5, 4), nullable=True)

    # Ranking within the run
    rank = Column(Integer, nullable=True)

    # Explainability JSON (weights, absent criteria, candidate summary)
    scoring_details = Column(JSONVariant, nullable=True)

    # Metadata
    match_algorithm_version = Column(String(20), nullable=False, default="v1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "source_quote_id", "matched_quote_id", "match_algorithm_version",
            name="uq_quote_match_pair_version",
        ),
        CheckConstraint("source_quote_id != matched_quote_id", name="chk_different_quotes"),
        CheckConstraint("similarity_score >= 0 AND similarity_score <= 1", name="chk_similarity_range"),
        CheckConstraint(
            "price_confidence IS NULL OR (price_confidence >= 0 AND price_confidence <= 1)",
            name="chk_confidence_range",
        ),
        Index("idx_quote_matches_source_version", "source_quote_id", "match_algorithm_version"),
    )

    def __repr__(self):
        return (
            f"<QuoteMatch(match_id={self.match_id}, source={self.source_quote_id}, "
            f"matched={self.matched_quote_id}, score={self.similarity_score})>"
        )
