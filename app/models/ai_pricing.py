"""
AIPricingRecommendation Model
Price recommendation derived from the top matches of a matching run
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func
from app.database import Base, JSONVariant


class AIPricingRecommendation(Base):
    """
    Latest recommendation per (quote, algorithm version).

    Upserted on every run, including runs with no matches (match_count = 0,
    prices NULL), so the read side can tell "no comparable history" apart
    from "never computed".
    """
    __tablename__ = "ai_pricing_recommendations"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # References
    quote_id = Column(Integer, ForeignKey("shipping_quotes.quote_id"), nullable=False, index=True)
    algorithm_version = Column(String(20), nullable=False)

    # Prices
    recommended_price = Column(Numeric(12, 2), nullable=True)
    target_price = Column(Numeric(12, 2), nullable=True)
    floor_price = Column(Numeric(12, 2), nullable=True)
    ceiling_price = Column(Numeric(12, 2), nullable=True)

    # Confidence
    price_confidence = Column(Numeric(5, 4), nullable=True)
    confidence_label = Column(String(10), nullable=True)  # HIGH, MEDIUM, LOW

    # Explainability
    reasoning = Column(Text, nullable=True)
    match_count = Column(Integer, nullable=False, default=0)
    contributing_matches = Column(JSONVariant, nullable=True)
    """
    [{"matched_quote_id": 17, "match_id": 301, "price": 1250.0,
      "price_source": "final_agreed", "similarity": 0.91, "weight": 0.5421, "job_won": true}, ...]
    """

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("quote_id", "algorithm_version", name="uq_ai_pricing_quote_version"),
        Index("idx_ai_pricing_updated", "quote_id", "updated_at"),
    )

    def __repr__(self):
        return (
            f"<AIPricingRecommendation(quote_id={self.quote_id}, version='{self.algorithm_version}', "
            f"price={self.recommended_price}, confidence={self.price_confidence})>"
        )
