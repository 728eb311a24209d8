"""
QuoteSnapshot Schema
Option-typed, immutable view of a shipping quote handed to the matching pipeline
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class QuoteSnapshot(BaseModel):
    """
    Read-only quote as seen by FeatureExtractor.

    Every comparable field is Optional: None means "not extracted" and is
    treated as an absent criterion, never as zero.
    """
    quote_id: int
    sender_email: Optional[str] = None

    # Origin
    origin_city: Optional[str] = None
    origin_state_province: Optional[str] = None
    origin_country: Optional[str] = None
    origin_latitude: Optional[float] = None
    origin_longitude: Optional[float] = None

    # Destination
    destination_city: Optional[str] = None
    destination_state_province: Optional[str] = None
    destination_country: Optional[str] = None
    destination_latitude: Optional[float] = None
    destination_longitude: Optional[float] = None

    # Cargo
    cargo_description: Optional[str] = None
    cargo_weight: Optional[float] = None
    weight_unit: Optional[str] = None
    cargo_length: Optional[float] = None
    cargo_width: Optional[float] = None
    cargo_height: Optional[float] = None
    dimension_unit: Optional[str] = None
    number_of_pieces: Optional[int] = None
    hazardous_material: Optional[bool] = None

    # Service
    service_type: Optional[str] = None

    # Pricing
    initial_quote_amount: Optional[float] = None
    final_agreed_price: Optional[float] = None
    job_won: Optional[bool] = None

    created_at: Optional[datetime] = Field(None, description="Used for recency tie-breaks")

    class Config:
        frozen = True
        from_attributes = True

    @classmethod
    def from_quote(cls, quote) -> "QuoteSnapshot":
        """Build a snapshot from a ShippingQuote row (sender taken from its email)."""
        snapshot = cls.model_validate(quote)
        sender = quote.email.sender_email if getattr(quote, "email", None) else None
        return snapshot.model_copy(update={"sender_email": sender})
