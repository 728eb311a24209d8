"""
ShippingQuote / ShippingEmail Models
Quotes extracted from inbound freight emails. Owned by the ingestion side;
the matching engine only reads them.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Float, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class ShippingEmail(Base):
    """
    Source email a quote was extracted from.

    Only the sender address matters to matching (ignore-list lookups).
    """
    __tablename__ = "shipping_emails"

    # Primary Key
    email_id = Column(Integer, primary_key=True, index=True)

    # Envelope
    sender_email = Column(String(255), nullable=True, index=True)
    subject = Column(String(500), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<ShippingEmail(email_id={self.email_id}, sender='{self.sender_email}')>"


class ShippingQuote(Base):
    """
    A shipping request/response record.

    Immutable once finalized. Every comparable field is nullable because
    extraction from free-form emails is lossy; QuoteSnapshot turns these
    into explicit optionals before matching.
    """
    __tablename__ = "shipping_quotes"

    # Primary Key
    quote_id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey("shipping_emails.email_id"), nullable=True, index=True)

    # Origin
    origin_city = Column(String(255), nullable=True)
    origin_state_province = Column(String(100), nullable=True)
    origin_country = Column(String(100), nullable=True)
    origin_latitude = Column(Float, nullable=True)  # Geocoded upstream, optional
    origin_longitude = Column(Float, nullable=True)

    # Destination
    destination_city = Column(String(255), nullable=True)
    destination_state_province = Column(String(100), nullable=True)
    destination_country = Column(String(100), nullable=True)
    destination_latitude = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)

    # Cargo
    cargo_description = Column(Text, nullable=True)
    cargo_weight = Column(Numeric(12, 2), nullable=True)
    weight_unit = Column(String(20), nullable=True)  # kg, lbs, tons
    cargo_length = Column(Numeric(12, 2), nullable=True)
    cargo_width = Column(Numeric(12, 2), nullable=True)
    cargo_height = Column(Numeric(12, 2), nullable=True)
    dimension_unit = Column(String(20), nullable=True)  # in, ft, cm, m
    number_of_pieces = Column(Integer, nullable=True)
    hazardous_material = Column(Boolean, nullable=True)

    # Service
    service_type = Column(String(100), nullable=True)
    quote_status = Column(String(50), nullable=True)

    # Pricing
    initial_quote_amount = Column(Numeric(12, 2), nullable=True)
    final_agreed_price = Column(Numeric(12, 2), nullable=True)
    job_won = Column(Boolean, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    email = relationship("ShippingEmail", lazy="joined")

    def __repr__(self):
        return (
            f"<ShippingQuote(quote_id={self.quote_id}, "
            f"origin='{self.origin_city}', destination='{self.destination_city}')>"
        )
