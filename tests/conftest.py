"""
Shared fixtures: in-memory SQLite session and quote factories.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import QuoteSnapshot, ShippingEmail, ShippingQuote

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0)

# Typical Houston -> Chicago flatbed load
DEFAULT_QUOTE = {
    "origin_city": "Houston",
    "origin_state_province": "TX",
    "origin_country": "USA",
    "destination_city": "Chicago",
    "destination_state_province": "IL",
    "destination_country": "USA",
    "cargo_description": "Excavator on flatbed",
    "cargo_weight": 20000,
    "weight_unit": "kg",
    "cargo_length": 400,
    "cargo_width": 100,
    "cargo_height": 120,
    "dimension_unit": "in",
    "number_of_pieces": 1,
    "hazardous_material": False,
    "service_type": "Flatbed",
}


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads (TestClient runs sync deps in a pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Database session backed by a fresh in-memory schema."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_quote(db_session):
    """
    Factory for persisted ShippingQuote rows.

    Defaults describe a Houston -> Chicago flatbed load; every field can be
    overridden, and `sender` attaches a source email.
    """
    counter = {"n": 0}

    def _make(sender=None, minutes_ago=None, **overrides):
        counter["n"] += 1
        fields = dict(DEFAULT_QUOTE)
        fields.update(overrides)
        if "created_at" not in fields:
            offset = minutes_ago if minutes_ago is not None else 1000 - counter["n"]
            fields["created_at"] = BASE_TIME - timedelta(minutes=offset)

        if sender is not None:
            email = ShippingEmail(sender_email=sender, subject="Quote request")
            db_session.add(email)
            db_session.flush()
            fields["email_id"] = email.email_id

        quote = ShippingQuote(**fields)
        db_session.add(quote)
        db_session.commit()
        return quote

    return _make


@pytest.fixture
def make_snapshot():
    """Factory for QuoteSnapshot objects that never touch the database."""
    counter = {"n": 0}

    def _make(quote_id=None, **overrides):
        counter["n"] += 1
        fields = dict(DEFAULT_QUOTE)
        fields["created_at"] = BASE_TIME - timedelta(minutes=counter["n"])
        fields.update(overrides)
        return QuoteSnapshot(quote_id=quote_id or counter["n"], **fields)

    return _make
