"""
Tests for the match_quote Dramatiq actor

The actor is called directly (synchronously) against the in-memory database;
enqueueing is checked against the StubBroker used when REDIS_URL is unset.
"""

import pytest
from sqlalchemy.exc import OperationalError

from app import database
from app.actors.quote_matcher import enqueue_matching, match_quote, should_retry
from app.errors import NotFoundError, StorageError, ValidationError
from app.middleware import use_correlation_id
from app.models import QuoteMatch
from app.services import ignore_list as ignore_list_module


@pytest.fixture
def worker_db(monkeypatch, session_factory):
    monkeypatch.setattr(database, "SessionLocal", session_factory)
    monkeypatch.setattr(ignore_list_module, "_default_cache", None)
    return session_factory


@pytest.fixture
def stub_queue():
    broker = match_quote.broker
    broker.flush_all()
    yield broker.queues[match_quote.queue_name]
    broker.flush_all()


class TestMatchQuoteActor:

    def test_runs_and_persists(self, worker_db, db_session, make_quote):
        make_quote(final_agreed_price=800)
        target = make_quote()

        result = match_quote(target.quote_id, "v2", "4f1f6c1e0b2a4a7c9d3e5f6a7b8c9d0e")

        assert result["match_count"] == 1
        assert result["algorithm_version"] == "v2"
        assert result["suggested_price"] == pytest.approx(800.0)
        assert db_session.query(QuoteMatch).filter_by(source_quote_id=target.quote_id).count() == 1

    def test_retry_leaves_same_rows(self, worker_db, db_session, make_quote):
        make_quote()
        target = make_quote()

        match_quote(target.quote_id)
        match_quote(target.quote_id)

        assert db_session.query(QuoteMatch).count() == 1

    def test_ignore_list_read_from_configuration(self, worker_db, db_session, make_quote):
        make_quote(sender="skip@example.com")
        target = make_quote()
        ignore_list_module.set_configuration_value(db_session, "Ignored_Emails", ["skip@example.com"])

        assert match_quote(target.quote_id)["match_count"] == 0

    def test_missing_quote_raises(self, worker_db):
        with pytest.raises(NotFoundError):
            match_quote(4040)

    def test_no_database(self, monkeypatch):
        monkeypatch.setattr(database, "SessionLocal", None)

        with pytest.raises(RuntimeError):
            match_quote(1)


class TestShouldRetry:

    def test_storage_errors_retry(self):
        assert should_retry(0, StorageError("match persistence"))
        assert should_retry(2, OperationalError("SELECT 1", {}, Exception("gone")))

    def test_gives_up_after_three(self):
        assert not should_retry(3, StorageError("match persistence"))

    def test_validation_errors_do_not_retry(self):
        assert not should_retry(0, ValidationError("bad", field="quote_id"))
        assert not should_retry(0, NotFoundError("Quote", 1))


class TestEnqueueMatching:

    def test_one_message_per_quote(self, stub_queue):
        assert enqueue_matching([1, 2, 3], "v1") == 3
        assert stub_queue.qsize() == 3

    def test_correlation_id_forwarded(self, stub_queue):
        with use_correlation_id("4f1f6c1e0b2a4a7c9d3e5f6a7b8c9d0e"):
            enqueue_matching([7])

        message = stub_queue.get_nowait()
        assert b"4f1f6c1e0b2a4a7c9d3e5f6a7b8c9d0e" in message
