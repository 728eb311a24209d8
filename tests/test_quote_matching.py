"""
Tests for QuoteMatchingService

Tests cover:
- Candidate pool (only prior quotes, never the target)
- Persisted matches, ranks and explainability payloads
- Idempotent reruns and algorithm version isolation
- Retiring matches that fall out of the top K
- Price recommendation persistence, including empty runs
- Batch runs collecting per-quote failures
"""

import pytest

from app.errors import NotFoundError, ValidationError
from app.models import AIPricingRecommendation, MatchingConfig, QuoteMatch
from app.services.ignore_list import StaticIgnoreList
from app.services.matching.profiles import DEFAULT_PROFILES
from app.services.quote_matching import QuoteMatchingService
from app.services.quote_repository import QuoteRepository, validate_id


@pytest.fixture
def service(db_session):
    return QuoteMatchingService(db_session, ignore_list=StaticIgnoreList())


class TestValidateId:

    @pytest.mark.parametrize("value", [0, -3, True, "7", 1.5, None])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            validate_id(value, "quote_id")

    def test_accepted(self):
        assert validate_id(7, "quote_id") == 7


class TestCandidatePool:

    def test_only_prior_quotes(self, db_session, make_quote):
        older = make_quote(minutes_ago=60)
        target = make_quote(minutes_ago=30)
        make_quote(minutes_ago=5)

        repository = QuoteRepository(db_session)
        pool = repository.candidate_pool(repository.get_snapshot(target.quote_id))

        assert [q.quote_id for q in pool] == [older.quote_id]

    def test_most_recent_first_with_limit(self, db_session, make_quote):
        first = make_quote(minutes_ago=90)
        second = make_quote(minutes_ago=60)
        target = make_quote(minutes_ago=0)

        repository = QuoteRepository(db_session)
        pool = repository.candidate_pool(repository.get_snapshot(target.quote_id), limit=1)

        assert [q.quote_id for q in pool] == [second.quote_id]
        assert first.quote_id not in [q.quote_id for q in pool]

    def test_sender_carried_on_snapshot(self, db_session, make_quote):
        quote = make_quote(sender="ops@shipper.com")

        snapshot = QuoteRepository(db_session).get_snapshot(quote.quote_id)

        assert snapshot.sender_email == "ops@shipper.com"


class TestComputeMatches:

    def test_matches_persisted_with_ranks(self, service, make_quote):
        exact = make_quote(final_agreed_price=1500)
        heavier = make_quote(cargo_weight=30000, final_agreed_price=1800)
        target = make_quote()

        run = service.compute_matches(target.quote_id, "v1")

        assert [m.matched_quote_id for m in run.matches] == [exact.quote_id, heavier.quote_id]
        assert [m.rank for m in run.matches] == [1, 2]
        assert float(run.matches[0].similarity_score) == pytest.approx(1.0)
        assert all(m.match_algorithm_version == "v1" for m in run.matches)

    def test_identical_copy_scores_one(self, service, make_quote):
        original = make_quote()
        copy = make_quote()

        run = service.compute_matches(copy.quote_id)

        assert run.matches[0].matched_quote_id == original.quote_id
        assert float(run.matches[0].similarity_score) == 1.0

    def test_match_rows_carry_run_price(self, service, make_quote):
        make_quote(final_agreed_price=1000)
        make_quote(final_agreed_price=1000)
        target = make_quote()

        run = service.compute_matches(target.quote_id)

        assert run.recommendation.suggested_price == pytest.approx(1000.0)
        for match in run.matches:
            assert float(match.suggested_price) == pytest.approx(1000.0)
            assert float(match.price_confidence) == pytest.approx(run.recommendation.price_confidence)

    def test_explainability_stored(self, service, make_quote):
        make_quote(cargo_weight=None)
        target = make_quote()

        run = service.compute_matches(target.quote_id, "v1")
        details = run.matches[0].scoring_details

        assert details["algorithm_version"] == "v1"
        assert details["absent_criteria"] == ["weight"]
        assert run.matches[0].match_criteria["weight"] is None
        assert details["criteria"]["service_type"]["score"] == 1.0
        assert details["source_quote_id"] == target.quote_id

    def test_match_criteria_keys_stable_per_version(self, service, make_quote):
        """Absent criteria are stored as null so every row carries the same keys."""
        make_quote(cargo_weight=None)
        make_quote(hazardous_material=None, number_of_pieces=None)
        make_quote()
        target = make_quote()

        run = service.compute_matches(target.quote_id, "v2")

        assert len(run.matches) == 3
        for match in run.matches:
            assert set(match.match_criteria) == set(DEFAULT_PROFILES["v2"].criteria)
            present = {k: v for k, v in match.match_criteria.items() if v is not None}
            assert all(0.0 <= v <= 1.0 for v in present.values())
            assert set(match.match_criteria) - set(present) == set(match.scoring_details["absent_criteria"])

    def test_ignored_sender_excluded(self, db_session, make_quote):
        make_quote(sender="broker@spam.com")
        kept = make_quote(sender="ops@shipper.com")
        target = make_quote()

        service = QuoteMatchingService(db_session, ignore_list=StaticIgnoreList(emails=["BROKER@spam.com"]))
        run = service.compute_matches(target.quote_id)

        assert [m.matched_quote_id for m in run.matches] == [kept.quote_id]

    def test_no_candidates_is_empty_not_error(self, service, db_session, make_quote):
        target = make_quote()

        run = service.compute_matches(target.quote_id)

        assert run.matches == []
        assert run.recommendation.match_count == 0
        stored = db_session.query(AIPricingRecommendation).filter_by(quote_id=target.quote_id).one()
        assert stored.match_count == 0
        assert stored.recommended_price is None

    def test_missing_quote(self, service):
        with pytest.raises(NotFoundError):
            service.compute_matches(999)

    def test_unknown_version(self, service, make_quote):
        target = make_quote()

        with pytest.raises(ValidationError):
            service.compute_matches(target.quote_id, "v9")

    def test_invalid_target_rejected(self, service, make_quote):
        make_quote()
        target = make_quote(cargo_weight=-5)

        with pytest.raises(ValidationError):
            service.compute_matches(target.quote_id)


class TestReruns:

    def test_rerun_is_idempotent(self, service, db_session, make_quote):
        make_quote(final_agreed_price=900)
        make_quote(final_agreed_price=1100)
        target = make_quote()

        first = service.compute_matches(target.quote_id, "v2")
        first_ids = [m.match_id for m in first.matches]
        second = service.compute_matches(target.quote_id, "v2")

        assert [m.match_id for m in second.matches] == first_ids
        assert db_session.query(QuoteMatch).count() == 2
        assert db_session.query(AIPricingRecommendation).count() == 1

    def test_versions_are_isolated(self, service, db_session, make_quote):
        make_quote()
        target = make_quote()

        service.compute_matches(target.quote_id, "v1")
        service.compute_matches(target.quote_id, "v2")

        versions = sorted(v for (v,) in db_session.query(QuoteMatch.match_algorithm_version).all())
        assert versions == ["v1", "v2"]
        assert db_session.query(AIPricingRecommendation).count() == 2

    def test_dropped_matches_retired_not_deleted(self, db_session, make_quote):
        near = make_quote()
        far = make_quote(cargo_weight=30000)
        target = make_quote()

        QuoteMatchingService(db_session, ignore_list=StaticIgnoreList()).compute_matches(target.quote_id, "v1")

        db_session.add(MatchingConfig(algorithm_version="v1", config_type="threshold", name="max_matches", value=1))
        db_session.commit()

        run = QuoteMatchingService(db_session, ignore_list=StaticIgnoreList()).compute_matches(target.quote_id, "v1")

        assert [m.matched_quote_id for m in run.matches] == [near.quote_id]
        retired = db_session.query(QuoteMatch).filter_by(matched_quote_id=far.quote_id).one()
        assert retired.rank is None

        listed = QuoteMatchingService(db_session).get_matches_for_quote(target.quote_id)
        assert [m.matched_quote_id for m in listed] == [near.quote_id]


class TestReads:

    def test_get_matches_filters(self, service, make_quote):
        make_quote()
        make_quote(cargo_weight=30000)
        target = make_quote()
        service.compute_matches(target.quote_id, "v1")

        assert len(service.get_matches_for_quote(target.quote_id, limit=1)) == 1
        assert len(service.get_matches_for_quote(target.quote_id, min_score=0.99)) == 1
        assert service.get_matches_for_quote(target.quote_id, algorithm_version="v2") == []

    def test_get_matches_unknown_quote(self, service):
        with pytest.raises(NotFoundError):
            service.get_matches_for_quote(12345)

    def test_get_match(self, service, make_quote):
        make_quote()
        target = make_quote()
        run = service.compute_matches(target.quote_id)

        assert service.get_match(run.matches[0].match_id).source_quote_id == target.quote_id
        with pytest.raises(NotFoundError):
            service.get_match(99999)

    def test_price_recommendation_round_trip(self, service, make_quote):
        make_quote(final_agreed_price=2000)
        target = make_quote()

        assert service.get_price_recommendation(target.quote_id) is None
        run = service.compute_matches(target.quote_id)
        stored = service.get_price_recommendation(target.quote_id)

        assert float(stored.recommended_price) == pytest.approx(2000.0)
        assert stored.match_count == 1
        assert stored.confidence_label == run.recommendation.confidence_label
        assert stored.contributing_matches[0]["match_id"] == run.matches[0].match_id


class TestRunBatch:

    def test_collects_errors(self, service, make_quote):
        make_quote()
        target = make_quote()

        result = service.run_batch([target.quote_id, 4242])

        assert result.processed == 1
        assert result.matches_created == 1
        assert result.errors[0]["quote_id"] == 4242
        assert result.errors[0]["error_type"] == "NotFoundError"
        assert result.details[0]["top_score"] == pytest.approx(1.0)

    def test_empty_batch(self, service):
        with pytest.raises(ValidationError):
            service.run_batch([])

    def test_unknown_version_fails_fast(self, service, make_quote):
        target = make_quote()

        with pytest.raises(ValidationError):
            service.run_batch([target.quote_id], "v0")

    def test_target_created_later_sees_earlier(self, service, make_quote):
        base = make_quote(minutes_ago=10)
        later = make_quote(minutes_ago=0)

        result = service.run_batch([base.quote_id, later.quote_id])

        assert [d["match_count"] for d in result.details] == [0, 1]
