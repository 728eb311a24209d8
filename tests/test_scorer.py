"""
Tests for aggregate pair scoring
"""

import pytest

from app.errors import UnscoreablePairError
from app.services.matching.features import extract_features
from app.services.matching.profiles import DEFAULT_PROFILES, AlgorithmProfile
from app.services.matching.scorer import score_pair

V1 = DEFAULT_PROFILES["v1"]
V2 = DEFAULT_PROFILES["v2"]


class TestScorePair:
    """Tests for score_pair."""

    def test_identical_quotes_score_one(self, make_snapshot):
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2))

        result = score_pair(source, candidate, V2)

        assert result.score == 1.0
        assert set(result.criteria) == set(V2.criteria)
        assert result.absent_criteria == []
        assert sum(result.applied_weights.values()) == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.parametrize("coordinates", [
        {},
        {
            "origin_latitude": 29.7604, "origin_longitude": -95.3698,
            "destination_latitude": 41.8781, "destination_longitude": -87.6298,
        },
    ])
    def test_identical_quotes_without_cities_score_one(self, make_snapshot, coordinates):
        fields = dict(origin_city=None, destination_city=None, **coordinates)
        source = extract_features(make_snapshot(quote_id=1, **fields))
        candidate = extract_features(make_snapshot(quote_id=2, **fields))

        result = score_pair(source, candidate, V2)

        assert result.criteria["origin"] == 1.0
        assert result.criteria["destination"] == 1.0
        assert result.score == 1.0

    def test_symmetric(self, make_snapshot):
        first = extract_features(make_snapshot(quote_id=1))
        second = extract_features(make_snapshot(
            quote_id=2, destination_city="Dallas", cargo_weight=15000, service_type="Drayage",
        ))

        assert score_pair(first, second, V2).score == score_pair(second, first, V2).score

    def test_score_within_bounds(self, make_snapshot):
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(
            quote_id=2,
            origin_country="China", origin_city="Shanghai", origin_state_province=None,
            cargo_weight=1, service_type="Air", hazardous_material=True,
            cargo_description="Flammable chemicals", number_of_pieces=40,
        ))

        result = score_pair(source, candidate, V2)
        assert 0.0 <= result.score <= 1.0

    def test_absent_criterion_not_penalized(self, make_snapshot):
        """
        A missing weight on one side drops the criterion from both the
        numerator and the denominator instead of scoring it 0.
        """
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2, cargo_weight=None))

        result = score_pair(source, candidate, V1)

        assert result.score == 1.0
        assert "weight" not in result.criteria
        assert result.absent_criteria == ["weight"]
        assert "weight" not in result.applied_weights
        assert result.applied_weights["service_type"] == pytest.approx(0.25 / 0.85, abs=1e-4)
        assert result.criteria_map["weight"] is None
        assert list(result.criteria_map) == list(V1.criteria)

    def test_weighted_mean(self, make_snapshot):
        """Only service_type differs: score is 1 - its weight share."""
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2, service_type="Ocean"))

        result = score_pair(source, candidate, V1)

        assert result.criteria["service_type"] == 0.0
        assert result.score == pytest.approx(0.75)

    def test_no_shared_criteria_raises(self, make_snapshot):
        empty = dict(
            origin_city=None, origin_state_province=None, origin_country=None,
            destination_city=None, destination_state_province=None, destination_country=None,
            cargo_description=None, cargo_weight=None, cargo_length=None,
            number_of_pieces=None, hazardous_material=None, service_type=None,
        )
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2, **empty))

        with pytest.raises(UnscoreablePairError):
            score_pair(source, candidate, V2)

    def test_zero_weight_only_criteria_raises(self, make_snapshot):
        profile = AlgorithmProfile(version="test", weights={"hazmat": 0.0, "weight": 1.0})
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2, cargo_weight=None))

        with pytest.raises(UnscoreablePairError):
            score_pair(source, candidate, profile)

    def test_details_reported_for_every_criterion(self, make_snapshot):
        source = extract_features(make_snapshot(quote_id=1))
        candidate = extract_features(make_snapshot(quote_id=2, hazardous_material=None))

        result = score_pair(source, candidate, V2)

        assert set(result.details) == set(V2.criteria)
        assert result.details["hazmat"]["reason"] == "missing_input"
