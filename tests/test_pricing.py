"""
Tests for PriceRecommender

Tests cover:
- Usable price selection (final agreed before initial quote)
- Similarity-weighted suggested price and percentile range
- Confidence formula and HIGH / MEDIUM / LOW labels
- Empty and unpriced match sets
"""

import pytest

from app.services.matching.pricing import PriceRecommender, usable_price, weighted_quantile
from app.services.matching.ranker import RankedMatch
from app.services.matching.scorer import SimilarityResult


@pytest.fixture
def matched(make_snapshot):
    """Build a RankedMatch with the given similarity and prices."""

    def _make(score, final=None, initial=None, quote_id=None, job_won=None):
        candidate = make_snapshot(
            quote_id=quote_id, final_agreed_price=final, initial_quote_amount=initial, job_won=job_won,
        )
        return RankedMatch(candidate=candidate, features=None, similarity=SimilarityResult(score=score))

    return _make


@pytest.fixture
def recommender():
    return PriceRecommender(high_threshold=0.70, medium_threshold=0.45)


class TestUsablePrice:

    def test_final_agreed_preferred(self, matched):
        assert usable_price(matched(0.9, final=1200, initial=1000)) == (1200.0, "final_agreed")

    def test_initial_quote_fallback(self, matched):
        assert usable_price(matched(0.9, final=None, initial=1000)) == (1000.0, "initial_quote")

    def test_zero_price_not_usable(self, matched):
        assert usable_price(matched(0.9, final=0, initial=750)) == (750.0, "initial_quote")
        assert usable_price(matched(0.9, final=0, initial=0)) is None


class TestWeightedQuantile:

    def test_single_value(self):
        assert weighted_quantile([100.0], [1.0], 0.1) == 100.0

    def test_median_interpolates_between_equal_weights(self):
        assert weighted_quantile([50.0, 500.0], [0.5, 0.5], 0.5) == pytest.approx(275.0)

    def test_monotone(self):
        values, weights = [120.0, 80.0, 100.0, 300.0], [0.1, 0.4, 0.3, 0.2]
        floor = weighted_quantile(values, weights, 0.1)
        target = weighted_quantile(values, weights, 0.5)
        ceiling = weighted_quantile(values, weights, 0.9)

        assert 80.0 <= floor <= target <= ceiling <= 300.0


class TestRecommend:

    def test_no_matches(self, recommender):
        recommendation = recommender.recommend([])

        assert recommendation.match_count == 0
        assert recommendation.suggested_price is None
        assert recommendation.price_confidence is None
        assert recommendation.confidence_label is None
        assert not recommendation.available

    def test_matches_without_prices(self, recommender, matched):
        recommendation = recommender.recommend([matched(0.9), matched(0.8)])

        assert recommendation.match_count == 2
        assert recommendation.suggested_price is None
        assert recommendation.price_confidence == 0.0
        assert recommendation.confidence_label == "LOW"
        assert "none has a recorded" in recommendation.reasoning

    def test_agreeing_prices_high_confidence(self, recommender, matched):
        """Two close matches at the same price: 0.85 * (1 - 0.35^2) = 0.7459."""
        recommendation = recommender.recommend([
            matched(0.9, final=100, quote_id=1),
            matched(0.8, final=100, quote_id=2),
        ])

        assert recommendation.suggested_price == pytest.approx(100.0)
        assert recommendation.price_confidence == pytest.approx(0.7459, abs=1e-4)
        assert recommendation.confidence_label == "HIGH"
        assert recommendation.floor_price == recommendation.ceiling_price == 100.0

    def test_disagreeing_prices_low_confidence(self, recommender, matched):
        """Spread prices drag confidence down through the coefficient of variation."""
        recommendation = recommender.recommend([
            matched(0.9, final=50, quote_id=1),
            matched(0.9, final=500, quote_id=2),
        ])

        assert recommendation.suggested_price == pytest.approx(275.0)
        assert recommendation.price_confidence == pytest.approx(0.4344, abs=1e-4)
        assert recommendation.confidence_label == "LOW"
        assert recommendation.floor_price == pytest.approx(50.0)
        assert recommendation.ceiling_price == pytest.approx(500.0)

    def test_weighted_by_similarity(self, recommender, matched):
        recommendation = recommender.recommend([
            matched(0.9, final=1000, quote_id=1),
            matched(0.3, initial=2000, quote_id=2),
        ])

        # weights 0.75 / 0.25
        assert recommendation.suggested_price == pytest.approx(1250.0)
        sources = {c.matched_quote_id: c.price_source for c in recommendation.contributions}
        assert sources == {1: "final_agreed", 2: "initial_quote"}

    def test_more_matches_raise_confidence(self, recommender, matched):
        one = recommender.recommend([matched(0.9, final=100)])
        three = recommender.recommend([matched(0.9, final=100) for _ in range(3)])

        assert three.price_confidence > one.price_confidence

    def test_unpriced_matches_counted_but_excluded(self, recommender, matched):
        recommendation = recommender.recommend([
            matched(0.9, final=100, quote_id=1),
            matched(0.9, quote_id=2),
        ])

        assert recommendation.match_count == 2
        assert len(recommendation.contributions) == 1
        assert "1 further match(es) had no recorded price" in recommendation.reasoning

    def test_won_jobs_flagged(self, recommender, matched):
        recommendation = recommender.recommend([
            matched(0.9, final=1000, quote_id=1, job_won=True),
            matched(0.9, final=1000, quote_id=2, job_won=False),
            matched(0.9, initial=1000, quote_id=3, job_won=True),
        ])

        won = {c.matched_quote_id: c.job_won for c in recommendation.contributions}
        assert won == {1: True, 2: False, 3: False}
        assert "quote #1 at $1,000.00 (final agreed, job won," in recommendation.reasoning
        assert "1 of the prices were agreed on jobs that were won" in recommendation.reasoning
        assert recommendation.contributions[0].to_dict()["job_won"] is True

    def test_reasoning_names_contributing_quotes(self, recommender, matched):
        recommendation = recommender.recommend([matched(0.9, final=1500, quote_id=42)])

        assert "quote #42" in recommendation.reasoning
        assert "$1,500.00" in recommendation.reasoning


class TestLabels:

    @pytest.mark.parametrize("confidence,label", [
        (0.70, "HIGH"),
        (0.69, "MEDIUM"),
        (0.45, "MEDIUM"),
        (0.44, "LOW"),
        (0.0, "LOW"),
        (None, None),
    ])
    def test_thresholds(self, recommender, confidence, label):
        assert recommender.label(confidence) == label
