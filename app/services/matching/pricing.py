"""
Price Recommender

Derives a suggested price, a price range and a confidence estimate from the
ranked matches of one run.

Formulas:
- usable price: final agreed price if > 0, else initial quote if > 0; final
  prices from won jobs are flagged in the reasoning
- suggested price: similarity-weighted mean of usable prices
- confidence: mean similarity * (1 - 0.35^n) * 1 / (1 + coefficient of variation)
- target / floor / ceiling: weighted 50th / 10th / 90th percentile
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from app.config import settings
from app.services.matching.ranker import RankedMatch

logger = structlog.get_logger(__name__)

COUNT_DECAY = 0.35
FLOOR_QUANTILE = 0.10
TARGET_QUANTILE = 0.50
CEILING_QUANTILE = 0.90


@dataclass
class PriceContribution:
    """One matched quote's share of the recommendation."""
    matched_quote_id: int
    price: float
    price_source: str  # final_agreed or initial_quote
    similarity: float
    weight: float
    match_id: Optional[int] = None
    job_won: bool = False

    def to_dict(self) -> dict:
        return {
            "matched_quote_id": self.matched_quote_id,
            "match_id": self.match_id,
            "price": self.price,
            "price_source": self.price_source,
            "similarity": self.similarity,
            "weight": self.weight,
            "job_won": self.job_won,
        }


@dataclass
class PriceRecommendation:
    """
    Outcome of PriceRecommender.recommend.

    suggested_price is None when no match carries a usable price;
    price_confidence is None when there were no matches at all and 0.0
    when there were matches but none was priced.
    """
    match_count: int
    suggested_price: Optional[float] = None
    price_confidence: Optional[float] = None
    confidence_label: Optional[str] = None
    target_price: Optional[float] = None
    floor_price: Optional[float] = None
    ceiling_price: Optional[float] = None
    reasoning: str = ""
    contributions: List[PriceContribution] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.suggested_price is not None


def usable_price(match: RankedMatch) -> Optional[tuple[float, str]]:
    """(price, source) for a matched quote, None when it was never priced."""
    final = match.candidate.final_agreed_price
    if final is not None and final > 0:
        return float(final), "final_agreed"
    initial = match.candidate.initial_quote_amount
    if initial is not None and initial > 0:
        return float(initial), "initial_quote"
    return None


def weighted_quantile(values: Sequence[float], weights: Sequence[float], q: float) -> float:
    """
    Midpoint-interpolated weighted quantile.

    Each value sits at the centre of its weight mass on [0, 1]; q between two
    centres interpolates linearly. Monotone in q, so the 10th percentile never
    exceeds the median.
    """
    pairs = sorted(zip(values, weights))
    total = sum(w for _, w in pairs)
    positions = []
    cumulative = 0.0
    for _, w in pairs:
        positions.append((cumulative + w / 2) / total)
        cumulative += w

    if q <= positions[0]:
        return pairs[0][0]
    if q >= positions[-1]:
        return pairs[-1][0]
    for i in range(1, len(pairs)):
        if q <= positions[i]:
            lo, hi = positions[i - 1], positions[i]
            fraction = (q - lo) / (hi - lo) if hi > lo else 0.0
            return pairs[i - 1][0] + fraction * (pairs[i][0] - pairs[i - 1][0])
    return pairs[-1][0]


class PriceRecommender:
    """Turns ranked matches into a PriceRecommendation."""

    def __init__(
        self,
        high_threshold: Optional[float] = None,
        medium_threshold: Optional[float] = None,
    ):
        self.high_threshold = (
            high_threshold if high_threshold is not None else settings.price_confidence_high_threshold
        )
        self.medium_threshold = (
            medium_threshold if medium_threshold is not None else settings.price_confidence_medium_threshold
        )

    def label(self, confidence: Optional[float]) -> Optional[str]:
        if confidence is None:
            return None
        if confidence >= self.high_threshold:
            return "HIGH"
        if confidence >= self.medium_threshold:
            return "MEDIUM"
        return "LOW"

    def recommend(self, ranked: Sequence[RankedMatch]) -> PriceRecommendation:
        if not ranked:
            return PriceRecommendation(
                match_count=0,
                reasoning="No comparable historical quotes were found.",
            )

        priced = []
        for match in ranked:
            price = usable_price(match)
            if price is not None:
                priced.append((match, price[0], price[1]))

        if not priced:
            return PriceRecommendation(
                match_count=len(ranked),
                price_confidence=0.0,
                confidence_label=self.label(0.0),
                reasoning=(
                    f"{len(ranked)} comparable quote(s) found, "
                    "but none has a recorded final or initial price."
                ),
            )

        similarities = [m.score for m, _, _ in priced]
        prices = [p for _, p, _ in priced]
        total_similarity = sum(similarities)
        if total_similarity > 0:
            weights = [s / total_similarity for s in similarities]
        else:
            weights = [1 / len(priced)] * len(priced)

        suggested = sum(p * w for p, w in zip(prices, weights))
        confidence = self._confidence(similarities, prices, weights, suggested)

        contributions = [
            PriceContribution(
                matched_quote_id=match.quote_id,
                price=round(price, 2),
                price_source=source,
                similarity=match.score,
                weight=round(weight, 4),
                job_won=source == "final_agreed" and bool(match.candidate.job_won),
            )
            for (match, price, source), weight in zip(priced, weights)
        ]

        recommendation = PriceRecommendation(
            match_count=len(ranked),
            suggested_price=round(suggested, 2),
            price_confidence=confidence,
            confidence_label=self.label(confidence),
            target_price=round(weighted_quantile(prices, weights, TARGET_QUANTILE), 2),
            floor_price=round(weighted_quantile(prices, weights, FLOOR_QUANTILE), 2),
            ceiling_price=round(weighted_quantile(prices, weights, CEILING_QUANTILE), 2),
            contributions=contributions,
        )
        recommendation.reasoning = self._reasoning(recommendation, len(ranked))

        logger.debug("price_recommended",
                     match_count=len(ranked),
                     priced_count=len(priced),
                     suggested_price=recommendation.suggested_price,
                     price_confidence=confidence)
        return recommendation

    @staticmethod
    def _confidence(similarities, prices, weights, mean_price) -> float:
        mean_similarity = sum(similarities) / len(similarities)
        count_factor = 1 - COUNT_DECAY ** len(prices)

        variance = sum(w * (p - mean_price) ** 2 for p, w in zip(prices, weights))
        cv = math.sqrt(variance) / mean_price if mean_price > 0 else 0.0
        agreement = 1 / (1 + cv)

        return round(min(1.0, max(0.0, mean_similarity * count_factor * agreement)), 4)

    @staticmethod
    def _reasoning(recommendation: PriceRecommendation, match_count: int) -> str:
        parts = []
        for c in recommendation.contributions:
            source = c.price_source.replace('_', ' ')
            if c.job_won:
                source += ", job won"
            parts.append(
                f"quote #{c.matched_quote_id} at ${c.price:,.2f} "
                f"({source}, similarity {c.similarity:.2f}, weight {c.weight:.2f})"
            )
        won = sum(1 for c in recommendation.contributions if c.job_won)
        unpriced = match_count - len(recommendation.contributions)
        text = (
            f"Similarity-weighted average of {len(parts)} priced comparable quote(s): "
            + "; ".join(parts)
            + f". Range ${recommendation.floor_price:,.2f} - ${recommendation.ceiling_price:,.2f}, "
            f"target ${recommendation.target_price:,.2f}. "
            f"Confidence {recommendation.confidence_label} ({recommendation.price_confidence:.2f})."
        )
        if won:
            text += f" {won} of the prices were agreed on jobs that were won."
        if unpriced:
            text += f" {unpriced} further match(es) had no recorded price."
        return text
