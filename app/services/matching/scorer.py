"""
Similarity Scorer

Combines per-criterion scores into one aggregate similarity for a quote pair.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from app.errors import UnscoreablePairError
from app.services.matching.features import QuoteFeatures
from app.services.matching.profiles import AlgorithmProfile
from app.services.matching.signals import score_exact, score_location, score_magnitude

# Criterion name -> scorer over the matching QuoteFeatures attribute
CRITERION_SCORERS: Dict[str, Callable] = {
    "origin": score_location,
    "destination": score_location,
    "weight": score_magnitude,
    "volume": score_magnitude,
    "piece_count": score_magnitude,
    "service_type": score_exact,
    "hazmat": score_exact,
    "cargo_category": score_exact,
}


@dataclass
class SimilarityResult:
    """
    Breakdown of one pair comparison.

    criteria holds present criteria only; a criterion missing on either side
    is listed in absent_criteria instead of being scored 0.
    """
    score: float
    criteria: Dict[str, float] = field(default_factory=dict)
    absent_criteria: List[str] = field(default_factory=list)
    applied_weights: Dict[str, float] = field(default_factory=dict)
    details: Dict[str, dict] = field(default_factory=dict)

    @property
    def criteria_map(self) -> Dict[str, Optional[float]]:
        """Every profile criterion in profile order, None where absent."""
        return {name: self.criteria.get(name) for name in self.details}


def score_pair(
    source: QuoteFeatures,
    candidate: QuoteFeatures,
    profile: AlgorithmProfile
) -> SimilarityResult:
    """
    Score a candidate against a source quote under an algorithm profile.

    The aggregate is the weighted mean of present criteria, with the
    profile's weights renormalized over those criteria so they sum to 1.

    Raises:
        UnscoreablePairError: no criterion with positive weight is present
            on both quotes
    """
    criteria: Dict[str, float] = {}
    details: Dict[str, dict] = {}
    absent: List[str] = []

    for name in profile.criteria:
        scorer = CRITERION_SCORERS[name]
        value, detail = scorer(getattr(source, name), getattr(candidate, name))
        details[name] = detail
        if value is None:
            absent.append(name)
        else:
            criteria[name] = value

    total_weight = sum(profile.weights[name] for name in criteria)
    if not criteria or total_weight <= 0:
        raise UnscoreablePairError(source.quote_id, candidate.quote_id)

    applied = {name: profile.weights[name] / total_weight for name in criteria}
    score = sum(criteria[name] * applied[name] for name in criteria)

    return SimilarityResult(
        score=round(min(1.0, max(0.0, score)), 4),
        criteria=criteria,
        absent_criteria=absent,
        applied_weights={name: round(w, 4) for name, w in applied.items()},
        details=details,
    )
