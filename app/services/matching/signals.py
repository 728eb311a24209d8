"""
Criterion Scorer Functions

Per-criterion similarity for a pair of QuoteFeatures.

Design decisions:
- Every scorer returns (score or None, details); None means the criterion is
  absent on at least one side and must not count as a mismatch
- City comparison uses RapidFuzz with explicit preprocessing (3.x does not
  lowercase on its own)
- Distances are great-circle kilometres from geopy when both ends are geocoded
"""

from typing import Optional

from geopy.distance import great_circle
from rapidfuzz import fuzz, utils

from app.services.matching.features import Location, get_world_region

SAME_CITY_RATIO = 0.90
SAME_CITY_MAX_KM = 50.0  # Fuzzy city names further apart than this are different places
SAME_POINT_KM = 1.0
SAME_COUNTRY_SCORE = 0.6  # Different city, no coordinates
SAME_COUNTRY_BASE = 0.5  # Different city, decays from 0.9 to 0.5 over DOMESTIC_DECAY_KM
SAME_COUNTRY_SPAN = 0.4
DOMESTIC_DECAY_KM = 1000.0
INTERNATIONAL_CAP = 0.5
INTERNATIONAL_DECAY_KM = 5000.0
SAME_WORLD_REGION_SCORE = 0.25


def _round(score: float) -> float:
    return round(min(1.0, max(0.0, score)), 4)


def _missing(first, second) -> tuple[None, dict]:
    return None, {
        "reason": "missing_input",
        "source_value": first,
        "candidate_value": second,
    }


def _distance_km(first: Location, second: Location) -> Optional[float]:
    if not (first.has_coordinates and second.has_coordinates):
        return None
    return great_circle(
        (first.latitude, first.longitude),
        (second.latitude, second.longitude),
    ).km


def score_location(
    first: Optional[Location],
    second: Optional[Location]
) -> tuple[Optional[float], dict]:
    """
    Score two lane endpoints.

    Strategy:
    1. Same country and the same place -> 1.0: coordinates within 1 km, or a
       fuzzy city ratio >= 0.90 with no conflicting state and no more than
       50 km apart, or no city on either side and the same state
    2. Same country, different city -> 0.6, or 0.5-0.9 decaying with distance
    3. Different country -> up to 0.5 decaying with distance, else 0.25 when
       both countries sit in the same world region, else 0.0

    Returns:
        Tuple of (score 0.0-1.0 or None when absent, scoring_details dict)

    Example:
        >>> a = Location(city="houston", state="TX", country="US", region="GULF")
        >>> score_location(a, a)[0]
        1.0
    """
    if first is None or second is None:
        return _missing(
            first.country if first else None,
            second.country if second else None,
        )

    distance = _distance_km(first, second)
    details = {
        "source_value": ", ".join(p for p in (first.city, first.state, first.country) if p),
        "candidate_value": ", ".join(p for p in (second.city, second.state, second.country) if p),
        "distance_km": round(distance, 1) if distance is not None else None,
    }

    if first.country == second.country:
        city_ratio = 0.0
        if first.city and second.city:
            city_ratio = fuzz.ratio(first.city, second.city, processor=utils.default_process) / 100
        details["city_ratio"] = round(city_ratio, 4)

        if distance is not None and distance <= SAME_POINT_KM:
            details["algorithm_used"] = "same_point"
            return 1.0, details

        state_conflict = bool(first.state and second.state and first.state != second.state)
        within_city_range = distance is None or distance <= SAME_CITY_MAX_KM
        if city_ratio >= SAME_CITY_RATIO and within_city_range and not state_conflict:
            details["algorithm_used"] = "same_city"
            return 1.0, details

        if first.city is None and second.city is None and first.state == second.state and distance is None:
            details["algorithm_used"] = "same_area"
            return 1.0, details

        if distance is not None:
            decay = max(0.0, 1 - distance / DOMESTIC_DECAY_KM)
            details["algorithm_used"] = "domestic_distance"
            return _round(SAME_COUNTRY_BASE + SAME_COUNTRY_SPAN * decay), details

        details["algorithm_used"] = "same_country"
        return SAME_COUNTRY_SCORE, details

    if distance is not None:
        decay = max(0.0, 1 - distance / INTERNATIONAL_DECAY_KM)
        details["algorithm_used"] = "international_distance"
        return _round(INTERNATIONAL_CAP * decay), details

    first_region = get_world_region(first.country)
    if first_region is not None and first_region == get_world_region(second.country):
        details["algorithm_used"] = "same_world_region"
        return SAME_WORLD_REGION_SCORE, details

    details["algorithm_used"] = "different_country"
    return 0.0, details


def score_magnitude(
    first: Optional[float],
    second: Optional[float]
) -> tuple[Optional[float], dict]:
    """
    Relative closeness of two non-negative quantities: 1 - |a - b| / max(a, b).

    Both zero is an exact match; exactly one zero is no match.
    """
    if first is None or second is None:
        return _missing(first, second)

    details = {"source_value": first, "candidate_value": second}
    largest = max(first, second)
    if largest == 0:
        return 1.0, details
    if min(first, second) == 0:
        return 0.0, details

    details["relative_difference"] = round(abs(first - second) / largest, 4)
    return _round(1 - abs(first - second) / largest), details


def score_exact(first, second) -> tuple[Optional[float], dict]:
    """Categorical criteria: equal -> 1.0, different -> 0.0."""
    if first is None or second is None:
        return _missing(first, second)
    return (1.0 if first == second else 0.0), {
        "source_value": first,
        "candidate_value": second,
    }
