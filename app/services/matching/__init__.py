"""
Matching Engine Service Package

Provides feature extraction, criterion scorers, pair scoring, ranking,
price recommendation and explainability builders for matching a shipping
quote to comparable historical quotes.
"""

from app.services.matching.features import QuoteFeatures, Location, extract_features
from app.services.matching.signals import score_location, score_magnitude, score_exact
from app.services.matching.profiles import AlgorithmProfile, ProfileManager, DEFAULT_PROFILES
from app.services.matching.scorer import SimilarityResult, score_pair
from app.services.matching.ranker import MatchRanker, RankedMatch
from app.services.matching.pricing import PriceRecommender, PriceRecommendation, PriceContribution
from app.services.matching.explainability import ExplainabilityBuilder

__all__ = [
    # Features
    "QuoteFeatures",
    "Location",
    "extract_features",
    # Criterion scorers
    "score_location",
    "score_magnitude",
    "score_exact",
    # Profiles
    "AlgorithmProfile",
    "ProfileManager",
    "DEFAULT_PROFILES",
    # Scoring and ranking
    "SimilarityResult",
    "score_pair",
    "MatchRanker",
    "RankedMatch",
    # Pricing
    "PriceRecommender",
    "PriceRecommendation",
    "PriceContribution",
    # Explainability
    "ExplainabilityBuilder",
]
