"""
Database Models
"""

from app.models.shipping_quote import ShippingQuote, ShippingEmail
from app.models.quote_match import QuoteMatch
from app.models.match_feedback import QuoteMatchFeedback, ANONYMOUS_USER, VALID_FEEDBACK_REASONS
from app.models.ai_pricing import AIPricingRecommendation
from app.models.matching_config import MatchingConfig
from app.models.app_configuration import AppConfiguration
from app.models.quote_snapshot import QuoteSnapshot

__all__ = [
    "ShippingQuote",
    "ShippingEmail",
    "QuoteMatch",
    "QuoteMatchFeedback",
    "ANONYMOUS_USER",
    "VALID_FEEDBACK_REASONS",
    "AIPricingRecommendation",
    "MatchingConfig",
    "AppConfiguration",
    "QuoteSnapshot",
]
