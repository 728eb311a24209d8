"""
Explainability Builder

Produces JSON-ready match explanations for debugging and weight tuning.

Design decisions:
- Primary audience: developers and pricing analysts reviewing feedback
- Detail level: per-criterion scores, renormalized weights, raw values compared
- Absent criteria are listed explicitly, never folded in as 0
- Storage: quote_matches.scoring_details
"""

from app.models.quote_snapshot import QuoteSnapshot
from app.services.matching.profiles import AlgorithmProfile
from app.services.matching.ranker import RankedMatch


class ExplainabilityBuilder:
    """Build explainability payloads for QuoteMatch rows."""

    VERSION = "1.0"  # Track explainability schema version

    @staticmethod
    def build(
        target: QuoteSnapshot,
        match: RankedMatch,
        profile: AlgorithmProfile,
    ) -> dict:
        """
        Build the scoring_details payload for one ranked match.

        Example:
            >>> payload = ExplainabilityBuilder.build(target, ranked[0], profile)
            >>> payload["absent_criteria"]
            ['volume']
        """
        similarity = match.similarity

        criteria = {}
        for name, score in similarity.criteria.items():
            weight = similarity.applied_weights[name]
            criteria[name] = {
                "score": score,
                "weight": weight,
                "weighted_score": round(score * weight, 4),
                **similarity.details.get(name, {}),
            }

        return {
            "version": ExplainabilityBuilder.VERSION,
            "algorithm_version": profile.version,
            "final_score": similarity.score,
            "rank": match.rank,
            "criteria": criteria,
            "absent_criteria": list(similarity.absent_criteria),
            "applied_weights": dict(similarity.applied_weights),
            "profile_weights": dict(profile.weights),
            "thresholds": {
                "min_score": profile.min_score,
                "max_matches": profile.max_matches,
            },
            "source_quote_id": target.quote_id,
            "matched_quote": {
                "quote_id": match.quote_id,
                "service_type": match.candidate.service_type,
                "final_agreed_price": match.candidate.final_agreed_price,
                "initial_quote_amount": match.candidate.initial_quote_amount,
                "created_at": match.candidate.created_at.isoformat() if match.candidate.created_at else None,
            },
        }
