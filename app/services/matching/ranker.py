"""
Match Ranker

Scores a candidate pool against a target quote and keeps the top K.

Ordering is fully deterministic:
1. similarity score, descending
2. candidate created_at, most recent first (missing timestamps last)
3. candidate quote_id, ascending
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

import structlog

from app.errors import UnscoreablePairError, ValidationError
from app.models.quote_snapshot import QuoteSnapshot
from app.services.ignore_list import IgnoreList
from app.services.matching.features import QuoteFeatures, extract_features
from app.services.matching.profiles import AlgorithmProfile
from app.services.matching.scorer import SimilarityResult, score_pair

logger = structlog.get_logger(__name__)


@dataclass
class RankedMatch:
    """A candidate that survived threshold and truncation."""
    candidate: QuoteSnapshot
    features: QuoteFeatures
    similarity: SimilarityResult
    rank: int = 0

    @property
    def score(self) -> float:
        return self.similarity.score

    @property
    def quote_id(self) -> int:
        return self.candidate.quote_id


def _sort_key(match: RankedMatch):
    created = match.candidate.created_at
    return (
        -match.score,
        created is None,
        -created.timestamp() if created is not None else 0.0,
        match.quote_id,
    )


class MatchRanker:
    """
    Threshold, order and truncate scored candidates.

    Usage:
        ranker = MatchRanker(profile)
        ranked = ranker.rank(target, candidates, ignore_list=cache)
    """

    def __init__(self, profile: AlgorithmProfile):
        self.profile = profile

    def rank(
        self,
        target: QuoteSnapshot,
        candidates: Iterable[QuoteSnapshot],
        ignore_list: Optional[IgnoreList] = None,
    ) -> List[RankedMatch]:
        """
        Rank candidates for a target quote.

        Candidates are skipped (never fatal) when they are the target itself,
        come from an ignored sender or service, carry invalid measurements,
        or share no comparable criterion with the target. An empty list is a
        valid outcome.

        Raises:
            ValidationError: the target quote itself has invalid measurements
        """
        target_features = extract_features(target)
        log = logger.bind(quote_id=target.quote_id, algorithm_version=self.profile.version)

        scored: List[RankedMatch] = []
        skipped = {"self": 0, "ignored": 0, "invalid": 0, "unscoreable": 0, "below_threshold": 0}

        for candidate in candidates:
            if candidate.quote_id == target.quote_id:
                skipped["self"] += 1
                continue

            if ignore_list is not None and self._is_ignored(candidate, ignore_list):
                skipped["ignored"] += 1
                continue

            try:
                features = extract_features(candidate)
            except ValidationError as e:
                log.warning("candidate_invalid", candidate_quote_id=candidate.quote_id, error=e.message)
                skipped["invalid"] += 1
                continue

            try:
                similarity = score_pair(target_features, features, self.profile)
            except UnscoreablePairError:
                skipped["unscoreable"] += 1
                continue

            if similarity.score < self.profile.min_score:
                skipped["below_threshold"] += 1
                continue

            scored.append(RankedMatch(candidate=candidate, features=features, similarity=similarity))

        scored.sort(key=_sort_key)
        ranked = scored[:self.profile.max_matches]
        for position, match in enumerate(ranked, start=1):
            match.rank = position

        log.info("candidates_ranked",
                 kept=len(ranked),
                 above_threshold=len(scored),
                 min_score=self.profile.min_score,
                 skipped=skipped)
        return ranked

    @staticmethod
    def _is_ignored(candidate: QuoteSnapshot, ignore_list: IgnoreList) -> bool:
        return (
            ignore_list.is_ignored_sender(candidate.sender_email)
            or ignore_list.is_ignored_service(candidate.service_type)
        )
