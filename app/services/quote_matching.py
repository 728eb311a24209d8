"""
Quote Matching Service

Orchestrates one matching run per target quote:
  QuoteRepository -> MatchRanker (features + scorer) -> PriceRecommender -> persistence

Design decisions:
- Every run for (quote, algorithm version) upserts its QuoteMatch rows keyed on
  (source, matched, version), so a retried run is idempotent
- Rows of other algorithm versions are never touched
- Rows of the same version that fall out of the top K are retired (rank NULL),
  not deleted, because feedback may reference them
- The price recommendation is upserted even for empty runs so readers can
  distinguish "no comparable history" from "never computed"
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.config import settings
from app.database import insert_for
from app.errors import NotFoundError, QuoteMatcherError, StorageError, ValidationError
from app.models import AIPricingRecommendation, QuoteMatch
from app.services.ignore_list import IgnoreList
from app.services.matching import (
    ExplainabilityBuilder,
    MatchRanker,
    PriceRecommendation,
    PriceRecommender,
    ProfileManager,
    RankedMatch,
)
from app.services.quote_repository import QuoteRepository, validate_id

logger = structlog.get_logger(__name__)


@dataclass
class MatchRun:
    """Result of matching one target quote."""
    quote_id: int
    algorithm_version: str
    matches: List[QuoteMatch] = field(default_factory=list)
    recommendation: Optional[PriceRecommendation] = None


@dataclass
class BatchRunResult:
    """Result of run_batch; per-quote failures are collected, not raised."""
    processed: int = 0
    matches_created: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    details: List[Dict[str, Any]] = field(default_factory=list)


class QuoteMatchingService:
    """
    Matching engine entry point.

    Usage:
        service = QuoteMatchingService(db, ignore_list=cache)
        run = service.compute_matches(quote_id=42)
        for match in run.matches:
            print(match.rank, match.matched_quote_id, match.similarity_score)
    """

    def __init__(
        self,
        db: Session,
        profile_manager: Optional[ProfileManager] = None,
        ignore_list: Optional[IgnoreList] = None,
        recommender: Optional[PriceRecommender] = None,
        candidate_limit: Optional[int] = None,
    ):
        self.db = db
        self.repository = QuoteRepository(db)
        self.profile_manager = profile_manager or ProfileManager(db)
        self.ignore_list = ignore_list
        self.recommender = recommender or PriceRecommender()
        self.candidate_limit = candidate_limit or settings.match_candidate_limit

    def compute_matches(self, quote_id: int, algorithm_version: Optional[str] = None) -> MatchRun:
        """
        Find, rank, price and persist matches for one quote.

        Raises:
            ValidationError: malformed id, unknown version, invalid target measurements
            NotFoundError: target quote does not exist
            StorageError: persisting the run failed
        """
        profile = self.profile_manager.get_profile(algorithm_version)
        log = logger.bind(quote_id=quote_id, algorithm_version=profile.version)

        target = self.repository.get_snapshot(quote_id)
        candidates = self.repository.candidate_pool(target, limit=self.candidate_limit)

        ranked = MatchRanker(profile).rank(target, candidates, ignore_list=self.ignore_list)
        recommendation = self.recommender.recommend(ranked)

        payloads = [ExplainabilityBuilder.build(target, match, profile) for match in ranked]
        matches = self._persist(quote_id, profile.version, ranked, payloads, recommendation)

        log.info("matching_run_complete",
                 candidates=len(candidates),
                 matches=len(matches),
                 suggested_price=recommendation.suggested_price,
                 price_confidence=recommendation.price_confidence)

        return MatchRun(
            quote_id=quote_id,
            algorithm_version=profile.version,
            matches=matches,
            recommendation=recommendation,
        )

    def run_batch(self, quote_ids: Iterable[int], algorithm_version: Optional[str] = None) -> BatchRunResult:
        """
        compute_matches for each quote; one failing quote doesn't stop the batch.

        Raises:
            ValidationError: empty batch or unknown algorithm version
        """
        quote_ids = list(quote_ids)
        if not quote_ids:
            raise ValidationError("quote_ids must not be empty", field="quote_ids")
        # Fail fast on a bad version instead of once per quote
        self.profile_manager.get_profile(algorithm_version)

        result = BatchRunResult()
        for quote_id in quote_ids:
            try:
                run = self.compute_matches(quote_id, algorithm_version)
            except QuoteMatcherError as e:
                logger.warning("batch_quote_failed", quote_id=quote_id, error=str(e))
                result.errors.append({
                    "quote_id": quote_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                })
                continue

            result.processed += 1
            result.matches_created += len(run.matches)
            result.details.append({
                "quote_id": quote_id,
                "match_count": len(run.matches),
                "top_score": float(run.matches[0].similarity_score) if run.matches else None,
                "suggested_price": run.recommendation.suggested_price,
                "price_confidence": run.recommendation.price_confidence,
            })

        logger.info("batch_run_complete",
                    requested=len(quote_ids),
                    processed=result.processed,
                    matches_created=result.matches_created,
                    errors=len(result.errors))
        return result

    def get_matches_for_quote(
        self,
        quote_id: int,
        algorithm_version: Optional[str] = None,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> List[QuoteMatch]:
        """Stored (non-retired) matches for a quote, best first."""
        validate_id(quote_id, "quote_id")
        if not self.repository.exists(quote_id):
            raise NotFoundError("Quote", quote_id)

        query = self.db.query(QuoteMatch).filter(
            QuoteMatch.source_quote_id == quote_id,
            QuoteMatch.rank.isnot(None)
        )
        if algorithm_version:
            query = query.filter(QuoteMatch.match_algorithm_version == algorithm_version)
        if min_score is not None:
            query = query.filter(QuoteMatch.similarity_score >= min_score)

        query = query.order_by(
            QuoteMatch.match_algorithm_version.desc(),
            QuoteMatch.rank.asc(),
            QuoteMatch.match_id.asc(),
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def get_match(self, match_id: int) -> QuoteMatch:
        validate_id(match_id, "match_id")
        match = self.db.query(QuoteMatch).filter(QuoteMatch.match_id == match_id).first()
        if match is None:
            raise NotFoundError("Match", match_id)
        return match

    def get_price_recommendation(
        self,
        quote_id: int,
        algorithm_version: Optional[str] = None,
    ) -> Optional[AIPricingRecommendation]:
        """Most recently updated recommendation, or None if never computed."""
        validate_id(quote_id, "quote_id")
        if not self.repository.exists(quote_id):
            raise NotFoundError("Quote", quote_id)

        query = self.db.query(AIPricingRecommendation).filter(
            AIPricingRecommendation.quote_id == quote_id
        )
        if algorithm_version:
            query = query.filter(AIPricingRecommendation.algorithm_version == algorithm_version)
        return query.order_by(
            AIPricingRecommendation.updated_at.desc(),
            AIPricingRecommendation.id.desc(),
        ).first()

    def _persist(
        self,
        quote_id: int,
        version: str,
        ranked: List[RankedMatch],
        payloads: List[dict],
        recommendation: PriceRecommendation,
    ) -> List[QuoteMatch]:
        try:
            for match, payload in zip(ranked, payloads):
                stmt = insert_for(self.db, QuoteMatch).values(
                    source_quote_id=quote_id,
                    matched_quote_id=match.quote_id,
                    similarity_score=match.score,
                    match_criteria=match.similarity.criteria_map,
                    suggested_price=recommendation.suggested_price,
                    price_confidence=recommendation.price_confidence,
                    rank=match.rank,
                    scoring_details=payload,
                    match_algorithm_version=version,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["source_quote_id", "matched_quote_id", "match_algorithm_version"],
                    set_={
                        "similarity_score": stmt.excluded.similarity_score,
                        "match_criteria": stmt.excluded.match_criteria,
                        "suggested_price": stmt.excluded.suggested_price,
                        "price_confidence": stmt.excluded.price_confidence,
                        "rank": stmt.excluded.rank,
                        "scoring_details": stmt.excluded.scoring_details,
                    },
                )
                self.db.execute(stmt)

            # Retire same-version rows that dropped out of this run's top K
            kept_ids = [match.quote_id for match in ranked]
            retire = self.db.query(QuoteMatch).filter(
                QuoteMatch.source_quote_id == quote_id,
                QuoteMatch.match_algorithm_version == version,
                QuoteMatch.rank.isnot(None),
            )
            if kept_ids:
                retire = retire.filter(QuoteMatch.matched_quote_id.notin_(kept_ids))
            retired = retire.update({QuoteMatch.rank: None}, synchronize_session=False)

            self.db.flush()
            rows = self.db.query(QuoteMatch).filter(
                QuoteMatch.source_quote_id == quote_id,
                QuoteMatch.match_algorithm_version == version,
                QuoteMatch.rank.isnot(None),
            ).order_by(QuoteMatch.rank.asc()).all()

            match_ids = {row.matched_quote_id: row.match_id for row in rows}
            for contribution in recommendation.contributions:
                contribution.match_id = match_ids.get(contribution.matched_quote_id)

            self._upsert_recommendation(quote_id, version, recommendation)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("matching_run_persist_failed", quote_id=quote_id,
                         algorithm_version=version, error=str(e))
            raise StorageError("match persistence", e) from e

        if retired:
            logger.info("stale_matches_retired", quote_id=quote_id, algorithm_version=version, count=retired)

        # Upserted rows may be stale in the identity map
        for row in rows:
            self.db.refresh(row)
        return rows

    def _upsert_recommendation(self, quote_id: int, version: str, recommendation: PriceRecommendation) -> None:
        values = {
            "recommended_price": recommendation.suggested_price,
            "target_price": recommendation.target_price,
            "floor_price": recommendation.floor_price,
            "ceiling_price": recommendation.ceiling_price,
            "price_confidence": recommendation.price_confidence,
            "confidence_label": recommendation.confidence_label,
            "reasoning": recommendation.reasoning,
            "match_count": recommendation.match_count,
            "contributing_matches": [c.to_dict() for c in recommendation.contributions],
        }
        stmt = insert_for(self.db, AIPricingRecommendation).values(
            quote_id=quote_id,
            algorithm_version=version,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["quote_id", "algorithm_version"],
            set_={**{key: getattr(stmt.excluded, key) for key in values}, "updated_at": func.now()},
        )
        self.db.execute(stmt)
