"""
Quote Matches API Router
REST endpoints for running the matching engine, reading matches and capturing feedback
"""

from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, StrictInt
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import QuoteMatch, QuoteMatchFeedback
from app.services.feedback import FeedbackStore
from app.services.ignore_list import IgnoreList, get_default_cache
from app.services.quote_matching import QuoteMatchingService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/matches", tags=["matches"])


class RunMatchingRequest(BaseModel):
    """Request body for a batch matching run"""
    quote_ids: List[int] = Field(..., min_length=1, max_length=500)
    algorithm_version: Optional[str] = None
    background: bool = False  # Queue one Dramatiq message per quote instead of running inline


class FeedbackRequest(BaseModel):
    """Request body for match feedback"""
    rating: StrictInt  # 1 = thumbs up, -1 = thumbs down
    user_id: Optional[str] = None
    feedback_reason: Optional[str] = None
    feedback_notes: Optional[str] = None
    actual_price_used: Optional[float] = Field(None, ge=0)


def get_ignore_list() -> Optional[IgnoreList]:
    """Dependency for the ignore list (overridden in tests)"""
    return get_default_cache()


def _require_db(db: Optional[Session]) -> Session:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return db


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


def serialize_match(match: QuoteMatch) -> dict:
    return {
        "match_id": match.match_id,
        "source_quote_id": match.source_quote_id,
        "matched_quote_id": match.matched_quote_id,
        "similarity_score": _float(match.similarity_score),
        "match_criteria": match.match_criteria,
        "suggested_price": _float(match.suggested_price),
        "price_confidence": _float(match.price_confidence),
        "rank": match.rank,
        "match_algorithm_version": match.match_algorithm_version,
        "scoring_details": match.scoring_details,
        "created_at": match.created_at.isoformat() if match.created_at else None,
    }


def serialize_feedback(feedback: QuoteMatchFeedback) -> dict:
    return {
        "feedback_id": feedback.feedback_id,
        "match_id": feedback.match_id,
        "user_id": feedback.submitted_by,
        "rating": feedback.rating,
        "feedback_reason": feedback.feedback_reason,
        "feedback_notes": feedback.feedback_notes,
        "actual_price_used": _float(feedback.actual_price_used),
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
        "updated_at": feedback.updated_at.isoformat() if feedback.updated_at else None,
    }


@router.post("/run")
async def run_matching(
    request: RunMatchingRequest,
    db: Session = Depends(get_db),
    ignore_list: Optional[IgnoreList] = Depends(get_ignore_list)
):
    """
    Run matching for a batch of quotes

    Per-quote failures are collected in `errors` and don't abort the batch.
    With background=true the quotes are queued for the worker instead.
    """
    db = _require_db(db)

    if request.background:
        # Validates the version before queueing
        QuoteMatchingService(db).profile_manager.get_profile(request.algorithm_version)

        from app.actors.quote_matcher import enqueue_matching
        queued = enqueue_matching(request.quote_ids, request.algorithm_version)
        return {"queued": queued, "algorithm_version": request.algorithm_version}

    service = QuoteMatchingService(db, ignore_list=ignore_list)
    result = service.run_batch(request.quote_ids, request.algorithm_version)

    return {
        "processed": result.processed,
        "matches_created": result.matches_created,
        "errors": result.errors,
        "match_details": result.details,
    }


@router.get("/feedback/stats")
async def get_feedback_stats(
    algorithm_version: Optional[str] = Query(None, description="Only matches of this algorithm version"),
    start_date: Optional[datetime] = Query(None, description="Feedback updated at or after"),
    end_date: Optional[datetime] = Query(None, description="Feedback updated at or before"),
    db: Session = Depends(get_db)
):
    """Aggregate feedback statistics (approval rate, average price error, ...)"""
    db = _require_db(db)
    store = FeedbackStore(db)
    return {
        "statistics": store.statistics(
            algorithm_version=algorithm_version,
            start_date=start_date,
            end_date=end_date,
        ),
        "criteria_performance": store.criteria_performance(algorithm_version=algorithm_version),
    }


@router.get("/feedback/by-reason")
async def get_feedback_by_reason(db: Session = Depends(get_db)):
    """Feedback counts grouped by reason and rating"""
    db = _require_db(db)
    return {"breakdown": FeedbackStore(db).breakdown_by_reason()}


@router.post("/quote/{quote_id}")
async def run_matching_for_quote(
    quote_id: int,
    algorithm_version: Optional[str] = Query(None, description="Algorithm version (default from settings)"),
    db: Session = Depends(get_db),
    ignore_list: Optional[IgnoreList] = Depends(get_ignore_list)
):
    """
    Compute and store matches for one quote

    An empty `matches` list means no comparable history, not an error.
    """
    db = _require_db(db)

    service = QuoteMatchingService(db, ignore_list=ignore_list)
    run = service.compute_matches(quote_id, algorithm_version)
    recommendation = run.recommendation

    return {
        "quote_id": quote_id,
        "algorithm_version": run.algorithm_version,
        "total": len(run.matches),
        "matches": [serialize_match(m) for m in run.matches],
        "price_recommendation": {
            "available": recommendation.available,
            "suggested_price": recommendation.suggested_price,
            "price_confidence": recommendation.price_confidence,
            "confidence_label": recommendation.confidence_label,
            "match_count": recommendation.match_count,
        },
    }


@router.get("/quote/{quote_id}")
async def list_matches_for_quote(
    quote_id: int,
    algorithm_version: Optional[str] = Query(None, description="Filter by algorithm version"),
    limit: int = Query(10, ge=1, le=100, description="Maximum matches to return"),
    min_score: Optional[float] = Query(None, ge=0, le=1, description="Minimum similarity score"),
    db: Session = Depends(get_db)
):
    """Stored matches for a quote, best first"""
    db = _require_db(db)

    matches = QuoteMatchingService(db).get_matches_for_quote(
        quote_id,
        algorithm_version=algorithm_version,
        limit=limit,
        min_score=min_score,
    )

    logger.info("matches_listed", quote_id=quote_id, returned=len(matches),
                algorithm_version=algorithm_version)

    return {
        "quote_id": quote_id,
        "total": len(matches),
        "matches": [serialize_match(m) for m in matches],
    }


@router.get("/{match_id}")
async def get_match(
    match_id: int,
    db: Session = Depends(get_db)
):
    """One stored match"""
    db = _require_db(db)
    return serialize_match(QuoteMatchingService(db).get_match(match_id))


@router.post("/{match_id}/feedback")
async def submit_feedback(
    match_id: int,
    request: FeedbackRequest,
    db: Session = Depends(get_db)
):
    """
    Submit feedback on a match

    A second submission by the same user replaces the first.
    """
    db = _require_db(db)

    feedback = FeedbackStore(db).record(
        match_id=match_id,
        rating=request.rating,
        user_id=request.user_id,
        reason=request.feedback_reason,
        notes=request.feedback_notes,
        actual_price_used=request.actual_price_used,
    )
    return serialize_feedback(feedback)


@router.get("/{match_id}/feedback")
async def list_feedback(
    match_id: int,
    db: Session = Depends(get_db)
):
    """All feedback for a match, newest first; empty list when there is none"""
    db = _require_db(db)

    rows = FeedbackStore(db).list_for_match(match_id)
    return {
        "match_id": match_id,
        "total": len(rows),
        "feedback": [serialize_feedback(f) for f in rows],
    }
