"""
Quotes API Router
Read-side endpoints for per-quote price recommendations
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.quote_matching import QuoteMatchingService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/quotes", tags=["quotes"])


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


@router.get("/{quote_id}/price-recommendation")
async def get_price_recommendation(
    quote_id: int,
    algorithm_version: Optional[str] = Query(None, description="Filter by algorithm version"),
    db: Session = Depends(get_db)
):
    """
    Latest price recommendation for a quote

    Returns {"available": false} when matching never ran for the quote or
    found no priced comparable quotes. 404 only when the quote itself is unknown.
    """
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    recommendation = QuoteMatchingService(db).get_price_recommendation(quote_id, algorithm_version)

    if recommendation is None or recommendation.recommended_price is None:
        logger.info("price_recommendation_unavailable", quote_id=quote_id,
                    computed=recommendation is not None)
        return {
            "quote_id": quote_id,
            "available": False,
            "match_count": recommendation.match_count if recommendation else 0,
            "price_confidence": _float(recommendation.price_confidence) if recommendation else None,
            "reasoning": recommendation.reasoning if recommendation else None,
        }

    return {
        "quote_id": quote_id,
        "available": True,
        "algorithm_version": recommendation.algorithm_version,
        "recommended_price": _float(recommendation.recommended_price),
        "target_price": _float(recommendation.target_price),
        "floor_price": _float(recommendation.floor_price),
        "ceiling_price": _float(recommendation.ceiling_price),
        "price_confidence": _float(recommendation.price_confidence),
        "confidence_label": recommendation.confidence_label,
        "reasoning": recommendation.reasoning,
        "match_count": recommendation.match_count,
        "contributing_matches": recommendation.contributing_matches,
        "updated_at": recommendation.updated_at.isoformat() if recommendation.updated_at else None,
    }
