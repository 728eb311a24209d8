"""
Configuration API Router
Read and replace the ignore list (Ignored_Emails / Ignored_Services)
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.ignore_list import (
    IGNORED_EMAILS_KEY,
    IGNORED_SERVICES_KEY,
    get_configuration_value,
    get_default_cache,
    set_configuration_value,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/configuration", tags=["configuration"])


class IgnoreListRequest(BaseModel):
    """Request body for replacing the ignore list; omitted lists are left unchanged"""
    emails: Optional[List[str]] = None
    services: Optional[List[str]] = None


@router.get("/ignore-list")
async def read_ignore_list(db: Session = Depends(get_db)):
    """Current ignore list as stored"""
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    return {
        "emails": get_configuration_value(db, IGNORED_EMAILS_KEY) or [],
        "services": get_configuration_value(db, IGNORED_SERVICES_KEY) or [],
    }


@router.put("/ignore-list")
async def update_ignore_list(
    request: IgnoreListRequest,
    db: Session = Depends(get_db)
):
    """
    Replace the ignore list

    The process-wide cache is invalidated so the next matching run in this
    process sees the change; other processes pick it up when their cache expires.
    """
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    if request.emails is not None:
        set_configuration_value(db, IGNORED_EMAILS_KEY, [e.strip() for e in request.emails if e.strip()])
    if request.services is not None:
        set_configuration_value(db, IGNORED_SERVICES_KEY, [s.strip() for s in request.services if s.strip()])

    cache = get_default_cache()
    if cache is not None:
        cache.invalidate()

    logger.info("ignore_list_updated",
                emails=len(request.emails) if request.emails is not None else None,
                services=len(request.services) if request.services is not None else None)

    return {
        "emails": get_configuration_value(db, IGNORED_EMAILS_KEY) or [],
        "services": get_configuration_value(db, IGNORED_SERVICES_KEY) or [],
    }
