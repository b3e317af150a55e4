"""Match listing and fixture sync route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fannax.api.auth_dependencies import require_operator
from fannax.api.routes import http_error_for, limiter
from fannax.database.db import get_db_session
from fannax.models.schemas import (
    MatchListResponse,
    SyncMatchesRequest,
    SyncMatchesResponse,
    UpcomingMatchesResponse,
)
from fannax.services import match_service
from fannax.services.errors import PipelineError
from fannax.services.fixture_ingest_service import FixtureIngestor
from fannax.services.sportmonks_client import SportMonksClient
from fannax.utils.constants import DEFAULT_PAGE_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=MatchListResponse)
async def list_matches(
    status: Optional[str] = None,
    cursor: Optional[int] = None,
    limit: int = DEFAULT_PAGE_LIMIT,
    session: AsyncSession = Depends(get_db_session),
):
    """List matches by kickoff time, optionally filtered by status."""
    try:
        return await match_service.list_matches(session, status=status, cursor=cursor, limit=limit)
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error listing matches: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch matches")


@router.get("/api/matches/upcoming", response_model=UpcomingMatchesResponse)
async def get_upcoming_matches(
    days: int = 7,
    limit: int = 10,
    session: AsyncSession = Depends(get_db_session),
):
    """Scheduled matches kicking off in the next ``days`` days, with prediction counts."""
    try:
        return await match_service.get_upcoming_matches(session, days=days, limit=limit)
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error fetching upcoming matches: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch upcoming matches")


@router.post("/api/matches/sync", response_model=SyncMatchesResponse)
@limiter.limit("10/minute")
async def sync_matches(
    request: Request,
    payload: Optional[SyncMatchesRequest] = None,
    _: None = Depends(require_operator),
):
    """
    Pull fixtures from the provider and reconcile them (operator only).

    Request body:
        {"days": 7}   // Optional, 1-100
    """
    days = payload.days if payload else SyncMatchesRequest().days
    try:
        async with SportMonksClient() as client:
            stats = await FixtureIngestor(client).sync(days)
        return {"success": True, **stats}
    except PipelineError as e:
        logger.error(f"Fixture sync failed: {e}")
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error syncing matches: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to sync matches")
