"""Team catalogue sync route handler."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from fannax.api.auth_dependencies import require_operator
from fannax.api.routes import limiter
from fannax.models.schemas import SyncTeamsResponse
from fannax.services.fixture_ingest_service import FixtureIngestor
from fannax.services.sportmonks_client import SportMonksClient

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/teams/sync", response_model=SyncTeamsResponse)
@limiter.limit("2/minute")
async def sync_teams(request: Request, _: None = Depends(require_operator)):
    """Import the provider's team catalogue and reserve team usernames (operator only)."""
    try:
        async with SportMonksClient() as client:
            stats = await FixtureIngestor(client).sync_teams()
        return {"success": True, **stats}
    except Exception as e:
        logger.error(f"Error syncing teams: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to sync teams")
