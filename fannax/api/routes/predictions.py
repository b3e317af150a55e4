"""Prediction submission, listing and settlement route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fannax.api.auth_dependencies import require_operator, require_user
from fannax.api.routes import http_error_for, limiter
from fannax.database.db import get_db_session
from fannax.models.schemas import (
    PredictionCreate,
    PredictionListResponse,
    PredictionResponse,
    SettlementResponse,
)
from fannax.services import prediction_service
from fannax.services.errors import PipelineError
from fannax.services.settlement_service import get_settlement_service
from fannax.utils.constants import DEFAULT_PAGE_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/predictions", response_model=PredictionResponse, status_code=201)
@limiter.limit("30/minute")
async def create_prediction(
    request: Request,
    payload: PredictionCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Submit a score prediction for a scheduled match.

    Request body:
        {
            "match_id": 1,
            "predicted_home_score": 2,
            "predicted_away_score": 1,
            "caption": "Home win"   // Optional, max 280 chars
        }
    """
    try:
        return await prediction_service.submit(
            session,
            user_id=user["id"],
            match_id=payload.match_id,
            predicted_home_score=payload.predicted_home_score,
            predicted_away_score=payload.predicted_away_score,
            caption=payload.caption,
        )
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error creating prediction: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create prediction")


@router.get("/api/predictions", response_model=PredictionListResponse)
async def list_predictions(
    match_id: Optional[int] = None,
    user_id: Optional[int] = None,
    cursor: Optional[int] = None,
    limit: int = DEFAULT_PAGE_LIMIT,
    session: AsyncSession = Depends(get_db_session),
):
    """List predictions newest first, optionally for one match and/or user."""
    try:
        return await prediction_service.list_predictions(
            session, match_id=match_id, user_id=user_id, cursor=cursor, limit=limit
        )
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error listing predictions: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch predictions")


@router.get("/api/predictions/{prediction_id}", response_model=PredictionResponse)
async def get_prediction(
    prediction_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Get a single prediction (target of result notification links)."""
    try:
        return await prediction_service.get_prediction(session, prediction_id)
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error fetching prediction {prediction_id}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch prediction")


@router.post("/api/predictions/score", response_model=SettlementResponse)
@limiter.limit("10/minute")
async def score_predictions(
    request: Request,
    _: None = Depends(require_operator),
):
    """Settle pending predictions on finished matches (operator only)."""
    try:
        stats = await get_settlement_service().settle()
        return {"success": True, **stats}
    except Exception as e:
        logger.error(f"Error scoring predictions: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to score predictions")
