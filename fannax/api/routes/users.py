"""User, username availability and leaderboard route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fannax.api.auth_dependencies import require_operator, require_user
from fannax.api.routes import http_error_for, limiter
from fannax.database.db import get_db_session
from fannax.models.schemas import (
    TopPredictorResponse,
    UserCreate,
    UserResponse,
    UsernameCheckResponse,
)
from fannax.services import ledger_service, user_service
from fannax.services.errors import PipelineError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/check-username", response_model=UsernameCheckResponse)
@limiter.limit("30/minute")
async def check_username(
    request: Request,
    username: str = "",
    session: AsyncSession = Depends(get_db_session),
):
    """Check whether a username is free (not taken, not reserved for a team)."""
    try:
        return await user_service.check_username(session, username)
    except Exception as e:
        logger.error(f"Error checking username: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to check username")


@router.get("/api/users/top-predictors", response_model=List[TopPredictorResponse])
async def get_top_predictors(
    limit: int = 10,
    session: AsyncSession = Depends(get_db_session),
):
    """Leaderboard of users with positive point totals."""
    if not 1 <= limit <= 100:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 100")
    try:
        return await ledger_service.get_top_predictors(session, limit=limit)
    except Exception as e:
        logger.error(f"Error fetching top predictors: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch top predictors")


@router.get("/api/users/me", response_model=UserResponse)
async def get_me(user: dict = Depends(require_user)):
    """Current user's profile and point total."""
    return user


@router.post("/api/users", response_model=UserResponse, status_code=201)
async def create_user(
    payload: UserCreate,
    _: None = Depends(require_operator),
    session: AsyncSession = Depends(get_db_session),
):
    """Create the local user row for an upstream account (operator only)."""
    try:
        user_id = await user_service.create_user(session, payload.username, name=payload.name)
        return await user_service.get_user_by_id(session, user_id)
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create user")
