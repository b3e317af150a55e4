"""
Prediction register.

One prediction per (user, match), accepted only while the match is SCHEDULED
and before kickoff. The UNIQUE(user_id, match_id) constraint is the final
arbiter for concurrent duplicate submissions.
"""

from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from fannax.database.models import Match, MatchStatus, Prediction, PredictionResult, User
from fannax.services.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from fannax.services.match_service import is_open_for_predictions
from fannax.services.scoring_service import get_result_display_text, validate_prediction_scores
from fannax.utils.constants import (
    CAPTION_MAX_LENGTH,
    DEFAULT_PAGE_LIMIT,
    MAX_PREDICTED_SCORE,
    MIN_PREDICTED_SCORE,
)
from fannax.utils.datetime_utils import ensure_utc, utcnow
from fannax.utils.pagination import apply_cursor, split_page, validate_limit
import logging

logger = logging.getLogger(__name__)


def _prediction_to_dict(prediction: Prediction, include_user: bool = False) -> Dict:
    """Convert Prediction model to dictionary."""
    result_status = PredictionResult(prediction.result_status).value
    data = {
        "id": prediction.id,
        "user_id": prediction.user_id,
        "match_id": prediction.match_id,
        "predicted_home_score": prediction.predicted_home_score,
        "predicted_away_score": prediction.predicted_away_score,
        "caption": prediction.caption,
        "result_status": result_status,
        "result_display": get_result_display_text(result_status),
        "points_awarded": prediction.points_awarded,
        "settled_at": ensure_utc(prediction.settled_at).isoformat() if prediction.settled_at else None,
        "created_at": ensure_utc(prediction.created_at).isoformat() if prediction.created_at else None,
    }
    if include_user and prediction.user is not None:
        data["user"] = {
            "id": prediction.user.id,
            "username": prediction.user.username,
            "name": prediction.user.name,
        }
    return data


def _validate_submission(predicted_home_score, predicted_away_score, caption: Optional[str]) -> None:
    if not validate_prediction_scores(predicted_home_score, predicted_away_score):
        raise InvalidInputError(
            f"Predicted scores must be integers between {MIN_PREDICTED_SCORE} and {MAX_PREDICTED_SCORE}"
        )
    if caption is not None and len(caption) > CAPTION_MAX_LENGTH:
        raise InvalidInputError(f"Caption must be at most {CAPTION_MAX_LENGTH} characters")


async def submit(
    session: AsyncSession,
    user_id: int,
    match_id: int,
    predicted_home_score: int,
    predicted_away_score: int,
    caption: Optional[str] = None,
) -> Dict:
    """
    Register a user's score prediction for a match.

    Args:
        session: Database session
        user_id: Predicting user
        match_id: Match being predicted
        predicted_home_score: Predicted home goals (0-20)
        predicted_away_score: Predicted away goals (0-20)
        caption: Optional text shown with the prediction (max 280 chars)

    Returns:
        Dict of the created PENDING prediction

    Raises:
        InvalidInputError: If scores are out of range or the caption is too long
        NotFoundError: If the match (or user) does not exist
        InvalidStateError: If the match is not SCHEDULED or has kicked off
        ConflictError: If the user already predicted this match
    """
    _validate_submission(predicted_home_score, predicted_away_score, caption)

    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFoundError("Match not found")

    if match.status != MatchStatus.SCHEDULED:
        raise InvalidStateError("Predictions are only accepted for scheduled matches")
    if not is_open_for_predictions(match, now=utcnow()):
        raise InvalidStateError("Predictions are closed: the match has already started")

    result = await session.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("User not found")

    result = await session.execute(
        select(Prediction.id).where(
            and_(Prediction.user_id == user_id, Prediction.match_id == match_id)
        )
    )
    if result.scalar_one_or_none() is not None:
        raise ConflictError("You have already made a prediction for this match")

    prediction = Prediction(
        user_id=user_id,
        match_id=match_id,
        predicted_home_score=predicted_home_score,
        predicted_away_score=predicted_away_score,
        caption=caption,
        result_status=PredictionResult.PENDING,
        points_awarded=None,
    )
    session.add(prediction)
    try:
        await session.flush()
    except IntegrityError:
        # Lost the race to a concurrent submission for the same (user, match)
        await session.rollback()
        raise ConflictError("You have already made a prediction for this match")

    await session.commit()
    await session.refresh(prediction)

    logger.info(
        f"User {user_id} predicted {predicted_home_score}-{predicted_away_score} for match {match_id}"
    )
    return _prediction_to_dict(prediction)


async def get_prediction(session: AsyncSession, prediction_id: int) -> Dict:
    """
    Get a single prediction by id.

    Raises:
        NotFoundError: If the prediction does not exist
    """
    result = await session.execute(
        select(Prediction)
        .options(selectinload(Prediction.user))
        .where(Prediction.id == prediction_id)
    )
    prediction = result.scalar_one_or_none()
    if prediction is None:
        raise NotFoundError("Prediction not found")
    return _prediction_to_dict(prediction, include_user=True)


async def list_predictions(
    session: AsyncSession,
    match_id: Optional[int] = None,
    user_id: Optional[int] = None,
    cursor: Optional[int] = None,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> Dict:
    """
    List predictions newest first with cursor pagination.

    Args:
        session: Database session
        match_id: Only predictions for this match
        user_id: Only predictions by this user
        cursor: Id of the first prediction of the requested page
        limit: Page size

    Returns:
        Dict with ``predictions`` and ``next_cursor`` (None at end of data)

    Raises:
        InvalidInputError: If limit is out of range or the cursor is unknown
    """
    validate_limit(limit)

    query = select(Prediction).options(selectinload(Prediction.user))
    if match_id is not None:
        query = query.where(Prediction.match_id == match_id)
    if user_id is not None:
        query = query.where(Prediction.user_id == user_id)

    query = await apply_cursor(
        session, query, Prediction, Prediction.created_at, cursor, descending=True
    )
    result = await session.execute(query.limit(limit + 1))
    predictions, next_cursor = split_page(result.scalars().all(), limit)

    return {
        "predictions": [_prediction_to_dict(p, include_user=True) for p in predictions],
        "next_cursor": next_cursor,
    }
