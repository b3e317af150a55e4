"""
Points ledger.

The ledger is the ``users.total_points`` column. It is only ever changed by
``increment``, and only from inside the settlement unit of work.
"""

from typing import Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from fannax.database.models import User, Prediction
from fannax.services.errors import NotFoundError
import logging

logger = logging.getLogger(__name__)


async def increment(session: AsyncSession, user_id: int, delta: int) -> int:
    """
    Apply a point delta to a user's running total.

    Runs on the caller's session and does not commit; the caller's
    transaction decides whether the change lands.

    Args:
        session: Database session (the settlement transaction)
        user_id: ID of the user to credit/debit
        delta: Signed point delta

    Returns:
        The user's new total

    Raises:
        NotFoundError: If the user does not exist
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(total_points=User.total_points + delta)
        .returning(User.total_points)
    )
    new_total = result.scalar_one_or_none()
    if new_total is None:
        raise NotFoundError(f"User {user_id} not found")
    return new_total


async def get_total_points(session: AsyncSession, user_id: int) -> int:
    """
    Get a user's current total.

    Raises:
        NotFoundError: If the user does not exist
    """
    result = await session.execute(select(User.total_points).where(User.id == user_id))
    total = result.scalar_one_or_none()
    if total is None:
        raise NotFoundError(f"User {user_id} not found")
    return total


async def get_top_predictors(session: AsyncSession, limit: int = 10) -> List[Dict]:
    """
    Leaderboard of users with a positive total, highest first.

    Args:
        session: Database session
        limit: Maximum number of users to return

    Returns:
        List of dicts with id, username, name, total_points and prediction_count
    """
    prediction_counts = (
        select(Prediction.user_id, func.count(Prediction.id).label("prediction_count"))
        .group_by(Prediction.user_id)
        .subquery()
    )
    result = await session.execute(
        select(User, func.coalesce(prediction_counts.c.prediction_count, 0))
        .outerjoin(prediction_counts, prediction_counts.c.user_id == User.id)
        .where(User.total_points > 0)
        .order_by(User.total_points.desc(), User.id.asc())
        .limit(limit)
    )
    return [
        {
            "id": user.id,
            "username": user.username,
            "name": user.name,
            "total_points": user.total_points,
            "prediction_count": count,
        }
        for user, count in result.all()
    ]
