"""
Notification service for managing user notifications.

Handles creation, retrieval, and status updates for in-app notifications.
Delivery (push, websocket, UI) happens downstream of the stored rows.
"""

from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from fannax.database.models import Notification, NotificationType, PredictionResult
from fannax.services.errors import NotFoundError
from fannax.services.scoring_service import format_points
from fannax.utils.datetime_utils import utcnow
import json
import logging

logger = logging.getLogger(__name__)

RESULT_PHRASES = {
    PredictionResult.EXACT_MATCH: "a perfect match!",
    PredictionResult.CORRECT_WINNER: "correct!",
    PredictionResult.INCORRECT: "incorrect.",
}


def _notification_to_dict(notification: Notification) -> Dict:
    """Convert Notification model to dictionary."""
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "data": json.loads(notification.data) if notification.data else None,
        "prediction_id": notification.prediction_id,
        "is_read": notification.is_read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "link_url": notification.link_url,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


async def create_notification(
    session: AsyncSession,
    user_id: int,
    type: str,
    title: str,
    message: str,
    data: Optional[Dict] = None,
    link_url: Optional[str] = None,
    prediction_id: Optional[int] = None,
) -> Dict:
    """
    Store one notification for a user.

    ``data`` is kept as a JSON string; ``prediction_id`` ties result
    notifications back to the settled prediction.

    Raises:
        ValueError: If user_id, type, title or message is empty
    """
    for field, value in (("user_id", user_id), ("type", type), ("title", title), ("message", message)):
        if not value:
            raise ValueError(f"{field} is required")

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=json.dumps(data) if data is not None else None,
        link_url=link_url,
        prediction_id=prediction_id,
        is_read=False,
    )

    session.add(notification)
    await session.flush()
    await session.refresh(notification)

    return _notification_to_dict(notification)


def build_prediction_result_message(result: PredictionResult, points: int) -> str:
    """
    Summarize a settled prediction, e.g. "Your prediction was correct! (+2 points)".
    """
    phrase = RESULT_PHRASES.get(PredictionResult(result), "settled.")
    return f"Your prediction was {phrase} ({format_points(points)} points)"


async def notify_prediction_result(
    session: AsyncSession,
    user_id: int,
    prediction_id: int,
    match_id: int,
    result: PredictionResult,
    points: int,
) -> Dict:
    """
    Create the result notification for a settled prediction.

    Args:
        session: Database session
        user_id: Predicting user
        prediction_id: Settled prediction
        match_id: Match the prediction was on
        result: Terminal prediction result
        points: Point delta applied to the ledger

    Returns:
        Dict containing the created notification data
    """
    result = PredictionResult(result)
    return await create_notification(
        session=session,
        user_id=user_id,
        type=NotificationType.PREDICTION_RESULT.value,
        title="Prediction result",
        message=build_prediction_result_message(result, points),
        data={
            "match_id": match_id,
            "prediction_id": prediction_id,
            "result": result.value,
            "points": points,
        },
        link_url=f"/predictions/{prediction_id}",
        prediction_id=prediction_id,
    )


def _owned_by(user_id: int, unread_only: bool = False):
    condition = Notification.user_id == user_id
    if unread_only:
        condition = and_(condition, Notification.is_read.is_(False))
    return condition


async def get_user_notifications(
    session: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
) -> Dict:
    """
    Page through a user's notifications, newest first.

    Returns:
        Dict with ``notifications``, ``total_count`` and ``has_more``
    """
    condition = _owned_by(user_id, unread_only)

    total_count = (
        await session.execute(select(func.count(Notification.id)).where(condition))
    ).scalar_one()

    result = await session.execute(
        select(Notification)
        .where(condition)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .offset(offset)
    )
    notifications = [_notification_to_dict(n) for n in result.scalars().all()]

    return {
        "notifications": notifications,
        "total_count": total_count,
        "has_more": offset + len(notifications) < total_count,
    }


async def get_unread_count(session: AsyncSession, user_id: int) -> int:
    result = await session.execute(
        select(func.count(Notification.id)).where(_owned_by(user_id, unread_only=True))
    )
    return result.scalar_one()


async def mark_as_read(session: AsyncSession, notification_id: int, user_id: int) -> Dict:
    """
    Mark one of the user's notifications as read.

    Raises:
        NotFoundError: If the notification does not exist or belongs to someone else
    """
    result = await session.execute(
        select(Notification).where(
            and_(Notification.id == notification_id, _owned_by(user_id))
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFoundError("Notification not found or access denied")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await session.flush()

    return _notification_to_dict(notification)


async def mark_all_as_read(session: AsyncSession, user_id: int) -> int:
    """Mark every unread notification of the user as read; returns how many changed."""
    result = await session.execute(
        update(Notification)
        .where(_owned_by(user_id, unread_only=True))
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
