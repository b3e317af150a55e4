"""In-app notification route handlers (prediction results)."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from fannax.api.auth_dependencies import require_user
from fannax.api.routes import http_error_for
from fannax.database.db import get_db_session
from fannax.models.schemas import (
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from fannax.services import notification_service
from fannax.services.errors import PipelineError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/notifications", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = 50,
    offset: int = 0,
    unread_only: bool = False,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """The current user's notifications, newest first."""
    try:
        return await notification_service.get_user_notifications(
            session, user["id"], limit=limit, offset=offset, unread_only=unread_only
        )
    except Exception as e:
        logger.error(f"Error fetching notifications for user {user['id']}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch notifications")


@router.get("/api/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return {"count": await notification_service.get_unread_count(session, user["id"])}
    except Exception as e:
        logger.error(f"Error counting unread notifications: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch unread count")


# Declared before /{notification_id}/read so "mark-all-read" is not parsed as an id
@router.put("/api/notifications/mark-all-read")
async def mark_all_read(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        count = await notification_service.mark_all_as_read(session, user["id"])
        return {"success": True, "count": count}
    except Exception as e:
        logger.error(f"Error marking notifications read: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to mark notifications as read")


@router.put("/api/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Mark one of the current user's notifications as read."""
    try:
        return await notification_service.mark_as_read(session, notification_id, user["id"])
    except PipelineError as e:
        raise http_error_for(e)
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} read: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to mark notification as read")
