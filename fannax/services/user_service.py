"""
User service layer.

Accounts are owned by the upstream identity provider; this module keeps the
local user row (ledger host, notification recipient) and guards usernames
reserved for official team accounts.
"""

import re
from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from fannax.database.models import User, Team
from fannax.services.errors import ConflictError, InvalidInputError
from fannax.utils.constants import USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH
import logging

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(
    rf"^[a-z0-9_]{{{USERNAME_MIN_LENGTH},{USERNAME_MAX_LENGTH}}}$"
)


def normalize_username(username: str) -> str:
    """Lowercase and strip a username."""
    return (username or "").strip().lower()


async def check_username(session: AsyncSession, username: str) -> Dict:
    """
    Check whether a username can be claimed by a person.

    Args:
        session: Database session
        username: Requested username

    Returns:
        Dict with ``available`` plus either ``username`` or ``reason``;
        team-reserved names also carry ``is_team_username`` and ``team_name``
    """
    normalized = normalize_username(username)

    if not USERNAME_PATTERN.match(normalized):
        return {
            "available": False,
            "reason": (
                f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters, "
                "alphanumeric and underscores only"
            ),
        }

    result = await session.execute(
        select(Team.name).where(Team.reserved_username == normalized)
    )
    team_name = result.scalar_one_or_none()
    if team_name is not None:
        return {
            "available": False,
            "reason": "This username is reserved for an official team account",
            "is_team_username": True,
            "team_name": team_name,
        }

    result = await session.execute(select(User.id).where(User.username == normalized))
    if result.scalar_one_or_none() is not None:
        return {"available": False, "reason": "Username is already taken"}

    return {"available": True, "username": normalized}


async def create_user(
    session: AsyncSession, username: str, name: Optional[str] = None
) -> int:
    """
    Create the local user row for an account.

    Args:
        session: Database session
        username: Requested username
        name: Optional display name

    Returns:
        User ID of the created user

    Raises:
        InvalidInputError: If the username is malformed
        ConflictError: If the username is taken or reserved for a team
    """
    availability = await check_username(session, username)
    if not availability["available"]:
        if availability.get("is_team_username") or "taken" in availability["reason"]:
            raise ConflictError(availability["reason"])
        raise InvalidInputError(availability["reason"])

    new_user = User(username=availability["username"], name=name, total_points=0)
    session.add(new_user)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Username is already taken")
    user_id = new_user.id
    await session.commit()

    return user_id


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dict or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        return None
    return _user_to_dict(user)


def _user_to_dict(user: User) -> Dict:
    """Convert User model to dictionary."""
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "total_points": user.total_points,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
