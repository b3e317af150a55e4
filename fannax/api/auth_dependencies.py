"""
Authentication dependencies for FastAPI routes.

End-user sessions are handled by the upstream identity gateway, which forwards
the authenticated user's id in the ``X-User-Id`` header. Operator endpoints
(sync, settlement) take ``Authorization: Bearer $ADMIN_API_KEY``.
"""

import hmac
import os
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from fannax.services import user_service
from fannax.database.db import get_db_session

operator_security = HTTPBearer(auto_error=False)


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    x_user_id: Optional[str] = Header(default=None),
) -> dict:
    """
    Dependency to get the current user from the gateway-supplied header.

    Args:
        session: Database session
        x_user_id: Authenticated user id forwarded by the gateway

    Returns:
        User dictionary

    Raises:
        HTTPException: If the header is missing, malformed or the user is unknown
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user id",
        )

    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


async def require_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(operator_security),
) -> None:
    """
    Require the operator API key for batch endpoints.

    When ADMIN_API_KEY is not configured the check is skipped (local development).

    Raises:
        HTTPException: 401 if the key is configured and the bearer token does not match
    """
    admin_key = os.getenv("ADMIN_API_KEY")
    if not admin_key:
        return

    if credentials is None or not hmac.compare_digest(credentials.credentials, admin_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
