"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error mapping) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from fannax.services.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PipelineError,
    UpstreamUnavailableError,
)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared error mapping
# ---------------------------------------------------------------------------
ERROR_STATUS_CODES = {
    NotFoundError: 404,
    InvalidStateError: 400,
    ConflictError: 409,
    InvalidInputError: 400,
    UpstreamUnavailableError: 503,
}


def http_error_for(error: PipelineError) -> HTTPException:
    """Translate a service error into the matching HTTPException."""
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from fannax.api.routes.matches import router as matches_router  # noqa: E402
from fannax.api.routes.predictions import router as predictions_router  # noqa: E402
from fannax.api.routes.teams import router as teams_router  # noqa: E402
from fannax.api.routes.users import router as users_router  # noqa: E402
from fannax.api.routes.notifications import router as notifications_router  # noqa: E402

router = APIRouter()
router.include_router(matches_router)
router.include_router(predictions_router)
router.include_router(teams_router)
router.include_router(users_router)
router.include_router(notifications_router)
