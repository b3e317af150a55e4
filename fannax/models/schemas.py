"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from fannax.utils.constants import (
    CAPTION_MAX_LENGTH,
    DEFAULT_SYNC_DAYS_AHEAD,
    MAX_PREDICTED_SCORE,
    MAX_SYNC_DAYS_AHEAD,
    MIN_PREDICTED_SCORE,
)


# ============================================================================
# Teams and matches
# ============================================================================


class TeamSummary(BaseModel):
    """Team as embedded in match responses."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    short_code: Optional[str] = None
    logo_url: Optional[str] = None
    reserved_username: Optional[str] = None


class MatchResponse(BaseModel):
    """Match with both teams and, once finished, the final score."""

    id: int
    external_id: int
    home_team: Optional[TeamSummary] = None
    away_team: Optional[TeamSummary] = None
    scheduled_at: str
    venue: Optional[str] = None
    league_name: Optional[str] = None
    league_id: Optional[int] = None
    status: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    prediction_count: Optional[int] = None


class MatchListResponse(BaseModel):
    """Cursor-paginated match list."""

    matches: List[MatchResponse]
    next_cursor: Optional[int] = None


class UpcomingMatchesResponse(BaseModel):
    """Upcoming scheduled matches."""

    matches: List[MatchResponse]


class SyncMatchesRequest(BaseModel):
    """Fixture sync window."""

    days: int = Field(default=DEFAULT_SYNC_DAYS_AHEAD, ge=1, le=MAX_SYNC_DAYS_AHEAD)


class SyncMatchesResponse(BaseModel):
    """Fixture sync outcome counts."""

    success: bool
    created: int
    updated: int
    errors: int
    total: int


class SyncTeamsResponse(BaseModel):
    """Team catalogue sync outcome counts."""

    success: bool
    created: int
    updated: int
    errors: int


# ============================================================================
# Predictions
# ============================================================================


class PredictionCreate(BaseModel):
    """Score prediction submission."""

    match_id: int
    predicted_home_score: int = Field(..., strict=True, ge=MIN_PREDICTED_SCORE, le=MAX_PREDICTED_SCORE)
    predicted_away_score: int = Field(..., strict=True, ge=MIN_PREDICTED_SCORE, le=MAX_PREDICTED_SCORE)
    caption: Optional[str] = Field(default=None, max_length=CAPTION_MAX_LENGTH)


class PredictionUser(BaseModel):
    """Predicting user summary."""

    id: int
    username: str
    name: Optional[str] = None


class PredictionResponse(BaseModel):
    """A prediction and, once settled, its result."""

    id: int
    user_id: int
    match_id: int
    predicted_home_score: int
    predicted_away_score: int
    caption: Optional[str] = None
    result_status: str
    result_display: Optional[str] = None
    points_awarded: Optional[int] = None
    settled_at: Optional[str] = None
    created_at: Optional[str] = None
    user: Optional[PredictionUser] = None


class PredictionListResponse(BaseModel):
    """Cursor-paginated prediction list."""

    predictions: List[PredictionResponse]
    next_cursor: Optional[int] = None


class SettlementResponse(BaseModel):
    """Settlement run outcome counts."""

    success: bool
    matches_processed: int
    predictions_scored: int
    errors: int


# ============================================================================
# Users
# ============================================================================


class UserCreate(BaseModel):
    """Local user row for an upstream account."""

    username: str
    name: Optional[str] = None


class UserResponse(BaseModel):
    """User profile with ledger total."""

    id: int
    username: str
    name: Optional[str] = None
    total_points: int
    created_at: Optional[str] = None


class UsernameCheckResponse(BaseModel):
    """Username availability."""

    available: bool
    username: Optional[str] = None
    reason: Optional[str] = None
    is_team_username: Optional[bool] = None
    team_name: Optional[str] = None


class TopPredictorResponse(BaseModel):
    """Leaderboard row."""

    id: int
    username: str
    name: Optional[str] = None
    total_points: int
    prediction_count: int


# ============================================================================
# Notifications
# ============================================================================


class NotificationResponse(BaseModel):
    """Notification response."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: int
    type: str
    title: str
    message: str
    data: Optional[dict] = None
    prediction_id: Optional[int] = None
    is_read: bool
    read_at: Optional[str] = None
    link_url: Optional[str] = None
    created_at: str


class NotificationListResponse(BaseModel):
    """Paginated notification list response."""

    notifications: List[NotificationResponse]
    total_count: int
    has_more: bool


class UnreadCountResponse(BaseModel):
    """Unread notification count response."""

    count: int
