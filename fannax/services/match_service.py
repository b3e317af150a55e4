"""
Match service: lifecycle policy and match read operations.

Lifecycle: SCHEDULED -> LIVE -> FINISHED. A FINISHED match carries its final
score and is never changed again by later provider syncs.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from fannax.database.models import Match, MatchStatus, Prediction, Team
from fannax.services.errors import InvalidInputError, NotFoundError
from fannax.services.sportmonks_client import FixtureData
from fannax.utils.constants import DEFAULT_PAGE_LIMIT
from fannax.utils.datetime_utils import ensure_utc, utcnow
from fannax.utils.pagination import apply_cursor, split_page, validate_limit
import logging

logger = logging.getLogger(__name__)


def apply_fixture_state(match: Match, fixture: FixtureData) -> bool:
    """
    Apply a provider snapshot's lifecycle information to a match.

    - FINISHED matches are left untouched (no score corrections).
    - Provider reports final -> FINISHED with the final score.
    - Provider reports in-play -> LIVE.
    - Anything else leaves the state as it is.

    Args:
        match: Existing match row
        fixture: Latest provider snapshot

    Returns:
        True if status or score changed

    Raises:
        InvalidInputError: If the provider reports a final result without both scores
    """
    if match.status == MatchStatus.FINISHED:
        if fixture.is_finished and (
            fixture.home_score != match.home_score or fixture.away_score != match.away_score
        ):
            logger.warning(
                f"Ignoring score change for finished match {match.id} "
                f"({match.home_score}-{match.away_score} -> {fixture.home_score}-{fixture.away_score})"
            )
        return False

    if fixture.is_finished:
        if fixture.home_score is None or fixture.away_score is None:
            raise InvalidInputError(
                f"Fixture {fixture.external_id} reported finished without a final score"
            )
        match.status = MatchStatus.FINISHED
        match.home_score = fixture.home_score
        match.away_score = fixture.away_score
        return True

    if fixture.is_live and match.status != MatchStatus.LIVE:
        match.status = MatchStatus.LIVE
        return True

    return False


def is_open_for_predictions(match: Match, now: Optional[datetime] = None) -> bool:
    """Predictions are accepted only before kickoff of a SCHEDULED match."""
    now = now or utcnow()
    return match.status == MatchStatus.SCHEDULED and ensure_utc(match.scheduled_at) > now


def _team_to_dict(team: Optional[Team]) -> Optional[Dict]:
    if team is None:
        return None
    return {
        "id": team.id,
        "name": team.name,
        "short_code": team.short_code,
        "logo_url": team.logo_url,
        "reserved_username": team.reserved_username,
    }


def match_to_dict(match: Match, prediction_count: Optional[int] = None) -> Dict:
    """Convert Match model (with teams loaded) to dictionary."""
    result = {
        "id": match.id,
        "external_id": match.external_id,
        "home_team": _team_to_dict(match.home_team),
        "away_team": _team_to_dict(match.away_team),
        "scheduled_at": ensure_utc(match.scheduled_at).isoformat() if match.scheduled_at else None,
        "venue": match.venue,
        "league_name": match.league_name,
        "league_id": match.league_id,
        "status": MatchStatus(match.status).value,
        "home_score": match.home_score,
        "away_score": match.away_score,
    }
    if prediction_count is not None:
        result["prediction_count"] = prediction_count
    return result


async def get_match(session: AsyncSession, match_id: int) -> Match:
    """
    Get a match by id.

    Raises:
        NotFoundError: If the match does not exist
    """
    result = await session.execute(select(Match).where(Match.id == match_id))
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFoundError("Match not found")
    return match


async def _prediction_counts(session: AsyncSession, match_ids) -> Dict[int, int]:
    if not match_ids:
        return {}
    result = await session.execute(
        select(Prediction.match_id, func.count(Prediction.id))
        .where(Prediction.match_id.in_(match_ids))
        .group_by(Prediction.match_id)
    )
    return {match_id: count for match_id, count in result.all()}


async def list_matches(
    session: AsyncSession,
    status: Optional[str] = None,
    cursor: Optional[int] = None,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> Dict:
    """
    List matches by kickoff time (earliest first), cursor-paginated.

    Args:
        session: Database session
        status: Optional status filter (SCHEDULED, LIVE or FINISHED)
        cursor: Id of the first match of the requested page
        limit: Page size

    Returns:
        Dict with ``matches`` and ``next_cursor``

    Raises:
        InvalidInputError: On an unknown status, bad limit or bad cursor
    """
    validate_limit(limit)
    query = select(Match)
    if status:
        try:
            query = query.where(Match.status == MatchStatus(status.upper()))
        except ValueError:
            raise InvalidInputError(f"Unknown match status: {status}")

    query = await apply_cursor(session, query, Match, Match.scheduled_at, cursor, descending=False)
    result = await session.execute(query.limit(limit + 1))
    matches, next_cursor = split_page(result.scalars().all(), limit)

    counts = await _prediction_counts(session, [m.id for m in matches])
    return {
        "matches": [match_to_dict(m, counts.get(m.id, 0)) for m in matches],
        "next_cursor": next_cursor,
    }


async def get_upcoming_matches(session: AsyncSession, days: int = 7, limit: int = 10) -> Dict:
    """
    SCHEDULED matches kicking off within the next ``days`` days, soonest first.

    Returns:
        Dict with ``matches`` (each carrying ``prediction_count``)
    """
    validate_limit(limit)
    if days < 1:
        raise InvalidInputError("days must be at least 1")

    now = utcnow()
    result = await session.execute(
        select(Match)
        .where(
            and_(
                Match.status == MatchStatus.SCHEDULED,
                Match.scheduled_at >= now,
                Match.scheduled_at <= now + timedelta(days=days),
            )
        )
        .order_by(Match.scheduled_at.asc(), Match.id.asc())
        .limit(limit)
    )
    matches = result.scalars().all()
    counts = await _prediction_counts(session, [m.id for m in matches])
    return {"matches": [match_to_dict(m, counts.get(m.id, 0)) for m in matches]}
