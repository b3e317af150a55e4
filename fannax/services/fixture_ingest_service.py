"""
Fixture ingestor: reconciles provider fixture and team snapshots into the
local Team and Match tables.

Each fixture (and each team during a catalogue sync) is reconciled in its own
transaction, so one bad record is logged and counted without rolling back the
rest of the run. Ingestion never touches predictions, the points ledger or
notifications.
"""

import logging
from typing import Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fannax.database import db
from fannax.database.models import Match, MatchStatus, Team
from fannax.services.errors import InvalidInputError, UpstreamUnavailableError
from fannax.services.match_service import apply_fixture_state
from fannax.services.sportmonks_client import (
    FixtureData,
    SportMonksClient,
    TeamData,
    parse_fixture,
    parse_team,
)
from fannax.utils.constants import DEFAULT_SYNC_DAYS_AHEAD, MAX_SYNC_DAYS_AHEAD
from fannax.utils.slugify import handle_from_name, with_numeric_suffix

logger = logging.getLogger(__name__)

TEAMS_PER_PAGE = 100


def _raw_id(raw) -> str:
    """Provider id of a raw record for log lines, whatever its shape."""
    return str(raw.get("id")) if isinstance(raw, dict) else repr(raw)


async def generate_reserved_username(session: AsyncSession, team: TeamData) -> str:
    """
    Pick the handle reserved for a new team's official account.

    The slugified team name, with a numeric suffix (1, 2, ...) when another
    team already holds it.
    """
    base = handle_from_name(team.name) or f"team{team.external_id}"
    candidate = base
    counter = 1
    while True:
        result = await session.execute(
            select(Team.id).where(Team.reserved_username == candidate)
        )
        if result.scalar_one_or_none() is None:
            return candidate
        candidate = with_numeric_suffix(base, counter)
        counter += 1


async def upsert_team(
    session: AsyncSession, team: TeamData, update_country: bool = False
) -> Tuple[Team, bool]:
    """
    Create or refresh a Team by provider id.

    Args:
        session: Database session (caller's transaction)
        team: Provider team snapshot
        update_country: Also overwrite country_id (catalogue sync carries it)

    Returns:
        Tuple of (Team, created)
    """
    result = await session.execute(select(Team).where(Team.external_id == team.external_id))
    existing = result.scalar_one_or_none()

    if existing is not None:
        existing.name = team.name
        existing.short_code = team.short_code
        existing.logo_url = team.logo_url
        if update_country and team.country_id is not None:
            existing.country_id = team.country_id
        return existing, False

    new_team = Team(
        external_id=team.external_id,
        name=team.name,
        short_code=team.short_code,
        logo_url=team.logo_url,
        country_id=team.country_id,
        reserved_username=await generate_reserved_username(session, team),
    )
    session.add(new_team)
    await session.flush()
    return new_team, True


class FixtureIngestor:
    """Pulls fixtures and teams from SportMonks and upserts them locally."""

    def __init__(
        self,
        client: SportMonksClient,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.client = client
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory or db.AsyncSessionLocal

    async def sync(self, days_ahead: int = DEFAULT_SYNC_DAYS_AHEAD) -> Dict[str, int]:
        """
        Reconcile fixtures kicking off between today and ``days_ahead`` days out.

        Args:
            days_ahead: Window size in days (1-100)

        Returns:
            Dict with created, updated, errors and total counts

        Raises:
            InvalidInputError: If days_ahead is out of range
            UpstreamUnavailableError: If the provider cannot be reached
        """
        if isinstance(days_ahead, bool) or not isinstance(days_ahead, int) or not (
            1 <= days_ahead <= MAX_SYNC_DAYS_AHEAD
        ):
            raise InvalidInputError(f"days must be between 1 and {MAX_SYNC_DAYS_AHEAD}")

        fixtures = await self.client.get_upcoming_fixtures(days_ahead)
        stats = {"created": 0, "updated": 0, "errors": 0, "total": len(fixtures)}

        for raw in fixtures:
            try:
                fixture = parse_fixture(raw)
            except Exception as e:
                logger.warning(f"Skipping unparseable fixture {_raw_id(raw)}: {e!r}")
                stats["errors"] += 1
                continue

            if fixture.home_team is None or fixture.away_team is None:
                logger.warning(f"Skipping fixture {fixture.external_id}: missing participant")
                stats["errors"] += 1
                continue

            try:
                created = await self._reconcile_fixture(fixture)
            except InvalidInputError as e:
                logger.warning(f"Skipping fixture {fixture.external_id}: {e}")
                stats["errors"] += 1
                continue
            except Exception as e:
                logger.error(f"Error processing fixture {fixture.external_id}: {e}", exc_info=True)
                stats["errors"] += 1
                continue

            stats["created" if created else "updated"] += 1

        logger.info(
            f"Fixture sync finished: {stats['created']} created, {stats['updated']} updated, "
            f"{stats['errors']} errors, {stats['total']} total"
        )
        return stats

    async def _reconcile_fixture(self, fixture: FixtureData) -> bool:
        """
        Upsert one fixture and its teams in a single transaction.

        Returns:
            True if the match was created, False if it already existed
        """
        async with self.session_factory() as session:
            async with session.begin():
                home_team, _ = await upsert_team(session, fixture.home_team)
                away_team, _ = await upsert_team(session, fixture.away_team)

                result = await session.execute(
                    select(Match).where(Match.external_id == fixture.external_id)
                )
                match = result.scalar_one_or_none()

                if match is None:
                    if fixture.scheduled_at is None:
                        raise InvalidInputError("missing kickoff time")
                    match = Match(
                        external_id=fixture.external_id,
                        home_team_id=home_team.id,
                        away_team_id=away_team.id,
                        scheduled_at=fixture.scheduled_at,
                        venue=fixture.venue,
                        league_name=fixture.league_name,
                        league_id=fixture.league_id,
                        status=MatchStatus.SCHEDULED,
                    )
                    apply_fixture_state(match, fixture)
                    session.add(match)
                    return True

                if fixture.venue is not None:
                    match.venue = fixture.venue
                if fixture.league_name is not None:
                    match.league_name = fixture.league_name
                if fixture.league_id is not None:
                    match.league_id = fixture.league_id
                if apply_fixture_state(match, fixture):
                    logger.info(
                        f"Match {match.id} is now {MatchStatus(match.status).value}"
                        + (f" ({match.home_score}-{match.away_score})" if match.has_final_score else "")
                    )
                return False

    async def sync_teams(self) -> Dict[str, int]:
        """
        Walk the provider's team catalogue and upsert every team.

        A failed page fetch stops paging and counts as one error; the teams
        already reconciled stay committed.

        Returns:
            Dict with created, updated and errors counts
        """
        stats = {"created": 0, "updated": 0, "errors": 0}
        page = 1
        has_more = True

        while has_more:
            try:
                teams, has_more = await self.client.get_teams_page(page, TEAMS_PER_PAGE)
            except UpstreamUnavailableError as e:
                logger.error(f"Error fetching teams page {page}: {e}")
                stats["errors"] += 1
                break

            for raw in teams:
                try:
                    team = parse_team(raw)
                    created = await self._reconcile_team(team)
                except Exception as e:
                    logger.error(f"Error processing team {_raw_id(raw)}: {e}", exc_info=True)
                    stats["errors"] += 1
                    continue
                stats["created" if created else "updated"] += 1

            page += 1

        logger.info(
            f"Team sync finished: {stats['created']} created, {stats['updated']} updated, "
            f"{stats['errors']} errors"
        )
        return stats

    async def _reconcile_team(self, team: TeamData) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                _, created = await upsert_team(session, team, update_country=True)
                return created
