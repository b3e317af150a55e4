"""
Shared pytest configuration for fannax tests.

Each test gets its own file-backed SQLite database (via aiosqlite) so that
code opening its own sessions (settlement, ingestion) and concurrent sessions
in the same test all see the same data.
"""

import os

# Must be set before the app/routes are imported: disables rate limiting and
# the in-process settlement worker.
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SETTLEMENT_POLL_INTERVAL_SECONDS", "0")

from datetime import timedelta  # noqa: E402

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from fannax.database import db  # noqa: E402
from fannax.database.db import Base  # noqa: E402
from fannax.database.models import Match, MatchStatus, Team, User  # noqa: E402
from fannax.utils.datetime_utils import utcnow  # noqa: E402


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a fresh SQLite database for the test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fannax_test.db'}",
        echo=False,
        poolclass=NullPool,  # Each session gets its own connection
        connect_args={"timeout": 30},  # Wait for writers instead of failing with "database is locked"
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Monkey-patch AsyncSessionLocal to use the test engine
    # This ensures that code using db.AsyncSessionLocal() (like the settlement
    # service) uses the same database as the test fixtures
    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_engine):
    """Session factory bound to the test database."""
    return db.AsyncSessionLocal


@pytest_asyncio.fixture
async def db_session(session_maker):
    """A test database session. Fixtures commit so other sessions see their rows."""
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory: create and commit a user."""
    counter = {"n": 0}

    async def _make_user(username=None, total_points=0):
        counter["n"] += 1
        user = User(
            username=username or f"fan{counter['n']}",
            name=f"Fan {counter['n']}",
            total_points=total_points,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_team(db_session):
    """Factory: create and commit a team."""
    counter = {"n": 0}

    async def _make_team(name=None, reserved_username=None, external_id=None):
        counter["n"] += 1
        name = name or f"Team {counter['n']}"
        team = Team(
            external_id=external_id or 1000 + counter["n"],
            name=name,
            short_code=name[:3].upper(),
            reserved_username=reserved_username or f"team{counter['n']}",
        )
        db_session.add(team)
        await db_session.commit()
        return team

    return _make_team


@pytest_asyncio.fixture
async def make_match(db_session, make_team):
    """Factory: create and commit a match between two new teams."""
    counter = {"n": 0}

    async def _make_match(
        status=MatchStatus.SCHEDULED,
        scheduled_at=None,
        home_score=None,
        away_score=None,
        external_id=None,
    ):
        counter["n"] += 1
        home = await make_team()
        away = await make_team()
        match = Match(
            external_id=external_id or 5000 + counter["n"],
            home_team_id=home.id,
            away_team_id=away.id,
            scheduled_at=scheduled_at or utcnow() + timedelta(days=1),
            status=status,
            home_score=home_score,
            away_score=away_score,
        )
        db_session.add(match)
        await db_session.commit()
        return match

    return _make_match
