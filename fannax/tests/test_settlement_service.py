"""
Tests for the settlement service.

Verifies that PENDING predictions on FINISHED matches are:
- scored (exact / correct winner / incorrect)
- credited to the user's ledger exactly once, even across re-runs and
  concurrent runs
- announced with one result notification, which is best-effort
"""

import asyncio
import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import select

from fannax.database.models import (
    Match,
    MatchStatus,
    Notification,
    NotificationType,
    Prediction,
    PredictionResult,
    User,
)
from fannax.services import prediction_service
from fannax.services import settlement_service as settlement_module
from fannax.services.settlement_service import SettlementService
from fannax.services.fixture_ingest_service import FixtureIngestor
from fannax.utils.datetime_utils import utcnow


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def service(session_maker):
    return SettlementService(session_factory=session_maker, poll_interval_seconds=0.05)


@pytest_asyncio.fixture
async def add_prediction(db_session):
    """Insert a PENDING prediction directly (the match may already be finished)."""

    async def _add(user, match, home, away):
        prediction = Prediction(
            user_id=user.id,
            match_id=match.id,
            predicted_home_score=home,
            predicted_away_score=away,
            result_status=PredictionResult.PENDING,
        )
        db_session.add(prediction)
        await db_session.commit()
        return prediction

    return _add


async def _load_prediction(session_maker, prediction_id):
    async with session_maker() as session:
        result = await session.execute(select(Prediction).where(Prediction.id == prediction_id))
        return result.scalar_one()


async def _total_points(session_maker, user_id):
    async with session_maker() as session:
        result = await session.execute(select(User.total_points).where(User.id == user_id))
        return result.scalar_one()


async def _notifications_for(session_maker, user_id):
    async with session_maker() as session:
        result = await session.execute(
            select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
        )
        return result.scalars().all()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_settle_scores_all_outcomes(
    service, session_maker, make_user, make_match, add_prediction
):
    """Final 2-1: exact +3, right winner +2, wrong outcome -1."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=2, away_score=1)
    exact_user = await make_user()
    winner_user = await make_user()
    wrong_user = await make_user()
    exact = await add_prediction(exact_user, match, 2, 1)
    winner = await add_prediction(winner_user, match, 3, 1)
    wrong = await add_prediction(wrong_user, match, 1, 1)

    stats = await service.settle()

    assert stats == {"matches_processed": 1, "predictions_scored": 3, "errors": 0}

    for prediction, result, points, user in (
        (exact, PredictionResult.EXACT_MATCH, 3, exact_user),
        (winner, PredictionResult.CORRECT_WINNER, 2, winner_user),
        (wrong, PredictionResult.INCORRECT, -1, wrong_user),
    ):
        settled = await _load_prediction(session_maker, prediction.id)
        assert settled.result_status == result
        assert settled.points_awarded == points
        assert settled.settled_at is not None
        assert await _total_points(session_maker, user.id) == points


@pytest.mark.asyncio
async def test_settle_creates_one_notification_per_prediction(
    service, session_maker, make_user, make_match, add_prediction
):
    match = await make_match(status=MatchStatus.FINISHED, home_score=1, away_score=0)
    user = await make_user()
    prediction = await add_prediction(user, match, 1, 0)

    await service.settle()
    await service.settle()

    notifications = await _notifications_for(session_maker, user.id)
    assert len(notifications) == 1
    notification = notifications[0]
    assert notification.type == NotificationType.PREDICTION_RESULT.value
    assert notification.message == "Your prediction was a perfect match! (+3 points)"
    assert notification.prediction_id == prediction.id
    assert notification.link_url == f"/predictions/{prediction.id}"
    assert json.loads(notification.data) == {
        "match_id": match.id,
        "prediction_id": prediction.id,
        "result": "EXACT_MATCH",
        "points": 3,
    }


@pytest.mark.asyncio
async def test_settle_is_idempotent(
    service, session_maker, make_user, make_match, add_prediction
):
    """A second run finds nothing to do and does not change the ledger."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=0, away_score=0)
    user = await make_user(total_points=10)
    await add_prediction(user, match, 1, 1)

    first = await service.settle()
    second = await service.settle()

    assert first["predictions_scored"] == 1
    assert second == {"matches_processed": 0, "predictions_scored": 0, "errors": 0}
    assert await _total_points(session_maker, user.id) == 12


@pytest.mark.asyncio
async def test_concurrent_settlement_never_double_credits(
    session_maker, make_user, make_match, add_prediction
):
    """Two overlapping runs settle each prediction exactly once between them."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=3, away_score=1)
    users = [await make_user() for _ in range(4)]
    for user in users:
        await add_prediction(user, match, 3, 1)

    run_a = SettlementService(session_factory=session_maker)
    run_b = SettlementService(session_factory=session_maker)
    stats_a, stats_b = await asyncio.gather(run_a.settle(), run_b.settle())

    assert stats_a["errors"] == 0
    assert stats_b["errors"] == 0
    assert stats_a["predictions_scored"] + stats_b["predictions_scored"] == 4
    for user in users:
        assert await _total_points(session_maker, user.id) == 3
        assert len(await _notifications_for(session_maker, user.id)) == 1


@pytest.mark.asyncio
async def test_settle_prediction_already_settled_is_skipped(
    service, session_maker, make_user, make_match, add_prediction
):
    """The conditional update matches nothing for a non-PENDING prediction."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=2, away_score=0)
    user = await make_user()
    prediction = await add_prediction(user, match, 2, 0)
    row = {
        "id": prediction.id,
        "user_id": user.id,
        "predicted_home_score": 2,
        "predicted_away_score": 0,
    }

    first = await service.settle_prediction(row, 2, 0)
    second = await service.settle_prediction(row, 2, 0)

    assert first is not None
    assert first.result == PredictionResult.EXACT_MATCH
    assert second is None
    assert await _total_points(session_maker, user.id) == 3


@pytest.mark.asyncio
async def test_settle_ignores_unfinished_matches(
    service, session_maker, make_user, make_match, add_prediction
):
    scheduled = await make_match(status=MatchStatus.SCHEDULED)
    live = await make_match(status=MatchStatus.LIVE)
    user = await make_user()
    p1 = await add_prediction(user, scheduled, 1, 0)
    p2 = await add_prediction(user, live, 1, 0)

    stats = await service.settle()

    assert stats == {"matches_processed": 0, "predictions_scored": 0, "errors": 0}
    for prediction in (p1, p2):
        reloaded = await _load_prediction(session_maker, prediction.id)
        assert reloaded.result_status == PredictionResult.PENDING
        assert reloaded.points_awarded is None
    assert await _total_points(session_maker, user.id) == 0


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_settlement(
    service, session_maker, make_user, make_match, add_prediction, monkeypatch
):
    """Settlement and ledger stay committed even when notifying fails."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=0, away_score=2)
    user = await make_user()
    prediction = await add_prediction(user, match, 0, 1)

    async def failing_notify(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(settlement_module, "notify_prediction_result", failing_notify)

    stats = await service.settle()

    assert stats["predictions_scored"] == 1
    assert stats["errors"] == 0
    settled = await _load_prediction(session_maker, prediction.id)
    assert settled.result_status == PredictionResult.CORRECT_WINNER
    assert await _total_points(session_maker, user.id) == 2
    assert await _notifications_for(session_maker, user.id) == []


@pytest.mark.asyncio
async def test_ledger_failure_rolls_back_prediction(
    service, session_maker, make_user, make_match, add_prediction, monkeypatch
):
    """If the ledger increment fails the prediction stays PENDING and is counted as an error."""
    match = await make_match(status=MatchStatus.FINISHED, home_score=1, away_score=1)
    user = await make_user()
    prediction = await add_prediction(user, match, 1, 1)

    async def failing_increment(*args, **kwargs):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(settlement_module.ledger_service, "increment", failing_increment)

    stats = await service.settle()

    assert stats["errors"] == 1
    assert stats["predictions_scored"] == 0
    reloaded = await _load_prediction(session_maker, prediction.id)
    assert reloaded.result_status == PredictionResult.PENDING
    assert reloaded.points_awarded is None

    monkeypatch.undo()
    retry = await service.settle()
    assert retry["predictions_scored"] == 1
    assert await _total_points(session_maker, user.id) == 3


@pytest.mark.asyncio
async def test_background_worker_settles_and_stops(
    service, session_maker, make_user, make_match, add_prediction
):
    match = await make_match(status=MatchStatus.FINISHED, home_score=1, away_score=0)
    user = await make_user()
    prediction = await add_prediction(user, match, 2, 0)

    service.start()
    assert service.is_running
    for _ in range(100):
        reloaded = await _load_prediction(session_maker, prediction.id)
        if reloaded.result_status != PredictionResult.PENDING:
            break
        await asyncio.sleep(0.02)
    await service.stop()

    assert not service.is_running
    assert reloaded.result_status == PredictionResult.CORRECT_WINNER
    assert await _total_points(session_maker, user.id) == 2


@pytest.mark.asyncio
async def test_stopped_service_starts_no_new_units(
    service, session_maker, make_user, make_match, add_prediction
):
    match = await make_match(status=MatchStatus.FINISHED, home_score=1, away_score=0)
    user = await make_user()
    prediction = await add_prediction(user, match, 1, 0)

    await service.stop()
    stats = await service.settle()

    assert stats["predictions_scored"] == 0
    reloaded = await _load_prediction(session_maker, prediction.id)
    assert reloaded.result_status == PredictionResult.PENDING


@pytest.mark.asyncio
async def test_stop_mid_match_leaves_match_uncounted(
    service, session_maker, make_user, make_match, add_prediction, monkeypatch
):
    match = await make_match(status=MatchStatus.FINISHED, home_score=1, away_score=0)
    first = await add_prediction(await make_user(), match, 1, 0)
    second = await add_prediction(await make_user(), match, 0, 1)

    settle_one = service.settle_prediction

    async def settle_then_stop(*args, **kwargs):
        result = await settle_one(*args, **kwargs)
        service._stop_event.set()
        return result

    monkeypatch.setattr(service, "settle_prediction", settle_then_stop)

    stats = await service.settle()

    assert stats == {"matches_processed": 0, "predictions_scored": 1, "errors": 0}
    assert (await _load_prediction(session_maker, first.id)).result_status == PredictionResult.EXACT_MATCH
    assert (await _load_prediction(session_maker, second.id)).result_status == PredictionResult.PENDING


# ---------------------------------------------------------------------------
# Ingest -> predict -> full time -> settle
# ---------------------------------------------------------------------------


def provider_fixture(kickoff, state_id=1, scores=None):
    """One SportMonks fixture, Arsenal v Chelsea."""
    participants = [
        {"id": 1, "name": "Arsenal", "short_code": "ARS", "meta": {"location": "home"}},
        {"id": 2, "name": "Chelsea", "short_code": "CHE", "meta": {"location": "away"}},
    ]
    score_entries = []
    if scores is not None:
        score_entries = [
            {"description": "CURRENT", "score": {"goals": scores[0], "participant": "home"}},
            {"description": "CURRENT", "score": {"goals": scores[1], "participant": "away"}},
        ]
    return {
        "id": 9001,
        "league_id": 8,
        "state_id": state_id,
        "starting_at": kickoff.strftime("%Y-%m-%d %H:%M:%S"),
        "participants": participants,
        "scores": score_entries,
        "venue": {"name": "Emirates Stadium"},
        "league": {"name": "Premier League"},
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "final, result, points",
    [
        ((2, 1), PredictionResult.EXACT_MATCH, 3),
        ((3, 1), PredictionResult.CORRECT_WINNER, 2),
        ((0, 0), PredictionResult.INCORRECT, -1),
    ],
)
async def test_prediction_lifecycle_end_to_end(
    service, session_maker, db_session, make_user, final, result, points
):
    """Kickoff in an hour, user predicts 2-1, provider later reports full time."""
    kickoff = utcnow() + timedelta(hours=1)
    client = MagicMock()
    client.get_upcoming_fixtures = AsyncMock(return_value=[provider_fixture(kickoff)])
    ingestor = FixtureIngestor(client, session_maker)

    assert (await ingestor.sync(7))["created"] == 1
    match_id = (
        await db_session.execute(select(Match.id).where(Match.external_id == 9001))
    ).scalar_one()

    user = await make_user()
    user_id = user.id
    submitted = await prediction_service.submit(
        db_session,
        user_id=user_id,
        match_id=match_id,
        predicted_home_score=2,
        predicted_away_score=1,
    )
    assert submitted["result_status"] == PredictionResult.PENDING.value

    client.get_upcoming_fixtures.return_value = [provider_fixture(kickoff, state_id=5, scores=final)]
    assert (await ingestor.sync(7))["updated"] == 1

    stats = await service.settle()

    assert stats == {"matches_processed": 1, "predictions_scored": 1, "errors": 0}
    settled = await _load_prediction(session_maker, submitted["id"])
    assert settled.result_status == result
    assert settled.points_awarded == points
    assert await _total_points(session_maker, user_id) == points
    notifications = await _notifications_for(session_maker, user_id)
    assert len(notifications) == 1
    assert notifications[0].link_url == f"/predictions/{submitted['id']}"
