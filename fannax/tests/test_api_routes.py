"""
HTTP-level tests for the API routes.

Uses FastAPI TestClient with service functions patched, so status codes,
response shapes and error mapping are verified without a database.
"""

import pytest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from fannax.api.main import app
from fannax.services.errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UpstreamUnavailableError,
)

TEST_USER = {
    "id": 1,
    "username": "gooner",
    "name": "Gooner",
    "total_points": 5,
    "created_at": "2026-10-01T00:00:00+00:00",
}

PREDICTION = {
    "id": 10,
    "user_id": 1,
    "match_id": 3,
    "predicted_home_score": 2,
    "predicted_away_score": 1,
    "caption": None,
    "result_status": "PENDING",
    "result_display": "Pending",
    "points_awarded": None,
    "settled_at": None,
    "created_at": "2026-10-19T10:00:00+00:00",
}


@pytest.fixture
def client():
    """Create a TestClient for the app."""
    return TestClient(app)


@pytest.fixture
def operator_key(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", "secret-key")
    return "secret-key"


@pytest.fixture
def logged_in():
    with patch(
        "fannax.services.user_service.get_user_by_id", new_callable=AsyncMock
    ) as mock_get_user:
        mock_get_user.return_value = TEST_USER
        yield mock_get_user


# ============================================================================
# POST /api/predictions
# ============================================================================


@patch("fannax.services.prediction_service.submit", new_callable=AsyncMock)
def test_create_prediction_returns_201(mock_submit, client, logged_in):
    mock_submit.return_value = PREDICTION

    response = client.post(
        "/api/predictions",
        json={"match_id": 3, "predicted_home_score": 2, "predicted_away_score": 1},
        headers={"X-User-Id": "1"},
    )

    assert response.status_code == 201
    assert response.json()["result_status"] == "PENDING"
    kwargs = mock_submit.call_args.kwargs
    assert kwargs["user_id"] == 1
    assert kwargs["match_id"] == 3
    assert kwargs["caption"] is None


@pytest.mark.parametrize(
    "error, status_code",
    [
        (NotFoundError("Match not found"), 404),
        (InvalidStateError("Predictions are closed"), 400),
        (ConflictError("Already predicted"), 409),
        (InvalidInputError("Bad scores"), 400),
    ],
)
def test_create_prediction_error_mapping(client, logged_in, error, status_code):
    with patch(
        "fannax.services.prediction_service.submit", new_callable=AsyncMock
    ) as mock_submit:
        mock_submit.side_effect = error
        response = client.post(
            "/api/predictions",
            json={"match_id": 3, "predicted_home_score": 2, "predicted_away_score": 1},
            headers={"X-User-Id": "1"},
        )

    assert response.status_code == status_code
    assert response.json()["detail"] == str(error)


@pytest.mark.parametrize(
    "body",
    [
        {"match_id": 3, "predicted_home_score": 21, "predicted_away_score": 1},
        {"match_id": 3, "predicted_home_score": -1, "predicted_away_score": 1},
        {"match_id": 3, "predicted_home_score": True, "predicted_away_score": 1},
        {"match_id": 3, "predicted_home_score": 1, "predicted_away_score": 1, "caption": "x" * 281},
        {"match_id": 3, "predicted_home_score": 1},
    ],
)
def test_create_prediction_validation(client, logged_in, body):
    response = client.post("/api/predictions", json=body, headers={"X-User-Id": "1"})
    assert response.status_code == 422


def test_create_prediction_requires_user(client):
    response = client.post(
        "/api/predictions",
        json={"match_id": 3, "predicted_home_score": 2, "predicted_away_score": 1},
    )
    assert response.status_code == 401


def test_create_prediction_unknown_user(client):
    with patch(
        "fannax.services.user_service.get_user_by_id", new_callable=AsyncMock
    ) as mock_get_user:
        mock_get_user.return_value = None
        response = client.post(
            "/api/predictions",
            json={"match_id": 3, "predicted_home_score": 2, "predicted_away_score": 1},
            headers={"X-User-Id": "77"},
        )
    assert response.status_code == 401


# ============================================================================
# GET /api/predictions
# ============================================================================


@patch("fannax.services.prediction_service.list_predictions", new_callable=AsyncMock)
def test_list_predictions_forwards_params(mock_list, client):
    mock_list.return_value = {"predictions": [PREDICTION], "next_cursor": 7}

    response = client.get("/api/predictions?match_id=3&cursor=12&limit=5")

    assert response.status_code == 200
    data = response.json()
    assert data["next_cursor"] == 7
    assert len(data["predictions"]) == 1
    kwargs = mock_list.call_args.kwargs
    assert kwargs["match_id"] == 3
    assert kwargs["cursor"] == 12
    assert kwargs["limit"] == 5
    assert kwargs["user_id"] is None


@patch("fannax.services.prediction_service.list_predictions", new_callable=AsyncMock)
def test_list_predictions_invalid_cursor(mock_list, client):
    mock_list.side_effect = InvalidInputError("Invalid cursor")

    response = client.get("/api/predictions?cursor=999")

    assert response.status_code == 400


# ============================================================================
# Operator endpoints
# ============================================================================


@patch("fannax.services.settlement_service.SettlementService.settle", new_callable=AsyncMock)
def test_score_predictions(mock_settle, client, operator_key):
    mock_settle.return_value = {"matches_processed": 2, "predictions_scored": 7, "errors": 0}

    response = client.post(
        "/api/predictions/score", headers={"Authorization": f"Bearer {operator_key}"}
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "matches_processed": 2,
        "predictions_scored": 7,
        "errors": 0,
    }


@patch("fannax.services.settlement_service.SettlementService.settle", new_callable=AsyncMock)
def test_score_predictions_rejects_bad_key(mock_settle, client, operator_key):
    response = client.post("/api/predictions/score", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401

    response = client.post("/api/predictions/score")
    assert response.status_code == 401
    mock_settle.assert_not_awaited()


@patch("fannax.services.settlement_service.SettlementService.settle", new_callable=AsyncMock)
def test_score_predictions_open_without_configured_key(mock_settle, client, monkeypatch):
    monkeypatch.delenv("ADMIN_API_KEY", raising=False)
    mock_settle.return_value = {"matches_processed": 0, "predictions_scored": 0, "errors": 0}

    response = client.post("/api/predictions/score")

    assert response.status_code == 200


@patch("fannax.services.fixture_ingest_service.FixtureIngestor.sync", new_callable=AsyncMock)
def test_sync_matches(mock_sync, client, operator_key):
    mock_sync.return_value = {"created": 3, "updated": 1, "errors": 1, "total": 5}

    response = client.post(
        "/api/matches/sync",
        json={"days": 3},
        headers={"Authorization": f"Bearer {operator_key}"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "created": 3, "updated": 1, "errors": 1, "total": 5}
    mock_sync.assert_awaited_once_with(3)


@patch("fannax.services.fixture_ingest_service.FixtureIngestor.sync", new_callable=AsyncMock)
def test_sync_matches_defaults_to_seven_days(mock_sync, client, operator_key):
    mock_sync.return_value = {"created": 0, "updated": 0, "errors": 0, "total": 0}

    response = client.post(
        "/api/matches/sync", headers={"Authorization": f"Bearer {operator_key}"}
    )

    assert response.status_code == 200
    mock_sync.assert_awaited_once_with(7)


@patch("fannax.services.fixture_ingest_service.FixtureIngestor.sync", new_callable=AsyncMock)
def test_sync_matches_provider_down(mock_sync, client, operator_key):
    mock_sync.side_effect = UpstreamUnavailableError("SportMonks unavailable")

    response = client.post(
        "/api/matches/sync",
        json={"days": 7},
        headers={"Authorization": f"Bearer {operator_key}"},
    )

    assert response.status_code == 503


def test_sync_matches_rejects_bad_window(client, operator_key):
    response = client.post(
        "/api/matches/sync",
        json={"days": 0},
        headers={"Authorization": f"Bearer {operator_key}"},
    )
    assert response.status_code == 422


@patch("fannax.services.fixture_ingest_service.FixtureIngestor.sync_teams", new_callable=AsyncMock)
def test_sync_teams(mock_sync_teams, client, operator_key):
    mock_sync_teams.return_value = {"created": 20, "updated": 0, "errors": 0}

    response = client.post("/api/teams/sync", headers={"Authorization": f"Bearer {operator_key}"})

    assert response.status_code == 200
    assert response.json()["created"] == 20


# ============================================================================
# Matches, users, notifications
# ============================================================================


@patch("fannax.services.match_service.get_upcoming_matches", new_callable=AsyncMock)
def test_upcoming_matches(mock_upcoming, client):
    mock_upcoming.return_value = {
        "matches": [
            {
                "id": 1,
                "external_id": 100,
                "home_team": {"id": 1, "name": "Arsenal"},
                "away_team": {"id": 2, "name": "Chelsea"},
                "scheduled_at": "2026-10-20T19:45:00+00:00",
                "status": "SCHEDULED",
                "prediction_count": 4,
            }
        ]
    }

    response = client.get("/api/matches/upcoming?days=3")

    assert response.status_code == 200
    assert response.json()["matches"][0]["prediction_count"] == 4
    assert mock_upcoming.call_args.kwargs["days"] == 3


@patch("fannax.services.match_service.list_matches", new_callable=AsyncMock)
def test_list_matches_bad_status(mock_list, client):
    mock_list.side_effect = InvalidInputError("Unknown match status: postponed")

    response = client.get("/api/matches?status=postponed")

    assert response.status_code == 400


@patch("fannax.services.user_service.check_username", new_callable=AsyncMock)
def test_check_username(mock_check, client):
    mock_check.return_value = {
        "available": False,
        "reason": "This username is reserved for an official team account",
        "is_team_username": True,
        "team_name": "Arsenal",
    }

    response = client.get("/api/users/check-username?username=arsenal")

    assert response.status_code == 200
    assert response.json()["is_team_username"] is True


@patch("fannax.services.ledger_service.get_top_predictors", new_callable=AsyncMock)
def test_top_predictors(mock_top, client):
    mock_top.return_value = [
        {"id": 1, "username": "gooner", "name": None, "total_points": 12, "prediction_count": 5}
    ]

    response = client.get("/api/users/top-predictors?limit=5")

    assert response.status_code == 200
    assert response.json()[0]["total_points"] == 12


def test_me(client, logged_in):
    response = client.get("/api/users/me", headers={"X-User-Id": "1"})

    assert response.status_code == 200
    assert response.json()["total_points"] == 5


@patch("fannax.services.user_service.create_user", new_callable=AsyncMock)
def test_create_user_conflict(mock_create, client, operator_key):
    mock_create.side_effect = ConflictError("This username is reserved for an official team account")

    response = client.post(
        "/api/users",
        json={"username": "arsenal"},
        headers={"Authorization": f"Bearer {operator_key}"},
    )

    assert response.status_code == 409


@patch("fannax.services.notification_service.mark_as_read", new_callable=AsyncMock)
def test_mark_notification_read_not_found(mock_mark, client, logged_in):
    mock_mark.side_effect = NotFoundError("Notification not found or access denied")

    response = client.put("/api/notifications/5/read", headers={"X-User-Id": "1"})

    assert response.status_code == 404


@patch("fannax.services.notification_service.get_unread_count", new_callable=AsyncMock)
def test_unread_count(mock_count, client, logged_in):
    mock_count.return_value = 3

    response = client.get("/api/notifications/unread-count", headers={"X-User-Id": "1"})

    assert response.status_code == 200
    assert response.json() == {"count": 3}
