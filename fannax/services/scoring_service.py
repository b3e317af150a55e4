"""
Prediction scoring.

Scoring rules:
- Exact score: +3 points
- Correct winner (or draw) but wrong score: +2 points
- Wrong winner/draw: -1 point

Everything here is pure; no database access.
"""

from dataclasses import dataclass

from fannax.database.models import PredictionResult
from fannax.utils.constants import (
    EXACT_MATCH_POINTS,
    CORRECT_WINNER_POINTS,
    INCORRECT_POINTS,
    MIN_PREDICTED_SCORE,
    MAX_PREDICTED_SCORE,
)

HOME = "home"
AWAY = "away"
DRAW = "draw"


@dataclass(frozen=True)
class ScoringResult:
    """Outcome of scoring one prediction against a final score."""

    result: PredictionResult
    points: int
    description: str


def get_outcome(home_score: int, away_score: int) -> str:
    """
    Classify a scoreline.

    Returns:
        "home", "away" or "draw"
    """
    if home_score > away_score:
        return HOME
    if home_score < away_score:
        return AWAY
    return DRAW


def calculate_prediction_score(
    predicted_home_score: int,
    predicted_away_score: int,
    home_score: int,
    away_score: int,
) -> ScoringResult:
    """
    Score a predicted scoreline against the actual final score.

    Args:
        predicted_home_score: Predicted home goals
        predicted_away_score: Predicted away goals
        home_score: Actual home goals
        away_score: Actual away goals

    Returns:
        ScoringResult with the terminal result and the point delta
    """
    if predicted_home_score == home_score and predicted_away_score == away_score:
        return ScoringResult(
            result=PredictionResult.EXACT_MATCH,
            points=EXACT_MATCH_POINTS,
            description="Perfect prediction! Exact score match.",
        )

    if get_outcome(predicted_home_score, predicted_away_score) == get_outcome(home_score, away_score):
        return ScoringResult(
            result=PredictionResult.CORRECT_WINNER,
            points=CORRECT_WINNER_POINTS,
            description="Correct winner prediction, but wrong score.",
        )

    return ScoringResult(
        result=PredictionResult.INCORRECT,
        points=INCORRECT_POINTS,
        description="Incorrect prediction.",
    )


def get_points_for_result(result: str) -> int:
    """Points awarded for a result status; 0 for PENDING or unknown values."""
    return {
        PredictionResult.EXACT_MATCH.value: EXACT_MATCH_POINTS,
        PredictionResult.CORRECT_WINNER.value: CORRECT_WINNER_POINTS,
        PredictionResult.INCORRECT.value: INCORRECT_POINTS,
    }.get(_result_value(result), 0)


def get_result_display_text(result: str) -> str:
    """Human-readable label for a result status."""
    return {
        PredictionResult.EXACT_MATCH.value: "Exact Match!",
        PredictionResult.CORRECT_WINNER.value: "Correct Winner",
        PredictionResult.INCORRECT.value: "Incorrect",
        PredictionResult.PENDING.value: "Pending",
    }.get(_result_value(result), "Unknown")


def validate_prediction_scores(home_score, away_score) -> bool:
    """Whether both values are integers within the allowed prediction range."""
    return all(
        isinstance(score, int)
        and not isinstance(score, bool)
        and MIN_PREDICTED_SCORE <= score <= MAX_PREDICTED_SCORE
        for score in (home_score, away_score)
    )


def format_points(points: int) -> str:
    """Signed point delta for display (e.g. "+3", "-1")."""
    return f"+{points}" if points > 0 else str(points)


def _result_value(result) -> str:
    if isinstance(result, PredictionResult):
        return result.value
    return result
