"""
Settlement service: scores PENDING predictions on finished matches.

Each prediction is settled in its own transaction:

1. conditional UPDATE ``... WHERE id = :id AND result_status = 'PENDING'``;
   zero rows means another run already settled it, so it is skipped;
2. ledger increment for the predicting user, on the same transaction;
3. commit.

The result notification is written afterwards in a separate transaction and
is best-effort: a failure there is logged and never undoes the settlement.
Re-running is a no-op for settled predictions, and overlapping runs never
credit a prediction twice.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import async_sessionmaker

from fannax.database import db
from fannax.database.models import Match, MatchStatus, Prediction, PredictionResult
from fannax.services import ledger_service
from fannax.services.notification_service import notify_prediction_result
from fannax.services.scoring_service import ScoringResult, calculate_prediction_score
from fannax.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# How often the background worker looks for settleable predictions (seconds)
POLL_INTERVAL_SECONDS = 300  # 5 minutes


class SettlementService:
    """Settles finished matches; usable as a one-shot job or a background worker."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self._session_factory = session_factory
        if poll_interval_seconds is None:
            poll_interval_seconds = float(
                os.getenv("SETTLEMENT_POLL_INTERVAL_SECONDS", str(POLL_INTERVAL_SECONDS))
            )
        self.poll_interval_seconds = poll_interval_seconds
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory or db.AsyncSessionLocal

    def start(self) -> None:
        """Start the background settlement worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info("Settlement worker started")

    async def stop(self) -> None:
        """
        Stop the background worker.

        The prediction being settled when the stop is signalled is allowed to
        finish; no further predictions are started.
        """
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            await self._worker_task
            logger.info("Settlement worker stopped")

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def _poll_loop(self) -> None:
        """Main loop: settle, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.settle()
            except Exception as e:
                logger.error(f"Error in settlement worker: {e}", exc_info=True)

            # Wait for poll interval or until stop is signalled
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.poll_interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

    async def _find_settleable_matches(self) -> List[Dict]:
        """FINISHED matches with a final score that still have PENDING predictions."""
        async with self.session_factory() as session:
            pending = (
                select(Prediction.match_id)
                .where(Prediction.result_status == PredictionResult.PENDING)
                .distinct()
            )
            result = await session.execute(
                select(Match.id, Match.home_score, Match.away_score)
                .where(
                    and_(
                        Match.status == MatchStatus.FINISHED,
                        Match.home_score.is_not(None),
                        Match.away_score.is_not(None),
                        Match.id.in_(pending),
                    )
                )
                .order_by(Match.id)
            )
            return [
                {"id": match_id, "home_score": home_score, "away_score": away_score}
                for match_id, home_score, away_score in result.all()
            ]

    async def _pending_predictions(self, match_id: int) -> List[Dict]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    Prediction.id,
                    Prediction.user_id,
                    Prediction.predicted_home_score,
                    Prediction.predicted_away_score,
                )
                .where(
                    and_(
                        Prediction.match_id == match_id,
                        Prediction.result_status == PredictionResult.PENDING,
                    )
                )
                .order_by(Prediction.id)
            )
            return [
                {
                    "id": prediction_id,
                    "user_id": user_id,
                    "predicted_home_score": predicted_home,
                    "predicted_away_score": predicted_away,
                }
                for prediction_id, user_id, predicted_home, predicted_away in result.all()
            ]

    async def settle(self) -> Dict[str, int]:
        """
        Settle every PENDING prediction on every finished match.

        A match counts as processed only once all of its pending predictions
        were attempted; a stop request mid-match leaves it uncounted.

        Returns:
            Dict with matches_processed, predictions_scored and errors
        """
        stats = {"matches_processed": 0, "predictions_scored": 0, "errors": 0}

        matches = await self._find_settleable_matches()
        if not matches:
            return stats

        logger.info(f"Found {len(matches)} finished match(es) with pending predictions")

        for match in matches:
            if self._stop_event.is_set():
                break

            for prediction in await self._pending_predictions(match["id"]):
                if self._stop_event.is_set():
                    break
                try:
                    scoring = await self.settle_prediction(
                        prediction, match["home_score"], match["away_score"]
                    )
                except Exception as e:
                    logger.error(
                        f"Error settling prediction {prediction['id']}: {e}", exc_info=True
                    )
                    stats["errors"] += 1
                    continue

                if scoring is None:
                    continue
                stats["predictions_scored"] += 1
                await self._notify(prediction, match["id"], scoring)
            else:
                stats["matches_processed"] += 1

        logger.info(
            f"Settlement finished: {stats['matches_processed']} match(es), "
            f"{stats['predictions_scored']} prediction(s) scored, {stats['errors']} error(s)"
        )
        return stats

    async def settle_prediction(
        self, prediction: Dict, home_score: int, away_score: int
    ) -> Optional[ScoringResult]:
        """
        Settle one prediction and credit its user atomically.

        Args:
            prediction: Dict with id, user_id, predicted_home_score, predicted_away_score
            home_score: Final home goals
            away_score: Final away goals

        Returns:
            The ScoringResult applied, or None if the prediction was already settled
        """
        scoring = calculate_prediction_score(
            prediction["predicted_home_score"],
            prediction["predicted_away_score"],
            home_score,
            away_score,
        )

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Prediction)
                    .where(
                        and_(
                            Prediction.id == prediction["id"],
                            Prediction.result_status == PredictionResult.PENDING,
                        )
                    )
                    .values(
                        result_status=scoring.result,
                        points_awarded=scoring.points,
                        settled_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    logger.debug(f"Prediction {prediction['id']} already settled, skipping")
                    return None

                await ledger_service.increment(session, prediction["user_id"], scoring.points)

        return scoring

    async def _notify(self, prediction: Dict, match_id: int, scoring: ScoringResult) -> None:
        """Write the result notification; failures are logged, not raised."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await notify_prediction_result(
                        session,
                        user_id=prediction["user_id"],
                        prediction_id=prediction["id"],
                        match_id=match_id,
                        result=scoring.result,
                        points=scoring.points,
                    )
        except Exception as e:
            logger.warning(
                f"Failed to notify user {prediction['user_id']} about prediction "
                f"{prediction['id']}: {e}"
            )


# Global singleton
_settlement_service: Optional[SettlementService] = None


def get_settlement_service() -> SettlementService:
    """Get the global settlement service instance."""
    global _settlement_service
    if _settlement_service is None:
        _settlement_service = SettlementService()
    return _settlement_service
