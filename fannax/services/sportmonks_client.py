"""
SportMonks football API client.

Fetches fixture and team snapshots in bounded pages. Every request goes
through a shared client-side rate limiter that spaces requests out and backs
off (honoring Retry-After) when the provider throttles or fails.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from fannax.services.errors import UpstreamUnavailableError
from fannax.utils.datetime_utils import parse_provider_datetime, utcnow

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.sportmonks.com/v3/football"
FIXTURE_INCLUDES = "participants;venue;league;scores"

# Provider fixture state ids
LIVE_STATE_IDS = frozenset({2, 3, 4, 6, 9, 22, 25})  # 1st half, HT, break, ET, pens, 2nd half, pen break
FINISHED_STATE_IDS = frozenset({5, 7, 8})  # FT, AET, FT after pens

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
BASE_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 60.0


@dataclass
class TeamData:
    """Data transfer object for team information."""

    external_id: int
    name: str
    short_code: Optional[str] = None
    logo_url: Optional[str] = None
    country_id: Optional[int] = None


@dataclass
class FixtureData:
    """Data transfer object for a fixture snapshot."""

    external_id: int
    home_team: Optional[TeamData]
    away_team: Optional[TeamData]
    home_score: Optional[int]
    away_score: Optional[int]
    scheduled_at: Optional[datetime]
    venue: Optional[str] = None
    league_name: Optional[str] = None
    league_id: Optional[int] = None
    is_live: bool = False
    is_finished: bool = False


class RateLimiter:
    """
    Client-side request pacer.

    ``acquire`` waits until the next request slot; ``backoff`` pushes the next
    slot out so every caller sharing the limiter slows down together.
    """

    def __init__(
        self,
        requests_per_minute: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.interval = 60.0 / requests_per_minute
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait for the next request slot."""
        async with self._lock:
            wait = self._next_slot - self._clock()
            if wait > 0:
                await self._sleep(wait)
            self._next_slot = max(self._next_slot, self._clock()) + self.interval

    def backoff(self, seconds: float) -> None:
        """Hold off all requests for at least ``seconds`` from now."""
        self._next_slot = max(self._next_slot, self._clock() + seconds)


class SportMonksClient:
    """Async client for the SportMonks v3 football API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        requests_per_minute: Optional[float] = None,
        max_retries: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("SPORTMONKS_API_KEY", "")
        self.base_url = (base_url or os.getenv("SPORTMONKS_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        if requests_per_minute is None:
            requests_per_minute = float(os.getenv("SPORTMONKS_REQUESTS_PER_MINUTE", "60"))
        self.max_retries = (
            max_retries if max_retries is not None else int(os.getenv("SPORTMONKS_MAX_RETRIES", "3"))
        )
        self.rate_limiter = rate_limiter or RateLimiter(requests_per_minute, sleep=sleep)
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            headers={"Accept": "application/json"},
            timeout=30.0,
        )

    async def __aenter__(self) -> "SportMonksClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict:
        """
        Make a rate-limited GET request with exponential backoff.

        Args:
            endpoint: Path below the base URL (e.g. "/fixtures/between/...")
            params: Extra query parameters

        Returns:
            Decoded JSON body

        Raises:
            UpstreamUnavailableError: On non-retryable HTTP errors, malformed
                bodies, or when retries are exhausted
        """
        url = f"{self.base_url}{endpoint}"
        query = {"api_token": self.api_key, **(params or {})}
        last_error = "no attempts made"

        for attempt in range(self.max_retries + 1):
            await self.rate_limiter.acquire()
            try:
                response = await self.client.get(url, params=query)
            except (httpx.TimeoutException, httpx.RequestError) as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"SportMonks request to {endpoint} failed ({last_error})")
                self._backoff(attempt, None)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES:
                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    f"SportMonks returned {response.status_code} for {endpoint} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                self._backoff(attempt, response.headers.get("Retry-After"))
                continue

            if response.is_error:
                raise UpstreamUnavailableError(
                    f"SportMonks API error: {response.status_code} {response.reason_phrase}"
                )

            try:
                return response.json()
            except ValueError as e:
                raise UpstreamUnavailableError(f"SportMonks returned invalid JSON: {e}") from e

        raise UpstreamUnavailableError(
            f"SportMonks request to {endpoint} failed after {self.max_retries + 1} attempts: {last_error}"
        )

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> None:
        """Slow the shared limiter down before the next attempt."""
        if attempt >= self.max_retries:
            return
        delay = min(BASE_BACKOFF_SECONDS * (2 ** attempt), MAX_BACKOFF_SECONDS)
        if retry_after:
            try:
                delay = max(delay, min(float(retry_after), MAX_BACKOFF_SECONDS))
            except ValueError:
                pass
        self.rate_limiter.backoff(delay)

    async def _paginate(self, endpoint: str, params: Dict[str, str], per_page: int) -> List[Dict]:
        """Collect every page of a list endpoint."""
        items: List[Dict] = []
        page = 1
        while True:
            data, has_more = await self._get_page(endpoint, params, page, per_page)
            items.extend(data)
            if not has_more:
                return items
            page += 1

    async def _get_page(
        self, endpoint: str, params: Dict[str, str], page: int, per_page: int
    ) -> Tuple[List[Dict], bool]:
        body = await self._request(
            endpoint, {**params, "page": str(page), "per_page": str(per_page)}
        )
        data = body.get("data") or []
        if not isinstance(data, list):
            raise UpstreamUnavailableError(f"Unexpected payload from {endpoint}: data is not a list")
        pagination = body.get("pagination") or {}
        return data, bool(pagination.get("has_more"))

    async def get_fixtures_between(
        self, start_date: date, end_date: date, per_page: int = 50
    ) -> List[Dict]:
        """
        Get all fixtures kicking off between two dates (inclusive).

        Returns:
            Raw fixture dicts with participants, venue, league and scores included
        """
        endpoint = f"/fixtures/between/{start_date.isoformat()}/{end_date.isoformat()}"
        return await self._paginate(endpoint, {"include": FIXTURE_INCLUDES}, per_page)

    async def get_upcoming_fixtures(self, days: int = 7) -> List[Dict]:
        """Get fixtures from today (UTC) through ``days`` days ahead."""
        start = utcnow().date()
        return await self.get_fixtures_between(start, start + timedelta(days=days))

    async def get_teams_page(self, page: int = 1, per_page: int = 100) -> Tuple[List[Dict], bool]:
        """
        Get one page of the team catalogue.

        Returns:
            Tuple of (raw team dicts, has_more)
        """
        return await self._get_page("/teams", {"include": "country"}, page, per_page)


def parse_team(team: Dict) -> TeamData:
    """Parse a provider team (or fixture participant) dict."""
    return TeamData(
        external_id=int(team["id"]),
        name=team["name"],
        short_code=team.get("short_code"),
        logo_url=team.get("image_path"),
        country_id=team.get("country_id"),
    )


def _find_score(scores: List[Dict], side: str) -> Optional[int]:
    """Pick the goals for one side, preferring the running "CURRENT" total."""
    candidates = [
        s for s in scores if (s.get("score") or {}).get("participant") == side
    ]
    if not candidates:
        return None
    current = [s for s in candidates if s.get("description") == "CURRENT"]
    chosen = (current or candidates)[0]
    goals = chosen["score"].get("goals")
    return int(goals) if goals is not None else None


def parse_fixture(fixture: Dict) -> FixtureData:
    """
    Parse a provider fixture dict into a FixtureData snapshot.

    Missing participants come back as None so the caller can decide how to
    treat an incomplete fixture.
    """
    participants = fixture.get("participants") or []
    home = next(
        (p for p in participants if (p.get("meta") or {}).get("location") == "home"), None
    )
    away = next(
        (p for p in participants if (p.get("meta") or {}).get("location") == "away"), None
    )

    scores = fixture.get("scores") or []
    state_id = fixture.get("state_id")

    return FixtureData(
        external_id=int(fixture["id"]),
        home_team=parse_team(home) if home else None,
        away_team=parse_team(away) if away else None,
        home_score=_find_score(scores, "home"),
        away_score=_find_score(scores, "away"),
        scheduled_at=parse_provider_datetime(fixture.get("starting_at")),
        venue=(fixture.get("venue") or {}).get("name"),
        league_name=(fixture.get("league") or {}).get("name"),
        league_id=fixture.get("league_id"),
        is_live=state_id in LIVE_STATE_IDS,
        is_finished=state_id in FINISHED_STATE_IDS,
    )
