"""
backend/app/providers/sportsdata.py

Purpose:
    SportsDataIO client, the player-statistics source for Player Prop bets.
    Returns raw provider JSON; shape normalization lives in
    app.services.player_stat_resolver.

Dependencies:
    - app.providers.http_client
    - app.providers.cache
"""

import logging
from typing import Any, Optional

from app.config import settings
from app.providers.cache import TTLCache
from app.providers.http_client import ProviderError, ResilientClient

logger = logging.getLogger("betledger.sportsdata")


class SportsDataProvider:
    """Stats/odds endpoints of SportsDataIO, cached per URL for an hour."""

    def __init__(
        self,
        client: Optional[ResilientClient] = None,
        cache: Optional[TTLCache] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self._client = client or ResilientClient(
            "sportsdata", rate_limit_rpm=settings.SPORTSDATAIO_RATE_LIMIT_RPM,
        )
        self._cache = cache or TTLCache(ttl=settings.PLAYER_STATS_CACHE_TTL_SECONDS)
        self._base_url = (base_url or settings.SPORTSDATAIO_BASE_URL).rstrip("/")
        self._api_key = api_key

    async def _get(self, path: str) -> Any:
        async def _fetch() -> Any:
            api_key = self._api_key if self._api_key is not None else settings.SPORTSDATAIO_API_KEY
            if not api_key:
                raise ProviderError("sportsdata", "SPORTSDATAIO_API_KEY not configured")
            logger.debug("SportsDataIO GET %s", path)
            return await self._client.get_json(f"{self._base_url}/{path}", params={"key": api_key})

        return await self._cache.get_or_fetch(path, _fetch)

    async def fetch_player_stats_by_week(
        self, sport_path: str, season_segment: str, week: int, player_id: int,
    ) -> Any:
        """Week-indexed box score (NFL): ``PlayerGameStatsByPlayerID/{2025REG}/{week}/{id}``."""
        return await self._get(
            f"{sport_path}/stats/json/PlayerGameStatsByPlayerID/{season_segment}/{week}/{player_id}"
        )

    async def fetch_player_stats_by_date(self, sport_path: str, date_str: str) -> Any:
        """Every player's box score for one date."""
        return await self._get(f"{sport_path}/stats/json/PlayerGameStatsByDate/{date_str}")

    async def fetch_player_stats_by_player_date(self, sport_path: str, date_str: str, player_id: int) -> Any:
        return await self._get(
            f"{sport_path}/stats/json/PlayerGameStatsByPlayerID/{date_str}/{player_id}"
        )

    async def fetch_graded_props_by_date(self, sport_path: str, date_str: str, player_id: int) -> Any:
        """Player props with ``StatResult`` filled in once the game is graded."""
        return await self._get(f"{sport_path}/odds/json/PlayerPropsByPlayerID/{date_str}/{player_id}")

    @property
    def circuit_open(self) -> bool:
        return self._client.circuit.is_open

    async def aclose(self) -> None:
        await self._client.aclose()


# Singleton provider instance
sportsdata_provider = SportsDataProvider()
