import logging
from typing import Any, Optional

from app.config import settings
from app.providers.cache import TTLCache
from app.providers.http_client import ProviderError, ResilientClient

logger = logging.getLogger("betledger.odds_api")


class TheOddsAPIProvider:
    """TheOddsAPI ``/scores`` feed: the game-score source for ML/Spread/Total bets.

    The endpoint only returns games within ``daysFrom`` days of completion
    (max 3), so a bet whose event has aged out of the window stays pending.
    """

    def __init__(
        self,
        client: Optional[ResilientClient] = None,
        cache: Optional[TTLCache] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self._client = client or ResilientClient(
            "odds_api", rate_limit_rpm=settings.THEODDSAPI_RATE_LIMIT_RPM,
        )
        self._cache = cache or TTLCache(ttl=settings.SCORES_CACHE_TTL_SECONDS)
        self._base_url = (base_url or settings.THEODDSAPI_BASE_URL).rstrip("/")
        self._api_key = api_key

    async def fetch_scores(self, sport_key: str, days_from: Optional[int] = None) -> list[dict[str, Any]]:
        """Raw score events for one sport. Raises ProviderError on any failure."""
        days = days_from if days_from is not None else settings.SCORES_DAYS_FROM
        cache_key = f"scores:{sport_key}:{days}"

        async def _fetch() -> list[dict[str, Any]]:
            api_key = self._api_key if self._api_key is not None else settings.ODDSAPIKEY
            if not api_key:
                raise ProviderError("odds_api", "ODDSAPIKEY not configured")
            raw = await self._client.get_json(
                f"{self._base_url}/sports/{sport_key}/scores/",
                params={"apiKey": api_key, "daysFrom": days},
            )
            if not isinstance(raw, list):
                raise ProviderError("odds_api", f"unexpected scores payload for {sport_key}")
            logger.debug("TheOddsAPI: %d score events for %s", len(raw), sport_key)
            return raw

        return await self._cache.get_or_fetch(cache_key, _fetch)

    @property
    def circuit_open(self) -> bool:
        return self._client.circuit.is_open

    async def aclose(self) -> None:
        await self._client.aclose()


# Singleton provider instance
odds_provider = TheOddsAPIProvider()
