"""
backend/app/services/player_stat_resolver.py

Purpose:
    Fetch one player's result for one game date from SportsDataIO and
    normalize it into a PlayerStatRecord.

Notes:
    Endpoints differ per sport:
    - nfl: week-indexed box score (season/week from season_service)
    - nba, mlb: graded props keyed by date + player
    - everything else: full-roster box scores by date, falling back to the
      per-player-by-date endpoint
    Feed failures never raise: the caller gets None and the bet stays pending.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from app.models.bet import GradedProp, PlayerStatRecord
from app.providers.http_client import ProviderError
from app.providers.sportsdata import SportsDataProvider, sportsdata_provider
from app.services.season_service import nfl_season_info
from app.utils import date_key

logger = logging.getLogger("betledger.player_stat_resolver")

WEEK_INDEXED_SPORTS = {"nfl"}
GRADED_PROPS_SPORTS = {"nba", "mlb"}

SPORT_KEY_TO_PATH = {
    "americanfootball_nfl": "nfl",
    "americanfootball_ncaaf": "cfb",
    "basketball_nba": "nba",
    "basketball_ncaab": "cbb",
    "basketball_ncaaw": "cwbb",
    "baseball_mlb": "mlb",
    "icehockey_nhl": "nhl",
}


def map_sport_key_to_path(sport_key: str) -> str:
    """TheOddsAPI sport key -> SportsDataIO sport path."""
    key = (sport_key or "").strip().lower()
    if key in SPORT_KEY_TO_PATH:
        return SPORT_KEY_TO_PATH[key]
    return key.split("_")[-1] or "nfl"


def _entry_date(entry: dict[str, Any]) -> str:
    return str(entry.get("GameDate") or entry.get("Date") or "")


def select_game_entry(payload: Any, date_str: str) -> Optional[dict[str, Any]]:
    """Pick the game matching ``date_str`` from a box-score payload.

    A list is searched by date prefix; a single object is the game itself.
    """
    if isinstance(payload, list):
        for entry in payload:
            if isinstance(entry, dict) and _entry_date(entry).startswith(date_str):
                return entry
        return None
    if isinstance(payload, dict) and payload:
        return payload
    return None


def _graded_props(payload: Any, player_id: int, date_str: str) -> list[GradedProp]:
    if not isinstance(payload, list):
        return []
    props: list[GradedProp] = []
    for entry in payload:
        if not isinstance(entry, dict) or entry.get("PlayerID") != player_id:
            continue
        when = entry.get("DateTime")
        if when and str(when).split("T")[0] != date_str:
            continue
        description = entry.get("Description")
        if not description:
            continue
        try:
            props.append(GradedProp(
                description=description,
                stat_result=entry.get("StatResult"),
                over_under=entry.get("OverUnder"),
            ))
        except ValidationError as exc:
            logger.warning("Skipping malformed graded prop for player %s: %s", player_id, exc)
    return props


class PlayerStatResolver:
    """Sport-specific SportsDataIO lookups behind one ``get_player_stats`` call."""

    def __init__(self, provider: Optional[SportsDataProvider] = None):
        self._provider = provider or sportsdata_provider

    async def get_player_stats(
        self,
        player_id: int,
        sport_path: str,
        game_date: datetime,
        provider_event_id: Optional[str] = None,
    ) -> Optional[PlayerStatRecord]:
        sport = (sport_path or "").lower()
        date_str = date_key(game_date)

        if sport in WEEK_INDEXED_SPORTS:
            return await self._by_week(player_id, sport, game_date, date_str)
        if sport in GRADED_PROPS_SPORTS:
            return await self._graded(player_id, sport, date_str)
        return await self._by_date(player_id, sport, date_str, provider_event_id)

    async def _by_week(
        self, player_id: int, sport: str, game_date: datetime, date_str: str,
    ) -> Optional[PlayerStatRecord]:
        info = nfl_season_info(game_date)
        try:
            payload = await self._provider.fetch_player_stats_by_week(
                sport, info.season_segment, info.week, player_id,
            )
        except ProviderError as exc:
            logger.warning(
                "Week stats unavailable for player %s (%s wk %d): %s",
                player_id, info.season_segment, info.week, exc,
            )
            return None

        entry = select_game_entry(payload, date_str)
        return PlayerStatRecord(stats=entry) if entry else None

    async def _graded(self, player_id: int, sport: str, date_str: str) -> Optional[PlayerStatRecord]:
        try:
            payload = await self._provider.fetch_graded_props_by_date(sport, date_str, player_id)
        except ProviderError as exc:
            logger.warning("Graded props unavailable for player %s on %s: %s", player_id, date_str, exc)
            return None

        props = _graded_props(payload, player_id, date_str)
        return PlayerStatRecord(props=props) if props else None

    async def _by_date(
        self, player_id: int, sport: str, date_str: str, provider_event_id: Optional[str],
    ) -> Optional[PlayerStatRecord]:
        try:
            roster = await self._provider.fetch_player_stats_by_date(sport, date_str)
        except ProviderError as exc:
            logger.warning("Box scores by date unavailable for %s %s: %s", sport, date_str, exc)
            roster = None

        if isinstance(roster, list):
            for entry in roster:
                if isinstance(entry, dict) and entry.get("PlayerID") == player_id:
                    return PlayerStatRecord(stats=entry)

        logger.debug(
            "Player %s not in %s roster stats for %s (event %s), trying per-player endpoint",
            player_id, sport, date_str, provider_event_id,
        )
        try:
            payload = await self._provider.fetch_player_stats_by_player_date(sport, date_str, player_id)
        except ProviderError as exc:
            logger.warning("Player stats unavailable for %s on %s: %s", player_id, date_str, exc)
            return None

        entry = select_game_entry(payload, date_str)
        return PlayerStatRecord(stats=entry) if entry else None


player_stat_resolver = PlayerStatResolver()


async def get_player_stats(
    player_id: int,
    sport_path: str,
    game_date: datetime,
    provider_event_id: Optional[str] = None,
) -> Optional[PlayerStatRecord]:
    return await player_stat_resolver.get_player_stats(
        player_id, sport_path, game_date, provider_event_id,
    )
