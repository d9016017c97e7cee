"""
backend/app/services/score_resolver.py

Purpose:
    Normalize a TheOddsAPI score event into a ResolvedScore for one bet.

Dependencies:
    - app.providers.odds_api
    - app.utils.team_matching
"""

import logging
from typing import Any, Optional

from app.models.bet import ResolvedScore
from app.providers.http_client import ProviderError
from app.providers.odds_api import TheOddsAPIProvider, odds_provider
from app.utils.team_matching import names_overlap

logger = logging.getLogger("betledger.score_resolver")


def _parse_score(value: Any) -> Optional[int]:
    """Integer score from the feed's string/number field, None if unparsable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return None


def extract_score(event: dict[str, Any]) -> ResolvedScore:
    """Build a ResolvedScore from one raw score event."""
    if not event.get("completed"):
        return ResolvedScore(completed=False)

    home_team = event.get("home_team") or ""
    away_team = event.get("away_team") or ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    scores = event.get("scores")
    if isinstance(scores, list):
        for entry in scores:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name") or ""
            parsed = _parse_score(entry.get("score"))
            if parsed is None:
                continue
            if names_overlap(name, home_team):
                home_score = parsed
            if names_overlap(name, away_team):
                away_score = parsed

    # Flat fields as fallback
    if home_score is None:
        home_score = _parse_score(event.get("home_score"))
    if away_score is None:
        away_score = _parse_score(event.get("away_score"))

    if home_score is None or away_score is None:
        logger.warning(
            "Incomplete score data for event %s: home=%s away=%s",
            event.get("id"), home_score, away_score,
        )
    return ResolvedScore(completed=True, home_score=home_score, away_score=away_score)


async def get_game_score(
    provider_event_id: str,
    sport_key: str,
    *,
    provider: Optional[TheOddsAPIProvider] = None,
) -> Optional[ResolvedScore]:
    """Score for one event, or None when the feed has nothing (yet) or failed."""
    feed = provider or odds_provider
    try:
        events = await feed.fetch_scores(sport_key)
    except ProviderError as exc:
        logger.warning("Score feed unavailable for %s: %s", sport_key, exc)
        return None

    event = next(
        (e for e in events if isinstance(e, dict) and e.get("id") == provider_event_id),
        None,
    )
    if event is None:
        # Not indexed yet, or aged out of the daysFrom window
        logger.debug("Event %s not in %s score feed", provider_event_id, sport_key)
        return None

    return extract_score(event)
