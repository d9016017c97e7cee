"""
backend/app/services/settlement_service.py

Purpose:
    Settlement decision function: bet + resolved provider data -> outcome.

    The rule throughout: data that is absent or not final yet resolves to
    ``pending`` (a later pass retries), data that is incomplete or ambiguous
    resolves to ``void`` (final), and win/loss is only ever asserted from an
    exact comparison.

Dependencies:
    - app.services.score_resolver
    - app.services.player_stat_resolver
    - app.services.stat_mapping
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Optional

from app.models.bet import (
    BetInDB,
    BetResult,
    MarketType,
    OverUnder,
    PlayerStatRecord,
    ResolvedScore,
)
from app.services import bet_repository
from app.services.player_stat_resolver import get_player_stats, map_sport_key_to_path
from app.services.score_resolver import get_game_score
from app.services.stat_mapping import derived_stat_value, map_prop_description, map_stat_field
from app.utils.team_matching import selection_side

logger = logging.getLogger("betledger.settlement")

ScoreLookup = Callable[[str, str], Awaitable[Optional[ResolvedScore]]]
StatLookup = Callable[[int, str, datetime, Optional[str]], Awaitable[Optional[PlayerStatRecord]]]
LegLookup = Callable[[str], Awaitable[list[BetInDB]]]


# ---------- Pure building blocks ----------

def compare_to_line(actual: float, line: float, over_under: OverUnder | str | None) -> BetResult:
    """Over wins above the line, Under wins below it; exactly on the line pushes."""
    if actual == line:
        return BetResult.push
    side = OverUnder(over_under) if over_under else None
    if side is OverUnder.over:
        return BetResult.win if actual > line else BetResult.loss
    if side is OverUnder.under:
        return BetResult.win if actual < line else BetResult.loss
    return BetResult.void


def combine_parlay_legs(leg_results: Iterable[BetResult | str]) -> BetResult:
    """Standard parlay rules; a push leg voids the whole parlay (no line reduction)."""
    results = [BetResult(r) for r in leg_results]
    if not results:
        return BetResult.void
    if any(r is BetResult.pending for r in results):
        return BetResult.pending
    if any(r is BetResult.loss for r in results):
        return BetResult.loss
    if any(r in (BetResult.void, BetResult.push) for r in results):
        return BetResult.void
    return BetResult.win


def settle_from_score(bet: BetInDB, score: Optional[ResolvedScore]) -> BetResult:
    """Outcome of an ML / Spread / Total bet from its resolved score."""
    if score is None or not score.completed:
        return BetResult.pending
    if not score.has_both_scores:
        logger.warning("Bet %s: completed game %s is missing a score", bet.id, bet.provider_event_id)
        return BetResult.void

    home, away = score.home_score, score.away_score

    if bet.market_type is MarketType.ml:
        side = selection_side(bet.selection, bet.home_team, bet.away_team)
        if side is None:
            logger.warning("Bet %s: selection %r matches neither team", bet.id, bet.selection)
            return BetResult.void
        if home == away:
            return BetResult.push
        own, other = (home, away) if side == "home" else (away, home)
        return BetResult.win if own > other else BetResult.loss

    if bet.market_type is MarketType.spread:
        if bet.line is None:
            logger.warning("Bet %s: spread without line", bet.id)
            return BetResult.void
        side = selection_side(bet.selection, bet.home_team, bet.away_team)
        if side is None:
            logger.warning("Bet %s: selection %r matches neither team", bet.id, bet.selection)
            return BetResult.void
        differential = home - away if side == "home" else away - home
        if differential > bet.line:
            return BetResult.win
        if differential < bet.line:
            return BetResult.loss
        return BetResult.push

    if bet.market_type is MarketType.total:
        if bet.line is None or bet.over_under is None:
            logger.warning("Bet %s: total without line/side", bet.id)
            return BetResult.void
        return compare_to_line(home + away, bet.line, bet.over_under)

    logger.warning("Bet %s: market %s cannot be settled from a score", bet.id, bet.market_type.value)
    return BetResult.void


def settle_from_stats(bet: BetInDB, record: Optional[PlayerStatRecord], sport_path: str) -> BetResult:
    """Outcome of a Player Prop bet from the resolved player record."""
    if bet.line is None or bet.over_under is None:
        return BetResult.void
    if record is None:
        return BetResult.pending

    label = bet.stat_type or ""

    if record.is_graded_props:
        description = map_prop_description(label)
        prop = next((p for p in record.props or [] if p.description == description), None)
        if prop is None:
            logger.warning(
                "Bet %s: stat type %r not in graded props for player %s",
                bet.id, label, bet.player_id,
            )
            return BetResult.void
        if prop.stat_result is None:
            return BetResult.pending
        return compare_to_line(prop.stat_result, bet.line, bet.over_under)

    field = map_stat_field(label, sport_path)
    if field is None:
        logger.warning("Bet %s: unknown stat type %r for sport %s", bet.id, label, sport_path)
        return BetResult.void

    actual = derived_stat_value(field, label, record.stats)
    if actual is None:
        logger.warning("Bet %s: stat %s missing from record for player %s", bet.id, field, bet.player_id)
        return BetResult.void
    return compare_to_line(actual, bet.line, bet.over_under)


# ---------- Decision function ----------

class BetSettler:
    """Settles one bet. Provider and persistence lookups are injected."""

    def __init__(
        self,
        score_lookup: Optional[ScoreLookup] = None,
        stat_lookup: Optional[StatLookup] = None,
        leg_lookup: Optional[LegLookup] = None,
    ):
        self._score_lookup = score_lookup or get_game_score
        self._stat_lookup = stat_lookup or get_player_stats
        self._leg_lookup = leg_lookup or bet_repository.find_legs

    async def settle(self, bet: BetInDB) -> BetResult:
        if bet.is_terminal:
            return bet.result

        if bet.market_type is MarketType.parlay:
            return await self._settle_parlay(bet)

        if not bet.provider_event_id or not bet.sport:
            logger.warning("Bet %s: no provider linkage, voiding", bet.id)
            return BetResult.void

        sport_key = bet.sport_key or bet.sport.lower()

        if bet.market_type is MarketType.player_prop:
            return await self._settle_prop(bet, map_sport_key_to_path(sport_key))

        score = await self._score_lookup(bet.provider_event_id, sport_key)
        return settle_from_score(bet, score)

    async def _settle_parlay(self, bet: BetInDB) -> BetResult:
        legs = await self._leg_lookup(bet.id)
        if not legs:
            logger.warning("Parlay %s has no legs, voiding", bet.id)
            return BetResult.void
        return combine_parlay_legs(leg.result for leg in legs)

    async def _settle_prop(self, bet: BetInDB, sport_path: str) -> BetResult:
        if bet.player_id is None or not bet.stat_type or bet.line is None or bet.over_under is None:
            logger.warning("Bet %s: player prop missing player/stat/line/side", bet.id)
            return BetResult.void

        record = await self._stat_lookup(
            bet.player_id, sport_path, bet.start_time, bet.provider_event_id,
        )
        return settle_from_stats(bet, record, sport_path)


default_settler = BetSettler()


async def settle_bet(bet: BetInDB) -> BetResult:
    return await default_settler.settle(bet)
