"""
backend/app/services/stats_service.py

Purpose:
    Per-user betting aggregates (record, win rate, ROI, units P/L, streaks)
    recomputed after settlement and materialized into ``users.stats``.

Dependencies:
    - app.services.bet_repository
"""

import logging
from datetime import datetime
from typing import Iterable

from pydantic import ValidationError

from app.models.bet import BetInDB, BetResult
from app.models.user import UserStats
from app.services import bet_repository
from app.utils import ensure_utc, utcnow
from app.utils.odds_utils import win_profit

logger = logging.getLogger("betledger.stats")


def _sort_key(bet: BetInDB) -> datetime:
    return ensure_utc(bet.created_at or bet.start_time)


def calculate_stats(bets: Iterable[BetInDB]) -> UserStats:
    """Aggregate settled bets; pending bets are ignored entirely."""
    settled = [b for b in bets if b.result is not BetResult.pending]

    wins = sum(1 for b in settled if b.result is BetResult.win)
    losses = sum(1 for b in settled if b.result is BetResult.loss)
    pushes = sum(1 for b in settled if b.result is BetResult.push)
    voids = sum(1 for b in settled if b.result is BetResult.void)

    # Win rate excludes pushes and voids
    decided = wins + losses
    win_rate = (wins / decided) * 100 if decided else 0.0

    units_pl = 0.0
    for bet in settled:
        if bet.result is BetResult.win:
            units_pl += win_profit(bet.units, bet.odds)
        elif bet.result is BetResult.loss:
            units_pl -= bet.units

    units_wagered = sum(b.units for b in settled if b.result is not BetResult.void)
    roi = (units_pl / units_wagered) * 100 if units_wagered else 0.0

    # Push/void neither extend nor break a streak
    current_streak = 0
    longest_streak = 0
    for bet in sorted(settled, key=_sort_key):
        if bet.result is BetResult.win:
            current_streak += 1
            longest_streak = max(longest_streak, current_streak)
        elif bet.result is BetResult.loss:
            current_streak = 0

    return UserStats(
        total_bets=len(settled),
        wins=wins,
        losses=losses,
        pushes=pushes,
        voids=voids,
        win_rate=round(win_rate, 2),
        roi=round(roi, 2),
        units_pl=round(units_pl, 2),
        current_streak=current_streak,
        longest_streak=longest_streak,
    )


async def update_user_stats(user_id: str) -> UserStats:
    """Recompute a user's aggregates from all of their bets and persist them."""
    bets: list[BetInDB] = []
    for doc in await bet_repository.find_user_bet_docs(user_id):
        try:
            bets.append(BetInDB.from_doc(doc))
        except ValidationError:
            logger.warning("Skipping malformed bet %s in stats for user %s", doc.get("_id"), user_id)

    stats = calculate_stats(bets)
    await bet_repository.save_user_stats(user_id, stats.model_dump(), utcnow())
    logger.debug("Stats updated for user %s: %s", user_id, stats.model_dump())
    return stats
