"""
backend/app/workers/settlement_runner.py

Purpose:
    Batch settlement of every pending bet whose event has started. Each bet
    is settled, persisted exactly once, audited and announced; settled parlay
    legs re-check their parent parlay, and every pass re-checks pending
    parlays whose legs are all settled. User aggregates are recomputed for
    every user touched by the pass.

Dependencies:
    - app.services.settlement_service
    - app.services.bet_repository
    - app.services.audit_service
    - app.services.notification_service
    - app.services.stats_service
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.config import settings
from app.models.bet import BetInDB, BetResult, SettlementDetail, SettlementSummary
from app.services import bet_repository
from app.services.audit_service import BET_AUTO_SETTLED, SYSTEM_ACTOR, log_audit
from app.services.notification_service import notify_bet_settled
from app.services.settlement_service import BetSettler, default_settler
from app.services.stats_service import update_user_stats
from app.utils import ensure_utc, utcnow
from app.workers._state import set_synced

logger = logging.getLogger("betledger.settlement_runner")

STATE_KEY = "settlement_runner"


class SettlementError(Exception):
    """A bet cannot be settled on request (unknown id, already settled)."""


async def _commit(
    bet: BetInDB,
    result: BetResult,
    now: datetime,
    *,
    triggered_by: Optional[str] = None,
) -> bool:
    """Persist a terminal result, then audit and notify. False if someone else won the write."""
    if not await bet_repository.save_result(bet.id, result, now):
        logger.debug("Bet %s already settled elsewhere, skipping side effects", bet.id)
        return False

    metadata = {"result": result.value}
    if triggered_by:
        metadata["triggered_by"] = triggered_by
    await log_audit(
        actor_id=bet.user_id or SYSTEM_ACTOR,
        target_id=bet.id,
        action=BET_AUTO_SETTLED,
        metadata=metadata,
    )

    # Legs are announced through their parent parlay
    if not bet.parlay_id:
        user = await bet_repository.find_user(bet.user_id) if bet.user_id else None
        await notify_bet_settled(bet, result, user)
    return True


async def _cascade_to_parent(
    leg: BetInDB, settler: BetSettler, now: datetime, touched: set[str],
) -> Optional[BetResult]:
    """Re-settle the parent of a freshly settled leg. Returns the parent's new result, if any."""
    parent = await bet_repository.find_bet(leg.parlay_id)
    if parent is None:
        logger.warning("Leg %s points at missing parlay %s", leg.id, leg.parlay_id)
        return None
    if parent.result is not BetResult.pending:
        return None

    parent_result = await settler.settle(parent)
    if parent_result is BetResult.pending:
        return None

    if await _commit(parent, parent_result, now, triggered_by="leg_settlement"):
        if parent.user_id:
            touched.add(parent.user_id)
        logger.info("Parlay %s settled as %s via leg %s", parent.id, parent_result.value, leg.id)
        return parent_result
    return None


async def _safe_cascade(
    leg: BetInDB, settler: BetSettler, now: datetime, touched: set[str],
) -> Optional[BetResult]:
    """The leg is already terminal; a failing parent re-check is left to the next pass."""
    try:
        return await _cascade_to_parent(leg, settler, now, touched)
    except Exception:
        logger.exception("Parent re-check failed for leg %s (parlay %s)", leg.id, leg.parlay_id)
        return None


async def _refresh_stats(user_ids: set[str]) -> None:
    for user_id in sorted(user_ids):
        try:
            await update_user_stats(user_id)
        except Exception:
            logger.exception("Failed to update stats for user %s", user_id)


async def run_settlement_pass(
    now: Optional[datetime] = None,
    settler: Optional[BetSettler] = None,
) -> SettlementSummary:
    """Settle every eligible pending bet once.

    One bet's failure never aborts the pass; it is counted in ``errors`` and
    the bet stays pending for the next run. Pending parlays are re-checked
    after the legs, so a parent whose cascade failed is settled later.
    """
    now = ensure_utc(now) if now else utcnow()
    settler = settler or default_settler
    summary = SettlementSummary()
    touched: set[str] = set()
    semaphore = asyncio.Semaphore(max(1, settings.SETTLEMENT_CONCURRENCY))

    docs = await bet_repository.find_pending_bet_docs(now, settings.SETTLEMENT_MAX_BETS_PER_PASS)
    logger.info("Settlement pass: %d eligible pending bets", len(docs))

    async def _process(doc: dict) -> SettlementDetail:
        bet_id = str(doc.get("_id"))
        async with semaphore:
            try:
                bet = BetInDB.from_doc(doc)
                result = await settler.settle(bet)
                if result is BetResult.pending:
                    return SettlementDetail(bet_id=bet_id, result=result.value)

                committed = await _commit(bet, result, now)
                if committed and bet.user_id:
                    touched.add(bet.user_id)

                detail = SettlementDetail(bet_id=bet_id, result=result.value, parlay_id=bet.parlay_id)
            except Exception as exc:
                logger.exception("Error settling bet %s", bet_id)
                return SettlementDetail(bet_id=bet_id, result="error", error=str(exc))

            # The leg write above completes before the parent reads leg states
            if committed and bet.parlay_id:
                parent_result = await _safe_cascade(bet, settler, now, touched)
                if parent_result is not None:
                    detail.parlay_result = parent_result.value
            return detail

    details = list(await asyncio.gather(*(_process(doc) for doc in docs)))

    # Parlays whose legs all settled but whose own write never happened
    seen = {detail.bet_id for detail in details}
    parlay_docs = await bet_repository.find_pending_parlay_docs(now, settings.SETTLEMENT_MAX_BETS_PER_PASS)

    async def _recheck(doc: dict) -> Optional[SettlementDetail]:
        bet_id = str(doc.get("_id"))
        async with semaphore:
            try:
                parlay = BetInDB.from_doc(doc)
                result = await settler.settle(parlay)
                if result is BetResult.pending:
                    return None
                if not await _commit(parlay, result, now, triggered_by="parlay_recheck"):
                    return None
            except Exception as exc:
                logger.exception("Error re-checking parlay %s", bet_id)
                return SettlementDetail(bet_id=bet_id, result="error", error=str(exc))

        if parlay.user_id:
            touched.add(parlay.user_id)
        logger.info("Parlay %s settled as %s on re-check", bet_id, result.value)
        return SettlementDetail(bet_id=bet_id, result=result.value)

    rechecked = await asyncio.gather(*(
        _recheck(doc) for doc in parlay_docs if str(doc.get("_id")) not in seen
    ))
    details.extend(detail for detail in rechecked if detail is not None)

    for detail in details:
        if detail.result == "error":
            summary.errors += 1
        elif detail.result == BetResult.pending.value:
            summary.pending += 1
        else:
            summary.settled += 1
    summary.details = list(details)

    await _refresh_stats(touched)
    await set_synced(STATE_KEY, {
        "settled": summary.settled,
        "pending": summary.pending,
        "errors": summary.errors,
    })

    logger.info(
        "Settlement pass done: settled=%d pending=%d errors=%d",
        summary.settled, summary.pending, summary.errors,
    )
    return summary


async def settle_single_bet(
    bet_id: str,
    now: Optional[datetime] = None,
    settler: Optional[BetSettler] = None,
) -> tuple[BetInDB, str]:
    """Settle one bet on demand.

    Returns the (possibly updated) bet and a human-readable outcome message.
    Raises SettlementError for unknown ids.
    """
    now = ensure_utc(now) if now else utcnow()
    settler = settler or default_settler

    bet = await bet_repository.find_bet(bet_id)
    if bet is None:
        raise SettlementError("Bet not found")
    if bet.result is not BetResult.pending:
        return bet, "Bet already settled"
    if ensure_utc(bet.start_time) > now:
        return bet, "Event has not started yet"

    result = await settler.settle(bet)
    if result is BetResult.pending:
        return bet, "Game not completed yet"

    if not await _commit(bet, result, now):
        refreshed = await bet_repository.find_bet(bet_id)
        return refreshed or bet, "Bet already settled"

    touched: set[str] = {bet.user_id} if bet.user_id else set()
    if bet.parlay_id:
        await _safe_cascade(bet, settler, now, touched)
    await _refresh_stats(touched)

    settled = await bet_repository.find_bet(bet_id)
    return settled or bet.model_copy(update={"result": result, "locked": True}), "Bet auto-settled successfully"
