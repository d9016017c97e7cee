"""Bet / user persistence used by the settlement engine."""

import logging
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId

import app.database as _db
from app.models.bet import BetInDB, BetResult, MarketType
from app.models.user import UserInDB, UserRole

logger = logging.getLogger("betledger.bet_repository")


def _id_variants(value: str) -> list[Any]:
    """Ids may be stored as ObjectId or as their string form."""
    variants: list[Any] = [value]
    if ObjectId.is_valid(value):
        variants.append(ObjectId(value))
    return variants


def _id_query(value: str) -> Any:
    return {"$in": _id_variants(value)}


async def find_pending_bet_docs(now: datetime, limit: int = 5000) -> list[dict]:
    """Raw pending bets whose event has started and that carry a provider event id."""
    return await _db.db.bets.find({
        "result": BetResult.pending.value,
        "start_time": {"$lte": now},
        "provider_event_id": {"$exists": True, "$ne": None},
    }).sort("start_time", 1).to_list(length=limit)


async def find_pending_parlay_docs(now: datetime, limit: int = 5000) -> list[dict]:
    """Pending parlays that have started; their result comes from their legs."""
    return await _db.db.bets.find({
        "market_type": MarketType.parlay.value,
        "result": BetResult.pending.value,
        "start_time": {"$lte": now},
    }).sort("start_time", 1).to_list(length=limit)


async def find_bet(bet_id: str) -> Optional[BetInDB]:
    doc = await _db.db.bets.find_one({"_id": _id_query(bet_id)})
    return BetInDB.from_doc(doc) if doc else None


async def find_legs(parlay_id: str) -> list[BetInDB]:
    docs = await _db.db.bets.find(
        {"parlay_id": _id_query(parlay_id)}
    ).sort("start_time", 1).to_list(length=100)
    return [BetInDB.from_doc(doc) for doc in docs]


async def find_user_bet_docs(user_id: str) -> list[dict]:
    return await _db.db.bets.find({"user_id": _id_query(user_id)}).to_list(length=None)


async def save_result(bet_id: str, result: BetResult, now: datetime) -> bool:
    """Persist a terminal result exactly once.

    The update only matches while the bet is still pending, so a second
    writer (overlapping pass, manual settle) becomes a no-op. Returns True
    when this call performed the transition.
    """
    if result is BetResult.pending:
        raise ValueError("pending is not a terminal result")
    res = await _db.db.bets.update_one(
        {"_id": _id_query(bet_id), "result": BetResult.pending.value},
        {"$set": {
            "result": result.value,
            "locked": True,
            "settled_at": now,
            "updated_at": now,
        }},
    )
    return res.modified_count == 1


async def find_user(user_id: str) -> Optional[UserInDB]:
    doc = await _db.db.users.find_one({"_id": _id_query(user_id)})
    return UserInDB.from_doc(doc) if doc else None


async def find_company_admins(company_id: str) -> list[UserInDB]:
    docs = await _db.db.users.find({
        "company_id": company_id,
        "role": {"$in": [UserRole.owner.value, UserRole.admin.value]},
    }).to_list(length=200)
    return [UserInDB.from_doc(doc) for doc in docs]


async def save_user_stats(user_id: str, stats: dict, now: datetime) -> None:
    await _db.db.users.update_one(
        {"_id": _id_query(user_id)},
        {"$set": {"stats": stats, "updated_at": now}},
    )
