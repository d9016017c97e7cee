"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for the bets, users
    and audit_logs collections.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import OperationFailure

from app.config import settings

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("betledger.database")


async def connect_db() -> None:
    global client, db
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Bets ----

    await db.bets.create_index("user_id")
    await db.bets.create_index("result")
    await db.bets.create_index("start_time")
    await db.bets.create_index("provider_event_id", sparse=True)
    await db.bets.create_index("company_id", sparse=True)
    await db.bets.create_index([("user_id", 1), ("created_at", -1)])
    await db.bets.create_index([("user_id", 1), ("result", 1)])
    await db.bets.create_index([("start_time", 1), ("locked", 1)])
    # Settlement pass: pending bets whose event has started
    await db.bets.create_index([("result", 1), ("start_time", 1)])
    # Parlay legs -> parent
    await db.bets.create_index([("parlay_id", 1), ("start_time", 1)], sparse=True)

    # ---- Users ----

    await db.users.create_index([("company_id", 1), ("role", 1)])

    # ---- Audit log (insert-only) ----

    await db.audit_logs.create_index([("target_id", 1), ("timestamp", -1)])
    await db.audit_logs.create_index([("action", 1), ("timestamp", -1)])
    try:
        await db.audit_logs.create_index(
            "timestamp", expireAfterSeconds=60 * 60 * 24 * 365 * 2, name="audit_ttl",
        )
    except OperationFailure as exc:
        # An existing non-TTL timestamp index blocks this; keep the old one.
        logger.warning("Skipped audit_logs TTL index: %s", exc)

    logger.info("MongoDB indexes ensured")
