"""Persistent worker state: last run time and counters per worker.

Stored in the lightweight `worker_state` collection so operators can see
when a settlement pass last completed across restarts.
"""

from datetime import datetime
from typing import Optional

import app.database as _db
from app.utils import ensure_utc, utcnow


async def get_synced_at(worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await _db.db.worker_state.find_one({"_id": worker_id})
    return ensure_utc(doc["synced_at"]) if doc and doc.get("synced_at") else None


async def set_synced(worker_id: str, last_run: Optional[dict] = None) -> None:
    """Mark a worker as just synced, optionally storing counters from the run."""
    update: dict = {"synced_at": utcnow()}
    if last_run is not None:
        update["last_run"] = last_run
    await _db.db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": update},
        upsert=True,
    )

