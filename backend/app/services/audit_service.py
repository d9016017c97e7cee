"""Immutable audit logging for settlement decisions.

All audit entries are insert-only. This module intentionally exposes NO
update or delete operations on the audit_logs collection.
"""

import logging
from typing import Optional

import app.database as _db
from app.models.audit import AuditLog
from app.utils import utcnow

logger = logging.getLogger("betledger.audit")

SYSTEM_ACTOR = "SYSTEM"
BET_AUTO_SETTLED = "bet_auto_settled"


async def log_audit(
    *,
    actor_id: str,
    target_id: str,
    action: str,
    metadata: Optional[dict] = None,
) -> None:
    """Write an immutable audit record to the audit_logs collection.

    Args:
        actor_id: Whose bet it is (User-ID) or "SYSTEM".
        target_id: The affected bet id.
        action: Action identifier, e.g. "bet_auto_settled".
        metadata: Extra context, e.g. {"result": "win", "triggered_by": "leg_settlement"}.
    """
    entry = AuditLog(
        timestamp=utcnow(),
        actor_id=actor_id,
        target_id=target_id,
        action=action,
        metadata=metadata or {},
    )

    try:
        await _db.db.audit_logs.insert_one(entry.model_dump())
    except Exception:
        # Audit logging must never undo or abort a settlement
        logger.exception("Failed to write audit log: action=%s target=%s", action, target_id)
