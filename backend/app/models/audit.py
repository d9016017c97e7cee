from datetime import datetime

from pydantic import BaseModel, Field


class AuditLog(BaseModel):
    """Immutable audit log entry for settlement decisions.

    Insert-only. No updates or deletes permitted on this collection.
    """

    timestamp: datetime
    actor_id: str  # Who did it? (User-ID or "SYSTEM")
    target_id: str  # What was affected? (Bet-ID)
    action: str  # e.g. "bet_auto_settled"
    metadata: dict = Field(default_factory=dict)  # {"result": "win", "triggered_by": ...}
