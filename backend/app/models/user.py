from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class UserRole(str, Enum):
    owner = "owner"
    admin = "admin"
    member = "member"


class UserStats(BaseModel):
    """Aggregate betting statistics, materialized into ``users.stats``."""
    total_bets: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    voids: int = 0
    win_rate: float = 0.0        # percent, pushes/voids excluded
    roi: float = 0.0             # percent of units wagered (voids excluded)
    units_pl: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0


class UserInDB(BaseModel):
    """The subset of the user document the settlement engine reads."""
    id: str
    alias: Optional[str] = None
    whop_display_name: Optional[str] = None
    whop_username: Optional[str] = None
    whop_user_id: Optional[str] = None
    company_id: Optional[str] = None
    role: UserRole = UserRole.member
    discord_webhook_url: Optional[str] = None
    whop_webhook_url: Optional[str] = None
    stats: UserStats = UserStats()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return (
            self.alias
            or self.whop_display_name
            or self.whop_username
            or self.whop_user_id
            or "Unknown bettor"
        )

    @classmethod
    def from_doc(cls, doc: dict) -> "UserInDB":
        data = dict(doc)
        data["id"] = str(data.pop("_id", data.get("id", "")))
        return cls.model_validate(data)
