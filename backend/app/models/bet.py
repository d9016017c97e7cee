"""Bet models: persisted wagers plus the ephemeral data the settlement engine resolves."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from app.utils.odds_utils import MIN_DECIMAL_ODDS


class MarketType(str, Enum):
    ml = "ML"
    spread = "Spread"
    total = "Total"
    player_prop = "Player Prop"
    parlay = "Parlay"


class BetResult(str, Enum):
    pending = "pending"
    win = "win"
    loss = "loss"
    push = "push"
    void = "void"


TERMINAL_RESULTS = frozenset({BetResult.win, BetResult.loss, BetResult.push, BetResult.void})


class OverUnder(str, Enum):
    over = "Over"
    under = "Under"


class OddsFormat(str, Enum):
    american = "american"
    decimal = "decimal"


class BetInDB(BaseModel):
    """Bet document as stored in the ``bets`` collection.

    Parlay legs are bets of their own, linked to the parent via ``parlay_id``.
    A parlay carries no settlement inputs; its result is derived from its legs.
    """
    id: str
    user_id: str
    parlay_id: Optional[str] = None
    company_id: Optional[str] = None

    market_type: MarketType
    event_name: Optional[str] = None
    sport: Optional[str] = None                   # "NBA", "NFL", ...
    league: Optional[str] = None
    sport_key: Optional[str] = None               # TheOddsAPI sport key, e.g. "basketball_nba"
    provider: Optional[str] = None
    provider_event_id: Optional[str] = None

    home_team: Optional[str] = None
    away_team: Optional[str] = None
    selection: Optional[str] = None               # Team name for ML / Spread
    line: Optional[float] = None                  # Spread / Total / Player Prop threshold
    over_under: Optional[OverUnder] = None

    player_id: Optional[int] = None               # SportsDataIO PlayerID
    player_name: Optional[str] = None
    stat_type: Optional[str] = None               # Free-text prop label, e.g. "Rushing Yards"
    parlay_summary: Optional[Any] = None

    start_time: datetime
    odds: float = Field(ge=MIN_DECIMAL_ODDS)      # Always decimal
    odds_format: OddsFormat = OddsFormat.decimal
    odds_american: Optional[float] = None
    units: float = Field(gt=0)

    book: Optional[str] = None
    notes: Optional[str] = None

    result: BetResult = BetResult.pending
    locked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.result in TERMINAL_RESULTS

    @classmethod
    def from_doc(cls, doc: dict) -> "BetInDB":
        """Build from a raw Mongo document (``_id`` / ObjectId references become strings)."""
        data = dict(doc)
        data["id"] = str(data.pop("_id", data.get("id", "")))
        for key in ("user_id", "parlay_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        return cls.model_validate(data)


# ---------- Resolved provider data (ephemeral, never persisted) ----------

class ResolvedScore(BaseModel):
    """Normalized score-feed record for one event.

    ``completed=True`` with a missing side means the feed is incomplete; that
    is distinct from ``completed=False`` (game still running / not started).
    """
    completed: bool
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @property
    def has_both_scores(self) -> bool:
        return self.home_score is not None and self.away_score is not None


class GradedProp(BaseModel):
    """One graded prop entry from the stats feed (``stat_result=None`` → not graded yet)."""
    description: str
    stat_result: Optional[float] = None
    over_under: Optional[float] = None


class PlayerStatRecord(BaseModel):
    """Normalized player-stats lookup result.

    Exactly one shape is populated: ``stats`` (boxscore field → value) for
    box-score endpoints, ``props`` for graded-props endpoints.
    """
    stats: dict[str, Any] = Field(default_factory=dict)
    props: Optional[list[GradedProp]] = None

    @property
    def is_graded_props(self) -> bool:
        return self.props is not None


# ---------- Settlement pass summary ----------

class SettlementDetail(BaseModel):
    bet_id: str
    result: str                                   # BetResult value or "error"
    error: Optional[str] = None
    parlay_id: Optional[str] = None
    parlay_result: Optional[str] = None


class SettlementSummary(BaseModel):
    settled: int = 0
    pending: int = 0
    errors: int = 0
    details: list[SettlementDetail] = Field(default_factory=list)


class SettleBetRequest(BaseModel):
    bet_id: str = Field(..., min_length=1)


class SettleBetResponse(BaseModel):
    bet: BetInDB
    message: str
