"""
backend/app/services/stat_mapping.py

Purpose:
    Closed lookup tables from human prop labels ("Passing Yards") to
    SportsDataIO stat field names, per sport, plus the derived statistics
    that are computed rather than looked up.

Notes:
    - Labels match exactly. An unknown label maps to None and the bet voids;
      there is no fuzzy matching.
    - PRA and Anytime TD Scorer map to marker fields here; their values are
      computed by derived_stat_value().
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

logger = logging.getLogger("betledger.stat_mapping")

PRA_FIELD = "PRA"
ANYTIME_TD_FIELD = "Touchdowns"
ANYTIME_TD_LABEL = "Anytime TD Scorer"

PRA_COMPONENTS = ("Points", "Rebounds", "Assists")
TOUCHDOWN_COMPONENTS = ("RushingTouchdowns", "ReceivingTouchdowns", "PassingTouchdowns")

NFL_STAT_FIELDS: dict[str, str] = {
    "Passing Yards": "PassingYards",
    "Passing TDs": "PassingTouchdowns",
    "Interceptions Thrown": "PassingInterceptions",
    "Rushing Yards": "RushingYards",
    "Rushing Attempts": "RushingAttempts",
    "Receiving Yards": "ReceivingYards",
    "Receptions": "Receptions",
    ANYTIME_TD_LABEL: ANYTIME_TD_FIELD,
    "Longest Reception": "ReceivingLong",
    "Longest Rush": "RushingLong",
}

NBA_STAT_FIELDS: dict[str, str] = {
    "Points": "Points",
    "Rebounds": "Rebounds",
    "Assists": "Assists",
    "Points + Rebounds + Assists (PRA)": PRA_FIELD,
    "PRA": PRA_FIELD,
    "3-Pointers Made": "ThreePointersMade",
    "Steals": "Steals",
    "Blocks": "BlockedShots",
    "Turnovers": "Turnovers",
}

MLB_STAT_FIELDS: dict[str, str] = {
    "Hits": "Hits",
    "Home Runs": "HomeRuns",
    "RBIs": "RunsBattedIn",
    "Runs": "Runs",
    "Total Bases": "TotalBases",
    "Stolen Bases": "StolenBases",
    "Pitcher Strikeouts": "PitchingStrikeouts",
    "Pitcher Outs Recorded": "PitchingOuts",
    "Walks Drawn": "Walks",
}

NHL_STAT_FIELDS: dict[str, str] = {
    "Goals": "Goals",
    "Assists": "Assists",
    "Points": "Points",
    "Shots on Goal": "ShotsOnGoal",
    "Blocked Shots": "BlockedShots",
    "Goalie Saves": "Saves",
}

# Bet label -> "Description" of the graded-props endpoint (NBA / MLB).
PROP_DESCRIPTIONS: dict[str, str] = {
    "Points": "Points",
    "Rebounds": "Rebounds",
    "Assists": "Assists",
    "Points + Rebounds + Assists (PRA)": "Points + Rebounds + Assists",
    "PRA": "Points + Rebounds + Assists",
    "3-Pointers Made": "Three Pointers Made",
    "Steals": "Steals",
    "Blocks": "Blocks",
    "Turnovers": "Turnovers",
    "Hits": "Hits",
    "Home Runs": "Home Runs",
    "RBIs": "RBIs",
    "Runs": "Runs",
    "Total Bases": "Total Bases",
    "Stolen Bases": "Stolen Bases",
    "Pitcher Strikeouts": "Pitcher Strikeouts",
    "Pitcher Outs Recorded": "Pitcher Outs Recorded",
    "Walks Drawn": "Walks Drawn",
}

_SPORT_TABLES: dict[str, dict[str, str]] = {
    "football": NFL_STAT_FIELDS,
    "basketball": NBA_STAT_FIELDS,
    "baseball": MLB_STAT_FIELDS,
    "hockey": NHL_STAT_FIELDS,
}

# Provider sport paths / short codes -> stat family
_SPORT_ALIASES: dict[str, str] = {
    "nfl": "football",
    "ncaaf": "football",
    "cfb": "football",
    "nba": "basketball",
    "ncaab": "basketball",
    "cbb": "basketball",
    "cwbb": "basketball",
    "mlb": "baseball",
    "nhl": "hockey",
}


def stat_family(sport: str | None) -> Optional[str]:
    """Resolve a sport path / label to ``football|basketball|baseball|hockey``."""
    key = (sport or "").strip().lower()
    if not key:
        return None
    if key in _SPORT_ALIASES:
        return _SPORT_ALIASES[key]
    for family in _SPORT_TABLES:
        if family in key:
            return family
    return None


def map_stat_field(label: str | None, sport: str | None) -> Optional[str]:
    """Provider stat field for a prop label, or None if unmapped."""
    family = stat_family(sport)
    if family is None or not label:
        return None
    return _SPORT_TABLES[family].get(label)


def map_prop_description(label: str) -> str:
    """Graded-props ``Description`` for a bet label (unknown labels pass through)."""
    return PROP_DESCRIPTIONS.get(label, label)


def _number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def derived_stat_value(field: str, label: str, stats: Mapping[str, Any]) -> Optional[float]:
    """Value of a mapped field from a box-score record.

    Returns None when the record does not carry the field, which the caller
    treats as a data gap (void).
    """
    if field == PRA_FIELD:
        # Missing components count as zero
        return sum(_number(stats.get(name)) for name in PRA_COMPONENTS)

    if field == ANYTIME_TD_FIELD and label == ANYTIME_TD_LABEL:
        touchdowns = sum(_number(stats.get(name)) for name in TOUCHDOWN_COMPONENTS)
        return 1.0 if touchdowns > 0 else 0.0

    value = stats.get(field)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Non-numeric stat value for %s: %r", field, value)
        return None
