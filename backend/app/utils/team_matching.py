"""
backend/app/utils/team_matching.py

Purpose:
    Team-name comparison helpers used by the score resolver and the settlement
    decision function.

Notes:
    - Score-feed entries are matched tolerantly: exact equality, or one
      trimmed name containing the other ("Lakers" vs "Los Angeles Lakers").
    - Bet selections are matched strictly (trimmed equality). A selection
      that equals neither recorded team is a data-integrity gap and the bet
      voids; we never guess which side the bettor meant.
"""

from __future__ import annotations


def _clean(name: str | None) -> str:
    return (name or "").strip()


def names_overlap(score_name: str | None, team_name: str | None) -> bool:
    """Return True when a feed score entry name refers to the given team."""
    a = _clean(score_name)
    b = _clean(team_name)
    if not a or not b:
        return False
    return a == b or a in b or b in a


def selection_side(selection: str | None, home_team: str | None, away_team: str | None) -> str | None:
    """Map a bet selection to ``"home"`` / ``"away"``, or None if it matches neither."""
    sel = _clean(selection)
    if not sel:
        return None
    if sel == _clean(home_team):
        return "home"
    if sel == _clean(away_team):
        return "away"
    return None
