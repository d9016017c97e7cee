"""
backend/app/services/season_service.py

Purpose:
    NFL date -> (season, season type, week) projection for the week-indexed
    stats endpoints.

Notes:
    There is no authoritative schedule feed behind this. Weeks are whole
    7-day blocks since a calendar anchor, clamped into the valid range, so
    bye weeks or shifted schedules can land a game in a neighbouring week.
    All arithmetic is done on the UTC calendar date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from app.utils import ensure_utc

MONDAY = 0
THURSDAY = 3
SATURDAY = 5

PRESEASON_WEEKS = 4
REGULAR_SEASON_WEEKS = 18
POSTSEASON_WEEKS = 5


class SeasonType(str, Enum):
    PRE = "PRE"
    REG = "REG"
    POST = "POST"


@dataclass(frozen=True)
class SeasonInfo:
    season: int
    season_type: SeasonType
    week: int

    @property
    def season_segment(self) -> str:
        """Provider season key, e.g. ``2025REG``."""
        return f"{self.season}{self.season_type.value}"


def first_weekday(year: int, month: int, weekday: int) -> date:
    """First day of ``month`` falling on ``weekday`` (Monday=0)."""
    first = date(year, month, 1)
    return first + timedelta(days=(weekday - first.weekday()) % 7)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def week_number(anchor: date, day: date, max_week: int) -> int:
    """Whole weeks since ``anchor`` plus one, clamped to ``1..max_week``."""
    return _clamp((day - anchor).days // 7 + 1, 1, max_week)


def regular_season_start(year: int) -> date:
    """Thursday after Labor Day (first Monday of September)."""
    return first_weekday(year, 9, MONDAY) + timedelta(days=3)


def nfl_season_info(game_date: datetime | date) -> SeasonInfo:
    if isinstance(game_date, datetime):
        day = ensure_utc(game_date).date()
    else:
        day = game_date
    year, month = day.year, day.month

    # Preseason: August
    if month == 8:
        anchor = first_weekday(year, 8, THURSDAY)
        return SeasonInfo(year, SeasonType.PRE, week_number(anchor, day, PRESEASON_WEEKS))

    # Regular season: September through December
    if 9 <= month <= 12:
        anchor = regular_season_start(year)
        return SeasonInfo(year, SeasonType.REG, week_number(anchor, day, REGULAR_SEASON_WEEKS))

    # Postseason: January/February belong to the previous season
    if month <= 2:
        anchor = first_weekday(year, 1, SATURDAY)
        return SeasonInfo(year - 1, SeasonType.POST, week_number(anchor, day, POSTSEASON_WEEKS))

    # Offseason (March-July): placeholder, no real event settles here
    return SeasonInfo(year - 1, SeasonType.REG, 1)
