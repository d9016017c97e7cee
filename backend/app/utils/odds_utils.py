"""Decimal odds helpers (profit, display)."""

from __future__ import annotations

from typing import Any

MIN_DECIMAL_ODDS = 1.01


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def win_profit(units: float, decimal_odds: float) -> float:
    """Profit (not payout) of a winning stake: units * (odds - 1)."""
    return units * (decimal_odds - 1)


def format_odds(decimal_odds: Any, american: Any = None) -> str:
    """Prefer the originally entered American price, else two-decimal odds."""
    american_value = _to_float(american)
    if american_value is not None:
        prefix = "+" if american_value > 0 else ""
        return f"{prefix}{american_value:g}"
    decimal_value = _to_float(decimal_odds)
    if decimal_value is not None:
        return f"{decimal_value:.2f}"
    return "N/A"


def format_units(units: Any) -> str:
    value = _to_float(units)
    if value is None:
        return "N/A units"
    if value == int(value):
        return f"{value:.0f} units"
    return f"{value:.2f} units"
