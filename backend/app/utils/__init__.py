from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    MongoDB stores datetimes without tzinfo (naive). Bet start times read back
    from Mongo must be wrapped with ensure_utc() before they are compared with
    utcnow(), otherwise Python raises "can't compare offset-naive and
    offset-aware datetimes".
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_utc(value: str | datetime) -> datetime:
    """Parse a date string or datetime into a tz-aware UTC datetime.

    Handles ISO 8601 strings (with or without Z/offset) and bare datetimes.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def date_key(value: datetime) -> str:
    """UTC calendar date as ``YYYY-MM-DD`` (the stats feed's date format)."""
    return ensure_utc(value).strftime("%Y-%m-%d")
