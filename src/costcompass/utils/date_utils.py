import re
from datetime import date, datetime, timezone
from typing import Optional, Union

_DURATION_RE = re.compile(r"^(\d+)([smh])$")
_DURATION_MULTIPLIERS = {"s": 1, "m": 60, "h": 3600}


def parse_iso_date(date_str: str) -> Optional[datetime]:
    """
    Parses an ISO 8601 date string into a datetime object.
    Handles the 'Z' suffix by replacing it with '+00:00' for compatibility
    with datetime.fromisoformat() in older Python versions (pre-3.11).

    Args:
        date_str: The ISO date string to parse.

    Returns:
        A datetime object or None if parsing fails.
    """
    if not date_str:
        return None

    try:
        if date_str.endswith("Z"):
            date_str = date_str.replace("Z", "+00:00")

        return datetime.fromisoformat(date_str)
    except ValueError:
        return None


def ensure_utc(dt: Union[datetime, str]) -> datetime:
    """
    Ensures a datetime object is timezone-aware and in UTC.
    If input is a string, it parses it first.
    If input is naive, it assumes UTC.
    """
    if isinstance(dt, str):
        parsed = parse_iso_date(dt)
        if not parsed:
            raise ValueError(f"Invalid date string: {dt}")
        dt = parsed

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt


def to_iso_z(dt: datetime) -> str:
    """
    Converts a datetime to an ISO 8601 string with 'Z' suffix for UTC.

    Microseconds are always rendered so that stored strings sort
    lexicographically in chronological order.
    """
    return ensure_utc(dt).isoformat(timespec="microseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_calculation_date(value: Union[str, date, datetime]) -> date:
    """Accepts 'YYYY-MM-DD', a date or a datetime and returns the UTC calendar date."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid calculation date: '{value}'. Use YYYY-MM-DD.") from e


def parse_duration_seconds(interval_str: str) -> int:
    """
    Parses a Prometheus-style duration string like '30s', '5m' or '1h' into seconds.

    Raises:
        ValueError: If the string does not match '<int>[smh]'.
    """
    match = _DURATION_RE.match((interval_str or "").strip().lower())
    if not match:
        raise ValueError(f"Invalid interval format: '{interval_str}'. Use 's', 'm', or 'h'.")

    value, unit = int(match.group(1)), match.group(2)
    return value * _DURATION_MULTIPLIERS[unit]
