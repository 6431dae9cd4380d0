"""Timestamp helpers.

Converts the timestamp shapes seen in log events and commit metadata into
timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def parse_iso_dt(s: str) -> datetime:
    """Parse ISO8601 datetime. If tz is missing, assume UTC."""
    dt = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def coerce_dt(value: object) -> datetime | None:
    """Return a UTC datetime for str/datetime input, or None when unusable."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, str) and value.strip():
        try:
            return parse_iso_dt(value)
        except ValueError:
            return None
    return None


def lookback_start(days: int, *, now: datetime | None = None) -> datetime:
    """Return the UTC start of a `days`-long window ending at `now`."""
    if days < 0:
        raise ValueError("days must be >= 0")
    end = now if now is not None else datetime.now(UTC)
    return end - timedelta(days=days)


def age_in_days(ts: datetime, *, now: datetime) -> float:
    """Fractional days between `ts` and `now` (negative when `ts` is in the future)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return (now - ts).total_seconds() / 86400.0
