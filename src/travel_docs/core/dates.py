from __future__ import annotations

import re
from datetime import UTC, date, datetime, time

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_iso_datetime(value: object) -> datetime | None:
    """
    Parse an ISO-8601 date or datetime string into an aware UTC datetime.

    Date-only strings land on midnight UTC. Naive datetimes are read as UTC.
    Returns None for anything that is not a parseable string.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=UTC)
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if _DATE_ONLY_RE.match(s):
        try:
            return datetime.combine(date.fromisoformat(s), time.min, tzinfo=UTC)
        except ValueError:
            return None
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    return ensure_utc(parsed)


def isoformat_z(value: datetime) -> str:
    """Millisecond-precision UTC timestamp, e.g. 2024-03-01T00:00:00.000Z."""
    v = ensure_utc(value)
    return v.strftime("%Y-%m-%dT%H:%M:%S.") + f"{v.microsecond // 1000:03d}Z"


def is_midnight_utc(value: datetime) -> bool:
    v = ensure_utc(value)
    return v.hour == 0 and v.minute == 0 and v.second == 0 and v.microsecond == 0
