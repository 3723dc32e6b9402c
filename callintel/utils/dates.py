# callintel/utils/dates.py
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Naive UTC, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse Google-style RFC3339 ('...Z') or plain dates into naive UTC."""
    if not value:
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return as_utc_naive(datetime.fromisoformat(s))
    except ValueError:
        return None


def rfc3339(dt: datetime) -> str:
    return as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"
