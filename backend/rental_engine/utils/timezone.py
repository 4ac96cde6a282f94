from datetime import date, datetime, time, timezone
from typing import Any


def utcnow() -> datetime:
    """Naive UTC now; all DateTime columns store naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(value: Any) -> datetime:
    """Coerce date/datetime/ISO string input to a naive UTC datetime.

    - aware datetimes are converted to UTC
    - bare dates become midnight
    - strings accept 'YYYY-MM-DD' or full ISO 8601 (a trailing 'Z' is UTC)
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return as_utc_naive(datetime.fromisoformat(raw))
    raise ValueError(f"Unsupported date: {value!r}")


def to_utc_iso_z(value):
    if value is None:
        return None
    dt = value
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
