from __future__ import annotations

import math
from datetime import datetime, timezone

_UNIT_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 3600,
    "day": 86400,
    "month": 86400 * 30.4,
    "year": 86400 * 365,
}

# (format, upper bound after rounding, unit to measure in); no unit keeps the previous measurement.
_RELATIVE_THRESHOLDS = (
    ("a few seconds", 44, "second"),
    ("a minute", 89, None),
    ("{} minutes", 44, "minute"),
    ("an hour", 89, None),
    ("{} hours", 21, "hour"),
    ("a day", 35, None),
    ("{} days", 25, "day"),
    ("a month", 45, None),
    ("{} months", 10, "month"),
    ("a year", 17, None),
    ("{} years", None, "year"),
)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def as_iso(value: datetime | None) -> str:
    if value is None:
        return ""
    return _as_utc(value).isoformat()


def from_now(value: datetime | None, *, now: datetime | None = None) -> str:
    """Human relative time ("5 minutes ago"), rounded and bucketed the way dayjs ``fromNow`` does."""
    if value is None:
        return ""
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    seconds = (current - _as_utc(value)).total_seconds()
    future = seconds < 0
    seconds = abs(seconds)

    phrase = ""
    measured = seconds
    for index, (fmt, limit, unit) in enumerate(_RELATIVE_THRESHOLDS):
        if unit is not None:
            measured = seconds / _UNIT_SECONDS[unit]
        rounded = _round_half_up(measured)
        if limit is None or rounded <= limit:
            if rounded <= 1 and index > 0:
                fmt = _RELATIVE_THRESHOLDS[index - 1][0]
            phrase = fmt.format(rounded)
            break

    return f"in {phrase}" if future else f"{phrase} ago"
