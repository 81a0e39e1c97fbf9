from datetime import date, datetime, timezone
from typing import Any


def coerce_datetime(value: Any) -> datetime:
    """Read any date-like value the way a JS ``new Date(value)`` would.

    Accepts datetimes, dates, epoch milliseconds and ISO-8601 strings
    (including a trailing ``Z``). Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as error:
            raise ValueError(f"Timestamp out of range: {value!r}") from error
    elif isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Not a date-like value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: datetime) -> str:
    return value.isoformat()
