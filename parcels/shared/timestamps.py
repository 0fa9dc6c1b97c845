"""Calendar unit helpers.

Every datetime stored by the service is naive UTC. Claims are keyed either by
minute (purchases) or by day (gift codes, marketplace), and the canonical
string form of a unit is the millisecond ISO format ``2024-02-29T11:11:00.000Z``
used in certificate hashes and URLs.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Union

DAY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_now_ms() -> datetime:
    """Current time truncated to milliseconds, the precision of ``iso_utc``"""
    now = utc_now()
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def parse_ts(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO timestamp (``Z`` or offset suffix) or a bare ``YYYY-MM-DD`` day
    into naive UTC.

    Raises:
        ValueError: If the value is not a recognizable timestamp
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value or "").strip()
        if not text:
            raise ValueError("Missing timestamp")
        if DAY_PATTERN.match(text):
            return datetime.strptime(text, "%Y-%m-%d")
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def is_day_string(value: str) -> bool:
    return bool(DAY_PATTERN.match(str(value or "").strip()))


def truncate_minute(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


def truncate_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def day_range(dt: datetime) -> tuple[datetime, datetime]:
    start = truncate_day(dt)
    return start, start + timedelta(days=1)


def month_range(ym: str) -> tuple[datetime, datetime]:
    """``YYYY-MM`` -> [first day of month, first day of next month)"""
    match = MONTH_PATTERN.match(str(ym or "").strip())
    if not match:
        raise ValueError("Month must be formatted as YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 01 and 12")
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def iso_utc(dt: datetime) -> str:
    """Millisecond ISO string with a ``Z`` suffix, e.g. ``2024-02-29T11:11:00.000Z``"""
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def ymd(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d")
