# utils/timezone_utils.py
from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union


def get_user_now(timezone_offset: int = 0) -> datetime:
    """
    Get current naive datetime shifted by the user's offset (minutes from UTC).
    Callers currently pass 0, so "now" and "today" are server UTC.
    """
    utc_now = datetime.now(timezone.utc).replace(tzinfo=None)
    return utc_now + timedelta(minutes=timezone_offset)


def get_user_today(timezone_offset: int = 0) -> date:
    """Get today's date in user's timezone."""
    return get_user_now(timezone_offset).date()


def day_bounds(day: date) -> tuple:
    """First and last instant of a calendar day"""
    start = datetime.combine(day, datetime.min.time())
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def format_timestamp_for_postgres(value: datetime) -> str:
    """Naive UTC timestamp in the 'YYYY-MM-DD HH:MM:SS.mmm' form the tables use"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(sep=' ', timespec='milliseconds')


def parse_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """Parse a stored timestamp into a naive UTC datetime"""
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
