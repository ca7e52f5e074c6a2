"""
Date helpers. Timesheets are grouped by ISO week starting Monday, UTC.
"""
from __future__ import annotations
from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: str | date | datetime) -> date:
    """Accept 'YYYY-MM-DD', a full ISO datetime, a date or a datetime."""
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if len(text) > 10:
        return parse_date(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return date.fromisoformat(text)


def week_start(value: str | date | datetime) -> date:
    """Monday of the ISO week containing value."""
    day = parse_date(value)
    return day - timedelta(days=day.weekday())


def week_end(value: str | date | datetime) -> date:
    return week_start(value) + timedelta(days=6)
