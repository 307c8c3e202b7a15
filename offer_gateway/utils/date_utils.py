"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone


def add_days(from_date: date, days: int) -> date:
    """Add calendar days to a date"""
    return from_date + timedelta(days=days)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_stamp(value: datetime) -> str:
    """ddMMyyyy stamp used in offer reference codes"""
    return value.strftime("%d%m%Y")


def format_long_date(value: date) -> str:
    """Human-readable due date, e.g. 25 March 2020"""
    return f"{value.day} {value.strftime('%B %Y')}"
