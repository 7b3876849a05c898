from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from revision_planner.config import Config


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_timezone(name: str = None) -> tzinfo:
    return ZoneInfo(name or Config.TIMEZONE)


def calendar_day(value: datetime, tz: tzinfo) -> date:
    """Local calendar day of a timestamp in the given timezone."""
    return as_utc(value).astimezone(tz).date()
