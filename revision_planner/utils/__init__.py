from .time import as_utc, calendar_day, get_timezone, utcnow

__all__ = ["as_utc", "calendar_day", "get_timezone", "utcnow"]
