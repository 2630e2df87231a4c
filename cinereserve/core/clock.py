from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from cinereserve.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands timestamps back naive; they are always written in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def theater_tz() -> ZoneInfo:
    return ZoneInfo(settings.THEATER_TIMEZONE)


def parse_hhmm(value: str) -> time:
    hh, mm = value.split(":")
    return time(int(hh), int(mm))


def show_datetime(date_str: str, hhmm: str) -> datetime:
    """Wall-clock showtime on `date_str` at `hhmm`, as an aware datetime in the theater zone."""
    return datetime.combine(date.fromisoformat(date_str), parse_hhmm(hhmm), tzinfo=theater_tz())


def add_minutes(start_hhmm: str, minutes: int) -> tuple[str, bool]:
    """Return (HH:MM, crossed_midnight)."""
    hh, mm = map(int, start_hhmm.split(":"))
    total = hh * 60 + mm + minutes
    eh, em = divmod(total % 1440, 60)
    return f"{eh:02d}:{em:02d}", total >= 1440
