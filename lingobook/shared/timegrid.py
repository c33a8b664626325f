"""Pure helpers for interval math and tenant-local calendar tiling."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lingobook.shared.exceptions import ValidationException


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """Half-open overlap: touching intervals do not overlap."""
    return a_start < b_end and a_end > b_start


def iter_days(from_date: date, to_date: date) -> Iterator[date]:
    """Yield every calendar day in ``[from_date, to_date]``."""
    current = from_date
    while current <= to_date:
        yield current
        current += timedelta(days=1)


def sunday_based_weekday(day: date) -> int:
    """Weekday where 0 is Sunday and 6 is Saturday."""
    return (day.weekday() + 1) % 7


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` into a time, rejecting anything else."""
    try:
        hours_text, minutes_text = value.split(":")
        hours, minutes = int(hours_text), int(minutes_text)
    except ValueError as exc:
        raise ValidationException(f"Invalid time '{value}', expected HH:MM") from exc
    if len(hours_text) != 2 or len(minutes_text) != 2 or not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise ValidationException(f"Invalid time '{value}', expected HH:MM")
    return time(hours, minutes)


def resolve_timezone(name: str) -> ZoneInfo:
    """Return ZoneInfo for an IANA name or fail with a validation error."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationException(f"Unknown timezone '{name}'") from exc


def local_instant(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Wall-clock time on a local day, expressed in UTC."""
    return datetime.combine(day, at, tzinfo=tz).astimezone(UTC)


def local_day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a tenant-local calendar day."""
    return local_instant(day, time.min, tz), local_instant(day + timedelta(days=1), time.min, tz)


def format_with_offset(instant: datetime, tz: ZoneInfo) -> str:
    """ISO-8601 timestamp carrying the zone's UTC offset at that instant."""
    return instant.astimezone(tz).isoformat(timespec="seconds")


def hours_until(instant: datetime, now: datetime) -> float:
    return (instant - now).total_seconds() / 3600
