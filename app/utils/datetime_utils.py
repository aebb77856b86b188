from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Get current UTC datetime as a timezone-aware datetime.

    Returns:
        datetime: Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime object to UTC timezone-aware datetime.

    Args:
        dt: Datetime object to convert

    Returns:
        datetime: UTC timezone-aware datetime
    """
    if dt.tzinfo is None:
        # Assume naive datetime is in UTC
        return dt.replace(tzinfo=timezone.utc)
    else:
        return dt.astimezone(timezone.utc)


def to_naive_utc(dt: datetime) -> datetime:
    """
    Convert a datetime object to naive UTC (no timezone info).
    DateTime columns store naive UTC values.

    Args:
        dt: Datetime object to convert

    Returns:
        datetime: Naive UTC datetime
    """
    return to_utc(dt).replace(tzinfo=None)


def to_zone(dt: datetime, zone: ZoneInfo) -> datetime:
    """
    Express an instant in the calendar fields of the given zone.

    Naive input is treated as UTC.
    """
    return to_utc(dt).astimezone(zone)


def from_local_fields(day: date, at: time, zone: ZoneInfo) -> datetime:
    """
    Build an aware datetime from local calendar fields in ``zone``.

    Wall-clock times that fall in a DST gap resolve with ``fold=0`` the way
    zoneinfo does, so the result is still the nominal local time.
    """
    return datetime.combine(day, at).replace(tzinfo=zone)


def sunday_weekday(dt: datetime) -> int:
    """Weekday number with Sunday = 0 ... Saturday = 6."""
    return (dt.weekday() + 1) % 7


def next_local_midnight(now: datetime, zone: ZoneInfo) -> datetime:
    """Return the next local midnight after ``now`` as a UTC instant."""
    local_now = to_zone(now, zone)
    tomorrow = local_now.date().toordinal() + 1
    return to_utc(from_local_fields(date.fromordinal(tomorrow), time(0, 0), zone))


def format_hhmm(at: time) -> str:
    return f"{at.hour:02d}:{at.minute:02d}"
