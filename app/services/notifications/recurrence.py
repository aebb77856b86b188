"""
Recurrence rules for reminders: a wall-clock time of day plus a set of weekdays,
both interpreted in the configured target timezone.

Weekdays are numbered the way the admin UI stores them: 0 = Sunday ... 6 = Saturday.
"""

import re
from datetime import datetime, time, timedelta
from typing import FrozenSet, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.datetime_utils import (
    format_hhmm,
    from_local_fields,
    sunday_weekday,
    to_utc,
    to_zone,
)

DAY_NAME_TO_NUMBER = {
    "sun": 0,
    "sunday": 0,
    "mon": 1,
    "monday": 1,
    "tue": 2,
    "tues": 2,
    "tuesday": 2,
    "wed": 3,
    "wednesday": 3,
    "thu": 4,
    "thur": 4,
    "thurs": 4,
    "thursday": 4,
    "fri": 5,
    "friday": 5,
    "sat": 6,
    "saturday": 6,
}

SHORT_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

# A full week plus the starting day
_SEARCH_OFFSETS = range(0, 8)


def normalize_weekdays(days: Optional[Iterable[Union[int, str]]]) -> List[int]:
    """
    Normalize weekday input to a sorted, de-duplicated list of ints 0..6.

    Accepts ints, numeric strings and full or abbreviated English day names.
    Unrecognized values are dropped.
    """
    out = set()
    for day in days or []:
        if isinstance(day, bool):
            continue
        if isinstance(day, int):
            if 0 <= day <= 6:
                out.add(day)
            continue
        if isinstance(day, str):
            trimmed = day.strip().lower()
            if re.fullmatch(r"[0-6]", trimmed):
                out.add(int(trimmed))
            elif trimmed in DAY_NAME_TO_NUMBER:
                out.add(DAY_NAME_TO_NUMBER[trimmed])
    return sorted(out)


def parse_time_of_day(value: str) -> time:
    """Parse ``H:mm`` / ``HH:mm``; raises ValueError on anything else."""
    match = _TIME_PATTERN.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid time of day '{value}', expected HH:mm")
    return time(int(match.group(1)), int(match.group(2)))


class RecurrenceRule(BaseModel):
    """Time of day + weekdays. Immutable."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)
    weekdays: FrozenSet[int] = Field(default_factory=frozenset)

    @field_validator("weekdays", mode="before")
    @classmethod
    def _normalize_weekdays(cls, v):
        return frozenset(normalize_weekdays(v))

    @classmethod
    def from_record_fields(
        cls, time_of_day: str, days_of_week: Optional[Iterable[Union[int, str]]]
    ) -> "RecurrenceRule":
        at = parse_time_of_day(time_of_day)
        return cls(hour=at.hour, minute=at.minute, weekdays=days_of_week or [])

    @property
    def time_of_day(self) -> time:
        return time(self.hour, self.minute)

    @property
    def time_label(self) -> str:
        return format_hhmm(self.time_of_day)

    def matches_day(self, moment: datetime, zone: ZoneInfo) -> bool:
        """Whether ``moment`` falls on one of the rule's weekdays in ``zone``."""
        return sunday_weekday(to_zone(moment, zone)) in self.weekdays

    def scheduled_instant_on(self, moment: datetime, zone: ZoneInfo) -> datetime:
        """The rule's time of day on the local calendar date of ``moment``, as UTC."""
        local_day = to_zone(moment, zone).date()
        return to_utc(from_local_fields(local_day, self.time_of_day, zone))

    def describe_days(self) -> str:
        if len(self.weekdays) == 7:
            return "Everyday"
        return ", ".join(SHORT_DAY_NAMES[d] for d in sorted(self.weekdays))


def next_occurrence(
    rule: RecurrenceRule, now: datetime, zone: ZoneInfo
) -> Optional[datetime]:
    """
    Compute the next instant strictly after ``now`` at which ``rule`` fires.

    The walk happens on local calendar fields of ``zone`` so a 09:00 rule stays
    09:00 local across DST changes. Returns a UTC datetime, or None when the
    rule can never fire (no weekdays).
    """
    now_utc = to_utc(now)
    local_now = to_zone(now_utc, zone)
    today = local_now.date()
    today_weekday = sunday_weekday(local_now)

    for offset in _SEARCH_OFFSETS:
        candidate_day = (today_weekday + offset) % 7
        if candidate_day not in rule.weekdays:
            continue

        candidate = to_utc(
            from_local_fields(today + timedelta(days=offset), rule.time_of_day, zone)
        )
        if offset == 0 and candidate <= now_utc:
            continue

        return candidate

    return None
