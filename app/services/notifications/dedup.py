import threading
from datetime import datetime
from typing import Callable, Optional, Set, Tuple
from zoneinfo import ZoneInfo

from app.services.notifications.recurrence import RecurrenceRule
from app.utils.datetime_utils import next_local_midnight, to_utc, to_zone, utc_now
from app.utils.logging import get_logger

logger = get_logger()

DedupKey = Tuple[str, str, str]


class DedupGuard:
    """
    In-process duplicate suppression for the polling scheduler.

    A reminder fires at most once per (record, local date, HH:mm). Markers are
    cleared at local midnight by a timer that re-arms itself. State lives only
    as long as the process.
    """

    def __init__(
        self,
        zone: ZoneInfo,
        tolerance_seconds: int = 45,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.zone = zone
        self.tolerance_seconds = tolerance_seconds
        self.clock = clock
        self._fired: Set[DedupKey] = set()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    def key_for(self, record_id: str, rule: RecurrenceRule, now: datetime) -> DedupKey:
        local_date = to_zone(now, self.zone).date().isoformat()
        return (record_id, local_date, rule.time_label)

    def is_within_window(self, rule: RecurrenceRule, now: datetime) -> bool:
        scheduled = rule.scheduled_instant_on(now, self.zone)
        return abs((to_utc(now) - scheduled).total_seconds()) <= self.tolerance_seconds

    def is_due(self, rule: RecurrenceRule, now: datetime) -> bool:
        return rule.matches_day(now, self.zone) and self.is_within_window(rule, now)

    def should_fire(self, record_id: str, rule: RecurrenceRule, now: datetime) -> bool:
        if not self.is_due(rule, now):
            return False
        with self._lock:
            return self.key_for(record_id, rule, now) not in self._fired

    def mark_fired(self, record_id: str, rule: RecurrenceRule, now: datetime) -> None:
        with self._lock:
            self._fired.add(self.key_for(record_id, rule, now))

    def try_mark(self, record_id: str, rule: RecurrenceRule, now: datetime) -> bool:
        """Claim this occurrence. True for exactly one caller per key."""
        if not self.is_due(rule, now):
            return False
        key = self.key_for(record_id, rule, now)
        with self._lock:
            if key in self._fired:
                return False
            self._fired.add(key)
            return True

    def reset(self) -> None:
        with self._lock:
            self._fired.clear()

    @property
    def fired_count(self) -> int:
        with self._lock:
            return len(self._fired)

    def start_midnight_reset(self) -> None:
        """Arm a timer that clears all markers at the next local midnight."""
        self.stop()
        now = self.clock()
        delay = (next_local_midnight(now, self.zone) - to_utc(now)).total_seconds()
        self._timer = threading.Timer(max(delay, 0), self._on_midnight)
        self._timer.daemon = True
        self._timer.start()

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_midnight(self) -> None:
        self.reset()
        logger.info("Reminder dedup markers cleared at midnight")
        self.start_midnight_reset()
