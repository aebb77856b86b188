from datetime import datetime
from enum import Enum
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from app.db.models import Notification
from app.providers.task_queue import TaskQueue
from app.services.notifications.recurrence import next_occurrence
from app.utils.datetime_utils import utc_now
from app.utils.errors import ConfigurationError
from app.utils.logging import get_logger

logger = get_logger()

RECORD_ID_KEY = "recordId"


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    SKIPPED = "skipped"
    FAILED = "failed"


class ScheduleOutcome(BaseModel):
    status: ScheduleStatus
    record_id: str
    fire_at: Optional[datetime] = None
    task_id: Optional[str] = None
    message: Optional[str] = None


class OccurrenceScheduler:
    """
    Keeps at most one pending delivery per reminder in the delayed-execution queue.

    ``schedule`` always cancels before creating, so repeated calls converge on a
    single pending task. Queue failures are logged and reported in the outcome,
    never raised.
    """

    def __init__(
        self,
        queue: TaskQueue,
        zone: ZoneInfo,
        callback_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queue = queue
        self.zone = zone
        self.callback_url = callback_url or None
        self.auth_token = auth_token or None
        self.clock = clock

    def next_fire_at(self, record: Notification) -> Optional[datetime]:
        if not record.is_schedulable:
            return None
        return next_occurrence(record.rule, self.clock(), self.zone)

    def schedule(self, record: Notification) -> ScheduleOutcome:
        if not record.is_schedulable:
            logger.info(
                "Reminder not schedulable, skipping",
                record_id=record.id,
                is_active=record.is_active,
                time_of_day=record.time_of_day,
                days_of_week=record.days_of_week,
            )
            return ScheduleOutcome(
                status=ScheduleStatus.SKIPPED,
                record_id=record.id,
                message="Reminder is inactive or has no valid time/weekdays",
            )

        fire_at = next_occurrence(record.rule, self.clock(), self.zone)
        if fire_at is None:
            logger.info("Reminder can never fire, skipping", record_id=record.id)
            return ScheduleOutcome(
                status=ScheduleStatus.SKIPPED,
                record_id=record.id,
                message="Reminder has no upcoming occurrence",
            )

        try:
            self._cancel_or_raise(record.id)
            handle = self.queue.create_task(
                self.callback_url,
                {RECORD_ID_KEY: record.id},
                fire_at,
                self.auth_token,
            )
        except ConfigurationError as e:
            logger.error(
                f"Delivery queue is not configured: {e.message}",
                record_id=record.id,
            )
            return ScheduleOutcome(
                status=ScheduleStatus.FAILED,
                record_id=record.id,
                fire_at=fire_at,
                message=e.message,
            )
        except Exception as e:
            logger.warning(
                "Failed to schedule reminder; it will not fire until it is saved again",
                record_id=record.id,
                error=str(e),
            )
            return ScheduleOutcome(
                status=ScheduleStatus.FAILED,
                record_id=record.id,
                fire_at=fire_at,
                message=f"Scheduling failed: {e}",
            )

        logger.info(
            "Reminder scheduled",
            record_id=record.id,
            fire_at=fire_at.isoformat(),
            task_id=handle.id,
        )
        return ScheduleOutcome(
            status=ScheduleStatus.SCHEDULED,
            record_id=record.id,
            fire_at=fire_at,
            task_id=handle.id,
        )

    def cancel(self, record_id: str) -> int:
        """Delete every pending task for ``record_id``. Returns the number deleted."""
        try:
            return self._cancel_or_raise(record_id)
        except Exception as e:
            logger.warning(
                "Failed to cancel pending reminder tasks",
                record_id=record_id,
                error=str(e),
            )
            return 0

    def _cancel_or_raise(self, record_id: str) -> int:
        deleted = 0
        for handle in self.queue.list_tasks():
            if handle.payload.get(RECORD_ID_KEY) != record_id:
                continue
            self.queue.delete_task(handle)
            deleted += 1

        if deleted:
            logger.info(
                "Cancelled pending reminder tasks", record_id=record_id, count=deleted
            )
        return deleted
