from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.services.notifications.executor import DeliveryExecutor, FanoutSummary
from app.services.notifications.scheduler import (
    OccurrenceScheduler,
    ScheduleOutcome,
    ScheduleStatus,
)
from app.services.notifications.store import from_snapshot
from app.utils.logging import get_logger

logger = get_logger()


class NotificationEventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class NotificationEvent(BaseModel):
    type: NotificationEventType
    record_id: str
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class LifecycleOutcome(BaseModel):
    event: NotificationEventType
    record_id: str
    cancelled: int = 0
    schedule: Optional[ScheduleOutcome] = None
    immediate: Optional[FanoutSummary] = None
    warnings: List[str] = Field(default_factory=list)


class LifecycleBridge:
    """
    Turns reminder mutations into schedule/cancel calls.

    Each side effect is guarded on its own: a failed immediate broadcast does
    not stop scheduling and a failed cancel does not stop the reschedule.
    With schedule_occurrences=False (polling mode) mutations only cancel, which
    drains tasks left behind by the queue mode.
    """

    def __init__(
        self,
        scheduler: OccurrenceScheduler,
        executor: DeliveryExecutor,
        notify_on_create: bool = True,
        schedule_occurrences: bool = True,
    ):
        self.scheduler = scheduler
        self.executor = executor
        self.notify_on_create = notify_on_create
        self.schedule_occurrences = schedule_occurrences

    def handle(self, event: NotificationEvent) -> LifecycleOutcome:
        handlers = {
            NotificationEventType.CREATED: self.on_create,
            NotificationEventType.UPDATED: self.on_update,
            NotificationEventType.DELETED: self.on_delete,
        }
        return handlers[event.type](event)

    def on_create(self, event: NotificationEvent) -> LifecycleOutcome:
        outcome = LifecycleOutcome(event=event.type, record_id=event.record_id)
        after = event.after or {}

        if after.get("is_active") and self.notify_on_create:
            try:
                outcome.immediate = self._broadcast_created(event.record_id, after)
            except Exception as e:
                logger.error(
                    "Creation broadcast failed", record_id=event.record_id, error=str(e)
                )
                outcome.warnings.append(f"Creation broadcast failed: {e}")

        if self.schedule_occurrences:
            self._schedule(after, outcome)
        return outcome

    def on_update(self, event: NotificationEvent) -> LifecycleOutcome:
        outcome = LifecycleOutcome(event=event.type, record_id=event.record_id)
        self._cancel(event.record_id, outcome)

        after = event.after or {}
        if after.get("is_active") and self.schedule_occurrences:
            self._schedule(after, outcome)
        return outcome

    def on_delete(self, event: NotificationEvent) -> LifecycleOutcome:
        outcome = LifecycleOutcome(event=event.type, record_id=event.record_id)
        self._cancel(event.record_id, outcome)
        return outcome

    def _broadcast_created(self, record_id: str, after: Dict[str, Any]) -> FanoutSummary:
        time_of_day = after.get("time_of_day") or ""
        title = after.get("title") or "New Notification"
        body = str(after.get("body")) if after.get("body") else f"Scheduled at {time_of_day}"
        summary = self.executor.broadcast(
            title,
            body,
            {
                "type": "notificationCreated",
                "notificationId": record_id,
                "time": time_of_day,
            },
        )
        logger.info(
            f"Broadcasted creation push to {summary.sent} device tokens",
            record_id=record_id,
            failed=summary.failed,
        )
        return summary

    def _schedule(self, after: Dict[str, Any], outcome: LifecycleOutcome) -> None:
        try:
            outcome.schedule = self.scheduler.schedule(from_snapshot(after))
        except Exception as e:
            logger.error(
                "Scheduling after mutation failed",
                record_id=outcome.record_id,
                error=str(e),
            )
            outcome.warnings.append(f"Scheduling failed: {e}")
            return

        if outcome.schedule.status == ScheduleStatus.FAILED and outcome.schedule.message:
            outcome.warnings.append(outcome.schedule.message)

    def _cancel(self, record_id: str, outcome: LifecycleOutcome) -> None:
        try:
            outcome.cancelled = self.scheduler.cancel(record_id)
        except Exception as e:
            logger.error(
                "Cancelling pending deliveries failed", record_id=record_id, error=str(e)
            )
            outcome.warnings.append(f"Cancel failed: {e}")
