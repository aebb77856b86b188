from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel

from app.db.models import UserRole
from app.providers.push_transport import PushTransport
from app.services.notifications.fanout import build_messages, partition
from app.services.notifications.scheduler import OccurrenceScheduler, ScheduleStatus
from app.services.notifications.store import ReminderStore
from app.utils.logging import get_logger

logger = get_logger()


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    ERROR = "error"


class FanoutSummary(BaseModel):
    sent: int = 0
    failed: int = 0
    batches: int = 0


class DeliveryResult(BaseModel):
    status: DeliveryStatus
    record_id: str
    sent: int = 0
    failed: int = 0
    batches: int = 0
    next_fire_at: Optional[datetime] = None
    error: Optional[str] = None


class DeliveryExecutor:
    """
    Runs one scheduled delivery of a reminder and arms the next one.

    The reschedule happens whatever the send outcome; only a missing or
    inactive record stops the recurrence. With reschedule=False (polling
    mode) nothing is re-armed and the poller owns the recurrence.
    """

    def __init__(
        self,
        store: ReminderStore,
        transport: PushTransport,
        scheduler: OccurrenceScheduler,
        batch_size: int = 500,
        recipient_role: Optional[UserRole] = UserRole.USER,
        reschedule: bool = True,
    ):
        self.store = store
        self.transport = transport
        self.scheduler = scheduler
        self.batch_size = min(batch_size, transport.max_batch_size)
        self.recipient_role = recipient_role
        self.reschedule = reschedule

    def broadcast(
        self, title: str, body: str, data: Optional[Dict[str, object]] = None
    ) -> FanoutSummary:
        """Send one message per eligible device token, batch by batch."""
        users = self.store.list_active_users(self.recipient_role)
        messages = build_messages(users, title, body, data)
        summary = FanoutSummary()
        if not messages:
            return summary

        for index, batch in enumerate(partition(messages, self.batch_size)):
            summary.batches += 1
            try:
                result = self.transport.send_batch(batch)
            except Exception as e:
                summary.failed += len(batch)
                logger.error(
                    "Push batch failed",
                    batch_index=index,
                    batch_size=len(batch),
                    error=str(e),
                )
                continue
            summary.sent += result.success_count
            summary.failed += result.failure_count

        return summary

    def execute(self, record_id: str) -> DeliveryResult:
        try:
            record = self.store.get_notification(record_id)
        except Exception as e:
            logger.error(
                "Failed to load reminder for delivery",
                record_id=record_id,
                error=str(e),
            )
            return DeliveryResult(
                status=DeliveryStatus.ERROR, record_id=record_id, error=str(e)
            )

        if record is None:
            logger.info("Reminder no longer exists, nothing to deliver", record_id=record_id)
            return DeliveryResult(status=DeliveryStatus.NOT_FOUND, record_id=record_id)

        if not record.is_active:
            logger.info("Reminder is inactive, stopping recurrence", record_id=record_id)
            return DeliveryResult(status=DeliveryStatus.INACTIVE, record_id=record_id)

        try:
            summary = self.broadcast(
                record.title,
                record.body,
                {
                    "type": "scheduledReminder",
                    "notificationId": record.id,
                    "time": record.time_of_day,
                },
            )
        except Exception as e:
            logger.error(
                "Reminder fan-out failed", record_id=record_id, error=str(e)
            )
            summary = FanoutSummary()

        next_fire_at = None
        if self.reschedule:
            outcome = self.scheduler.schedule(record)
            if outcome.status == ScheduleStatus.SCHEDULED:
                next_fire_at = outcome.fire_at

        logger.info(
            f"Sent {summary.sent} push messages for '{record.title}'",
            record_id=record_id,
            failed=summary.failed,
            batches=summary.batches,
            next_fire_at=next_fire_at.isoformat() if next_fire_at else None,
        )

        return DeliveryResult(
            status=DeliveryStatus.SUCCESS,
            record_id=record_id,
            sent=summary.sent,
            failed=summary.failed,
            batches=summary.batches,
            next_fire_at=next_fire_at,
        )
