from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from app.services.notifications.dedup import DedupGuard
from app.services.notifications.executor import DeliveryExecutor
from app.services.notifications.store import ReminderStore
from app.utils.logging import get_logger

logger = get_logger()


class PollResult(BaseModel):
    checked: int = 0
    fired: List[str] = Field(default_factory=list)
    sent: int = 0
    failed: int = 0


class NotificationPoller:
    """Minute-tick variant: re-evaluates every active reminder against the clock."""

    def __init__(
        self, store: ReminderStore, executor: DeliveryExecutor, guard: DedupGuard
    ):
        self.store = store
        self.executor = executor
        self.guard = guard

    def tick(self, now: datetime) -> PollResult:
        result = PollResult()
        for record in self.store.list_active_notifications():
            result.checked += 1
            if not record.is_schedulable:
                continue

            rule = record.rule
            # Claimed before sending; a concurrent tick gets False here
            if not self.guard.try_mark(record.id, rule, now):
                continue

            try:
                summary = self.executor.broadcast(
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
                    "Polling delivery failed", record_id=record.id, error=str(e)
                )
                continue

            result.fired.append(record.id)
            result.sent += summary.sent
            result.failed += summary.failed
            logger.info(
                f"Sent {summary.sent} push messages for '{record.title}' at {rule.time_label}",
                record_id=record.id,
            )

        return result
