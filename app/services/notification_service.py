from typing import Any, Dict, List, Optional

from fastapi import Depends
from starlette.concurrency import run_in_threadpool

from app.db.models import Notification
from app.schemas.notification_schemas import (
    CreateNotificationRequest,
    NotificationMutationResponse,
    NotificationResponse,
    UpdateNotificationRequest,
)
from app.services.notifications.components import (
    ReminderComponents,
    get_reminder_components,
)
from app.services.notifications.executor import FanoutSummary
from app.services.notifications.lifecycle import (
    LifecycleOutcome,
    NotificationEvent,
    NotificationEventType,
)
from app.services.notifications.scheduler import ScheduleStatus
from app.services.notifications.store import snapshot
from app.utils.logging import get_logger

logger = get_logger()


class NotificationService:
    """
    Admin operations on reminders. Every mutation is mirrored into the schedule.

    The store and the push transport are blocking, so each operation runs its
    body in the threadpool and the event loop stays free during a fan-out.
    """

    def __init__(self, components: ReminderComponents):
        self.components = components
        self.store = components.store

    async def list_notifications(self) -> List[NotificationResponse]:
        return await run_in_threadpool(self._list_notifications)

    async def get_notification(self, notification_id: str) -> NotificationResponse:
        return await run_in_threadpool(self._get_notification, notification_id)

    async def create_notification(
        self, data: CreateNotificationRequest, actor_id: Optional[str] = None
    ) -> NotificationMutationResponse:
        return await run_in_threadpool(self._create_notification, data, actor_id)

    async def update_notification(
        self,
        notification_id: str,
        data: UpdateNotificationRequest,
        actor_id: Optional[str] = None,
    ) -> NotificationMutationResponse:
        return await run_in_threadpool(
            self._update_notification, notification_id, data, actor_id
        )

    async def delete_notification(
        self, notification_id: str
    ) -> NotificationMutationResponse:
        return await run_in_threadpool(self._delete_notification, notification_id)

    async def send_now(self, notification_id: str) -> FanoutSummary:
        """Broadcast a reminder immediately without touching its schedule."""
        return await run_in_threadpool(self._send_now, notification_id)

    async def preview_next_occurrence(self, notification_id: str) -> Dict[str, Any]:
        return await run_in_threadpool(self._preview_next_occurrence, notification_id)

    def _get_record(self, notification_id: str) -> Notification:
        """Get reminder by ID or raise NOTIFICATION_NOT_FOUND"""
        record = self.store.get_notification(notification_id)
        if record is None:
            raise ValueError("NOTIFICATION_NOT_FOUND")
        return record

    def _list_notifications(self) -> List[NotificationResponse]:
        return [self._to_response(r) for r in self.store.list_notifications()]

    def _get_notification(self, notification_id: str) -> NotificationResponse:
        return self._to_response(self._get_record(notification_id))

    def _create_notification(
        self, data: CreateNotificationRequest, actor_id: Optional[str]
    ) -> NotificationMutationResponse:
        record = self.store.create_notification(
            {
                "title": data.title,
                "body": data.body,
                "time_of_day": data.time,
                "days_of_week": list(data.days_of_week),
                "is_active": data.active,
                "created_by": actor_id,
                "updated_by": actor_id,
            }
        )
        logger.info(f"Created reminder '{record.title}'", record_id=record.id)

        outcome = self.components.bridge.handle(
            NotificationEvent(
                type=NotificationEventType.CREATED,
                record_id=record.id,
                after=snapshot(record),
            )
        )
        return self._to_mutation_response(record, outcome)

    def _update_notification(
        self,
        notification_id: str,
        data: UpdateNotificationRequest,
        actor_id: Optional[str],
    ) -> NotificationMutationResponse:
        record = self._get_record(notification_id)
        before = snapshot(record)

        values: Dict[str, Any] = {}
        if data.title is not None:
            values["title"] = data.title
        if data.body is not None:
            values["body"] = data.body
        if data.time is not None:
            values["time_of_day"] = data.time
        if data.days_of_week is not None:
            values["days_of_week"] = list(data.days_of_week)
        if data.active is not None:
            values["is_active"] = data.active

        is_active = values.get("is_active", record.is_active)
        days = values.get("days_of_week", record.days_of_week)
        if is_active and not days:
            raise ValueError("DAYS_OF_WEEK_REQUIRED")

        values["updated_by"] = actor_id
        record = self.store.update_notification(record, values)
        logger.info(f"Updated reminder '{record.title}'", record_id=record.id)

        outcome = self.components.bridge.handle(
            NotificationEvent(
                type=NotificationEventType.UPDATED,
                record_id=record.id,
                before=before,
                after=snapshot(record),
            )
        )
        return self._to_mutation_response(record, outcome)

    def _delete_notification(self, notification_id: str) -> NotificationMutationResponse:
        record = self._get_record(notification_id)
        before = snapshot(record)
        self.store.delete_notification(record)
        logger.info(f"Deleted reminder '{before['title']}'", record_id=notification_id)

        outcome = self.components.bridge.handle(
            NotificationEvent(
                type=NotificationEventType.DELETED,
                record_id=notification_id,
                before=before,
            )
        )
        return self._to_mutation_response(None, outcome)

    def _send_now(self, notification_id: str) -> FanoutSummary:
        record = self._get_record(notification_id)
        summary = self.components.executor.broadcast(
            record.title,
            record.body,
            {
                "type": "manualReminder",
                "notificationId": record.id,
                "time": record.time_of_day,
            },
        )
        logger.info(
            f"Manually sent '{record.title}' to {summary.sent} device tokens",
            record_id=record.id,
            failed=summary.failed,
        )
        return summary

    def _preview_next_occurrence(self, notification_id: str) -> Dict[str, Any]:
        record = self._get_record(notification_id)
        fire_at = self.components.scheduler.next_fire_at(record)
        return {
            "id": record.id,
            "next_occurrence_at": fire_at,
            "timezone": self.components.scheduler.zone.key,
            "days_label": self._days_label(record),
        }

    def _to_response(self, record: Notification) -> NotificationResponse:
        return NotificationResponse(
            id=record.id,
            title=record.title,
            body=record.body,
            time=record.time_of_day,
            days_of_week=list(record.days_of_week or []),
            days_label=self._days_label(record),
            active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
            created_by=record.created_by,
            updated_by=record.updated_by,
            next_occurrence_at=self.components.scheduler.next_fire_at(record),
        )

    def _to_mutation_response(
        self, record: Optional[Notification], outcome: LifecycleOutcome
    ) -> NotificationMutationResponse:
        scheduled_for = None
        if outcome.schedule and outcome.schedule.status == ScheduleStatus.SCHEDULED:
            scheduled_for = outcome.schedule.fire_at

        return NotificationMutationResponse(
            notification=self._to_response(record) if record is not None else None,
            scheduled_for=scheduled_for,
            cancelled=outcome.cancelled,
            immediate_sent=outcome.immediate.sent if outcome.immediate else None,
            warnings=list(outcome.warnings),
        )

    @staticmethod
    def _days_label(record: Notification) -> str:
        try:
            return record.rule.describe_days()
        except ValueError:
            return ""

    @staticmethod
    def build_list_message(count: int) -> str:
        if count == 0:
            return "No reminders found"
        return f"Retrieved {count} reminder{'s' if count != 1 else ''}"


def get_notification_service(
    components: ReminderComponents = Depends(get_reminder_components),
) -> NotificationService:
    """Dependency to provide NotificationService instance"""
    return NotificationService(components)
