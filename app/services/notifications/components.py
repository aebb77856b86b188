from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.celery import celery
from app.config.settings import settings
from app.db.models import UserRole
from app.db.session import get_sync_session
from app.providers.push_transport import PushTransport, get_push_transport
from app.providers.task_queue import CeleryTaskQueue, TaskQueue
from app.services.notifications.executor import DeliveryExecutor
from app.services.notifications.lifecycle import LifecycleBridge
from app.services.notifications.scheduler import OccurrenceScheduler
from app.services.notifications.store import ReminderStore
from app.utils.datetime_utils import utc_now


class ReminderComponents:
    """The reminder pipeline wired around one database session."""

    def __init__(
        self,
        store: ReminderStore,
        queue: TaskQueue,
        scheduler: OccurrenceScheduler,
        executor: DeliveryExecutor,
        bridge: LifecycleBridge,
        schedule_occurrences: bool = True,
    ):
        self.store = store
        self.queue = queue
        self.scheduler = scheduler
        self.executor = executor
        self.bridge = bridge
        # False in polling mode, where the poller owns the recurrence
        self.schedule_occurrences = schedule_occurrences


def _recipient_role() -> Optional[UserRole]:
    # Empty RECIPIENT_ROLE broadcasts to every active user
    if not settings.RECIPIENT_ROLE:
        return None
    return UserRole(settings.RECIPIENT_ROLE)


def create_reminder_components(
    db_session: Session,
    transport: Optional[PushTransport] = None,
    queue: Optional[TaskQueue] = None,
    clock: Callable[[], datetime] = utc_now,
    scheduler_mode: Optional[str] = None,
) -> ReminderComponents:
    """Build store, queue, scheduler, executor and bridge from settings."""
    schedule_occurrences = (scheduler_mode or settings.SCHEDULER_MODE) == "queue"
    store = ReminderStore(db_session)
    queue = queue or CeleryTaskQueue(db_session, celery)
    scheduler = OccurrenceScheduler(
        queue,
        settings.target_zone,
        callback_url=settings.DELIVERY_CALLBACK_URL,
        auth_token=settings.WEBHOOK_AUTH_TOKEN,
        clock=clock,
    )
    executor = DeliveryExecutor(
        store,
        transport or get_push_transport(),
        scheduler,
        batch_size=settings.PUSH_BATCH_SIZE,
        recipient_role=_recipient_role(),
        reschedule=schedule_occurrences,
    )
    bridge = LifecycleBridge(
        scheduler,
        executor,
        notify_on_create=settings.NOTIFY_ON_CREATE,
        schedule_occurrences=schedule_occurrences,
    )
    return ReminderComponents(
        store, queue, scheduler, executor, bridge, schedule_occurrences
    )


def get_reminder_components(
    db_session: Session = Depends(get_sync_session),
) -> ReminderComponents:
    """Dependency to provide the reminder pipeline for a request"""
    return create_reminder_components(db_session)
