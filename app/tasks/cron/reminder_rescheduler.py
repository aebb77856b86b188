import asyncio
from typing import Dict

from app.celery import celery
from app.db.session import get_sync_session
from app.services.notifications.components import (
    ReminderComponents,
    create_reminder_components,
)
from app.services.notifications.scheduler import RECORD_ID_KEY, ScheduleStatus
from app.utils.context import request_id_scope
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=3, default_retry_delay=60)
def reschedule_all_notifications_task(self, request_id: str):
    """
    Re-arm every active reminder and drop pending tasks that lost their reminder.

    Runs daily from beat and can be triggered by hand after a deployment or a
    broker flush. Scheduling is idempotent, so a reminder that already has a
    pending task ends up with exactly one. In polling mode nothing is re-armed
    and every pending task left over from the queue mode is cancelled.

    Args:
        request_id: The request ID for tracking purposes (provided by Celery Beat configuration)
    """
    with request_id_scope(request_id):
        return asyncio.run(_async_reschedule_all_notifications(request_id))


async def _async_reschedule_all_notifications(request_id: str):
    logger = get_logger().bind(request_id=request_id)

    for db_session in get_sync_session():
        try:
            components = create_reminder_components(db_session)
            counts = (
                reschedule_all(components)
                if components.schedule_occurrences
                else {}
            )
            orphaned = cancel_orphaned_tasks(components)

            logger.info(
                "Reminder reschedule completed",
                orphaned_cancelled=orphaned,
                **counts,
            )
            return {
                "success": True,
                "orphaned_cancelled": orphaned,
                "request_id": request_id,
                **counts,
            }

        except Exception as e:
            logger.error(f"Reminder reschedule failed: {str(e)}")
            return {
                "success": False,
                "error": str(e),
                "request_id": request_id,
            }


def reschedule_all(components: ReminderComponents) -> Dict[str, int]:
    counts = {status.value: 0 for status in ScheduleStatus}
    for record in components.store.list_active_notifications():
        outcome = components.scheduler.schedule(record)
        counts[outcome.status.value] += 1
    return counts


def cancel_orphaned_tasks(components: ReminderComponents) -> int:
    """
    Cancel pending tasks whose reminder is gone, inactive or unschedulable.

    In polling mode no task should exist at all, so every one is cancelled.
    """
    live_ids = set()
    if components.schedule_occurrences:
        live_ids = {
            record.id
            for record in components.store.list_active_notifications()
            if record.is_schedulable
        }

    cancelled = 0
    for handle in components.queue.list_tasks():
        if handle.payload.get(RECORD_ID_KEY) in live_ids:
            continue
        try:
            components.queue.delete_task(handle)
        except Exception as e:
            get_logger().warning(
                "Failed to cancel orphaned reminder task", task_id=handle.id, error=str(e)
            )
            continue
        cancelled += 1
    return cancelled
