import asyncio
from typing import Optional

from app.celery import celery
from app.config.settings import settings
from app.db.session import get_sync_session
from app.services.notifications.components import create_reminder_components
from app.services.notifications.dedup import DedupGuard
from app.services.notifications.poller import NotificationPoller
from app.utils.datetime_utils import utc_now
from app.utils.context import request_id_scope
from app.utils.logging import get_logger

# One guard per worker process; markers survive between beat ticks
_dedup_guard: Optional[DedupGuard] = None


def get_dedup_guard() -> DedupGuard:
    global _dedup_guard
    if _dedup_guard is None:
        _dedup_guard = DedupGuard(
            settings.target_zone,
            tolerance_seconds=settings.DEDUP_TOLERANCE_SECONDS,
        )
        _dedup_guard.start_midnight_reset()
    return _dedup_guard


@celery.task(bind=True, max_retries=0)
def poll_due_notifications_task(self, request_id: str):
    """
    Minute tick for SCHEDULER_MODE=polling.

    Fires every active reminder whose time of day is within the dedup tolerance
    of now on one of its weekdays. Not retried: a late retry would fall outside
    the window anyway.

    Args:
        request_id: The request ID for tracking purposes (provided by Celery Beat configuration)
    """
    with request_id_scope(request_id):
        return asyncio.run(_async_poll_due_notifications(request_id))


async def _async_poll_due_notifications(request_id: str):
    logger = get_logger().bind(request_id=request_id)

    for db_session in get_sync_session():
        try:
            components = create_reminder_components(db_session)
            poller = NotificationPoller(
                components.store, components.executor, get_dedup_guard()
            )
            result = poller.tick(utc_now())

            if result.fired:
                logger.info(
                    f"Polling tick fired {len(result.fired)} reminders",
                    checked=result.checked,
                    sent=result.sent,
                    failed=result.failed,
                )

            return {
                "success": True,
                "checked": result.checked,
                "fired": result.fired,
                "sent": result.sent,
                "failed": result.failed,
                "request_id": request_id,
            }

        except Exception as e:
            logger.error(f"Reminder polling tick failed: {str(e)}")
            return {
                "success": False,
                "error": str(e),
                "request_id": request_id,
            }
