import asyncio
from typing import Any, Dict, Optional

import httpx

from app.celery import celery
from app.db.session import get_sync_session
from app.providers.task_queue import CeleryTaskQueue
from app.services.notifications.components import create_reminder_components
from app.services.notifications.executor import DeliveryStatus
from app.services.notifications.scheduler import RECORD_ID_KEY
from app.utils.context import request_id_scope
from app.utils.logging import get_logger

CALLBACK_TIMEOUT_SECONDS = 60.0


class RetryableDeliveryError(Exception):
    """A delivery attempt failed in a way worth retrying."""


@celery.task(bind=True, max_retries=3, default_retry_delay=30)
def deliver_notification_task(
    self,
    request_id: str,
    payload: Dict[str, str],
    callback_url: Optional[str] = None,
    auth_token: Optional[str] = None,
):
    """
    Celery ETA task that fires one scheduled reminder occurrence.

    With a callback URL the occurrence is handed to the delivery webhook,
    otherwise it is executed in the worker. Either way the next occurrence is
    armed by the executor.

    Args:
        request_id: Tracking ID, ``scheduled-<task id>`` for queue-created tasks
        payload: Queue payload, ``{"recordId": ...}``
        callback_url: Delivery webhook URL, or None to run in-process
        auth_token: Bearer token presented to the webhook
    """
    try:
        with request_id_scope(request_id):
            return asyncio.run(
                _async_deliver_notification(
                    task_id=self.request.id,
                    request_id=request_id,
                    payload=payload,
                    callback_url=callback_url,
                    auth_token=auth_token,
                )
            )
    except RetryableDeliveryError as e:
        if self.request.retries < self.max_retries:
            # Cap retry delay at 5 minutes
            retry_delay = min(2**self.request.retries * 30, 300)
            raise self.retry(exc=e, countdown=retry_delay)

        get_logger().bind(request_id=request_id).error(
            f"Giving up on reminder delivery after {self.request.retries} retries: {e}"
        )
        return {
            "success": False,
            "error": str(e),
            "payload": payload,
            "request_id": request_id,
        }


async def _async_deliver_notification(
    task_id: Optional[str],
    request_id: str,
    payload: Dict[str, str],
    callback_url: Optional[str],
    auth_token: Optional[str],
) -> Dict[str, Any]:
    logger = get_logger().bind(request_id=request_id)
    record_id = (payload or {}).get(RECORD_ID_KEY)

    if not record_id:
        logger.error(f"Delivery task payload has no {RECORD_ID_KEY}", payload=payload)
        return {
            "success": False,
            "error": f"Missing {RECORD_ID_KEY} in payload",
            "request_id": request_id,
        }

    for db_session in get_sync_session():
        queue = CeleryTaskQueue(db_session, celery)

        # A revoked ETA task can still be delivered to a worker
        if task_id and not queue.has_task(task_id):
            logger.info(
                "Delivery task was cancelled, skipping", record_id=record_id, task_id=task_id
            )
            return {
                "success": True,
                "skipped": True,
                "record_id": record_id,
                "request_id": request_id,
            }

        if callback_url:
            result = await _post_to_callback(
                callback_url, record_id, auth_token, request_id, logger
            )
        else:
            result = _execute_in_process(db_session, record_id, logger)

        if task_id:
            queue.complete_task(task_id)

        result["request_id"] = request_id
        return result


async def _post_to_callback(
    callback_url: str,
    record_id: str,
    auth_token: Optional[str],
    request_id: str,
    logger,
) -> Dict[str, Any]:
    headers = {"X-Request-ID": request_id}
    if auth_token:
        headers["Authorization"] = f"Bearer {auth_token}"

    async with httpx.AsyncClient() as client:
        try:
            response = await client.post(
                callback_url,
                json={RECORD_ID_KEY: record_id},
                headers=headers,
                timeout=CALLBACK_TIMEOUT_SECONDS,
            )
        except httpx.RequestError as e:
            logger.error(
                "Delivery webhook unreachable",
                url=str(e.request.url),
                record_id=record_id,
                error=str(e),
            )
            raise RetryableDeliveryError(f"Webhook request failed: {e}") from e

    if response.status_code >= 500:
        logger.error(
            f"Delivery webhook answered {response.status_code}", record_id=record_id
        )
        raise RetryableDeliveryError(f"Webhook returned {response.status_code}")

    if response.status_code >= 400:
        # Auth or payload problems do not heal on retry
        logger.error(
            f"Delivery webhook rejected the call with {response.status_code}",
            record_id=record_id,
            body=response.text[:500],
        )
        return {
            "success": False,
            "error": f"Webhook returned {response.status_code}",
            "record_id": record_id,
        }

    data = response.json().get("data") or {}
    logger.info(
        "Delivery webhook completed",
        record_id=record_id,
        status=data.get("status"),
        sent=data.get("sent"),
    )
    return {
        "success": True,
        "record_id": record_id,
        "status": data.get("status"),
        "sent": data.get("sent", 0),
        "failed": data.get("failed", 0),
    }


def _execute_in_process(db_session, record_id: str, logger) -> Dict[str, Any]:
    components = create_reminder_components(db_session)
    result = components.executor.execute(record_id)

    if result.status == DeliveryStatus.ERROR:
        raise RetryableDeliveryError(result.error or "Reminder delivery failed")

    logger.info(
        f"Reminder delivery finished with status {result.status.value}",
        record_id=record_id,
        sent=result.sent,
        failed=result.failed,
    )
    return {
        "success": True,
        "record_id": record_id,
        "status": result.status.value,
        "sent": result.sent,
        "failed": result.failed,
        "next_fire_at": result.next_fire_at.isoformat() if result.next_fire_at else None,
    }
