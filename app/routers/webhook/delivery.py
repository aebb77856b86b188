from fastapi import APIRouter, Depends, Request, status
from starlette.concurrency import run_in_threadpool

from app.middlewares.webhook_auth import require_webhook_token
from app.schemas.notification_schemas import (
    DeliverWebhookRequest,
    DeliverWebhookResponse,
)
from app.services.notifications.components import (
    ReminderComponents,
    get_reminder_components,
)
from app.services.notifications.executor import DeliveryStatus
from app.utils.responses import ResponseBuilder

delivery_router = APIRouter(dependencies=[Depends(require_webhook_token)])

_STATUS_MESSAGES = {
    DeliveryStatus.SUCCESS: "Reminder delivered",
    DeliveryStatus.NOT_FOUND: "Reminder no longer exists; nothing delivered",
    DeliveryStatus.INACTIVE: "Reminder is inactive; recurrence stopped",
    DeliveryStatus.ERROR: "Reminder delivery failed",
}


@delivery_router.post(
    "/deliver",
    response_model=None,
    summary="Deliver one scheduled reminder occurrence",
    description="Called by the delayed-execution queue at the scheduled instant. "
    "Sends the reminder to every recipient and arms the next occurrence.",
)
async def deliver_notification(
    request: Request,
    body: DeliverWebhookRequest,
    components: ReminderComponents = Depends(get_reminder_components),
):
    # Fan-out blocks on the push transport
    result = await run_in_threadpool(components.executor.execute, body.record_id)

    data = DeliverWebhookResponse(
        status=result.status.value,
        sent=result.sent,
        failed=result.failed,
        next_occurrence_at=result.next_fire_at,
    ).model_dump(by_alias=True)

    if result.status == DeliveryStatus.ERROR:
        # Non-2xx makes the queue retry the callback
        return ResponseBuilder.error(
            request=request,
            message=result.error or _STATUS_MESSAGES[result.status],
            error_code="DELIVERY_FAILED",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            data=data,
        )

    # not_found and inactive are benign outcomes, acknowledged with 200
    return ResponseBuilder.success(
        request=request, data=data, message=_STATUS_MESSAGES[result.status]
    )
