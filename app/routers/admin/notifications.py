from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Path, Request, status

from app.schemas.notification_schemas import (
    CreateNotificationRequest,
    NotificationMutationResponse,
    UpdateNotificationRequest,
)
from app.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.errors import BusinessLogicError
from app.utils.logging import get_logger
from app.utils.responses import ResponseBuilder

logger = get_logger()

notifications_router = APIRouter()

ActorHeader = Annotated[
    Optional[str],
    Header(alias="X-Actor-ID", description="Admin performing the change, for audit"),
]
NotificationId = Annotated[str, Path(description="Reminder ID")]


def _mutation_response(
    request: Request,
    result: NotificationMutationResponse,
    message: str,
    status_code: int = status.HTTP_200_OK,
):
    # Scheduling problems never fail the mutation; they come back as warnings
    return ResponseBuilder.with_warnings(
        request=request,
        data=result.model_dump(by_alias=True),
        message=message,
        warnings=result.warnings,
        status_code=status_code,
    )


@notifications_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List reminders",
    description="Retrieve all reminders, newest first, with their next fire time.",
)
async def list_notifications(
    request: Request,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        notifications = await notification_service.list_notifications()
        return ResponseBuilder.success(
            request=request,
            data=[n.model_dump(by_alias=True) for n in notifications],
            message=NotificationService.build_list_message(len(notifications)),
        )
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve reminders",
            error_code="NOTIFICATIONS_RETRIEVAL_FAILED",
        )


@notifications_router.post(
    "",
    response_model=None,
    status_code=status.HTTP_201_CREATED,
    summary="Create a reminder",
    description="Create a recurring reminder. Active reminders are broadcast once "
    "immediately (when enabled) and scheduled for their next occurrence.",
)
async def create_notification(
    request: Request,
    notification_data: CreateNotificationRequest,
    actor_id: ActorHeader = None,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        result = await notification_service.create_notification(
            notification_data, actor_id
        )
        return _mutation_response(
            request,
            result,
            "Reminder created successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception as e:
        logger.error(f"Reminder creation failed: {e}")
        raise BusinessLogicError(
            message="Failed to create reminder",
            error_code="NOTIFICATION_CREATION_FAILED",
        )


@notifications_router.get(
    "/{notification_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Get a reminder",
)
async def get_notification(
    request: Request,
    notification_id: NotificationId,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        notification = await notification_service.get_notification(notification_id)
        return ResponseBuilder.success(
            request=request,
            data=notification.model_dump(by_alias=True),
            message="Reminder retrieved successfully",
        )
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve reminder",
            error_code="NOTIFICATION_RETRIEVAL_FAILED",
        )


@notifications_router.put(
    "/{notification_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Update a reminder",
    description="Update a reminder. Its pending delivery is cancelled and, if it is "
    "still active, replaced by one at the new next occurrence.",
)
async def update_notification(
    request: Request,
    notification_id: NotificationId,
    notification_data: UpdateNotificationRequest,
    actor_id: ActorHeader = None,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        result = await notification_service.update_notification(
            notification_id, notification_data, actor_id
        )
        return _mutation_response(request, result, "Reminder updated successfully")
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception as e:
        logger.error(f"Reminder update failed: {e}")
        raise BusinessLogicError(
            message="Failed to update reminder",
            error_code="NOTIFICATION_UPDATE_FAILED",
        )


@notifications_router.delete(
    "/{notification_id}",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Delete a reminder",
    description="Delete a reminder and cancel its pending delivery.",
)
async def delete_notification(
    request: Request,
    notification_id: NotificationId,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        result = await notification_service.delete_notification(notification_id)
        return _mutation_response(request, result, "Reminder deleted successfully")
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception as e:
        logger.error(f"Reminder deletion failed: {e}")
        raise BusinessLogicError(
            message="Failed to delete reminder",
            error_code="NOTIFICATION_DELETION_FAILED",
        )


@notifications_router.post(
    "/{notification_id}/send-now",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Send a reminder immediately",
    description="Broadcast a reminder to all recipients now. The schedule is not changed.",
)
async def send_notification_now(
    request: Request,
    notification_id: NotificationId,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        summary = await notification_service.send_now(notification_id)
        return ResponseBuilder.success(
            request=request,
            data=summary.model_dump(),
            message=f"Reminder sent to {summary.sent} device(s)",
        )
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception as e:
        logger.error(f"Manual reminder send failed: {e}")
        raise BusinessLogicError(
            message="Failed to send reminder", error_code="NOTIFICATION_SEND_FAILED"
        )


@notifications_router.get(
    "/{notification_id}/next-occurrence",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Preview the next fire time",
)
async def get_next_occurrence(
    request: Request,
    notification_id: NotificationId,
    notification_service: NotificationService = Depends(get_notification_service),
):
    try:
        preview = await notification_service.preview_next_occurrence(notification_id)
        next_at = preview["next_occurrence_at"]
        return ResponseBuilder.success(
            request=request,
            data={
                "id": preview["id"],
                "nextOccurrenceAt": next_at.isoformat() if next_at else None,
                "timezone": preview["timezone"],
                "daysLabel": preview["days_label"],
            },
            message=(
                "Next occurrence computed"
                if next_at
                else "Reminder has no upcoming occurrence"
            ),
        )
    except ValueError as e:
        return handle_service_error(request, e)
    except Exception:
        raise BusinessLogicError(
            message="Failed to compute next occurrence",
            error_code="NEXT_OCCURRENCE_FAILED",
        )
