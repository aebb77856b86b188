from fastapi import Request, status

from app.utils.responses import ResponseBuilder


def handle_service_error(request: Request, error: Exception):
    """Centralized service error handler for the reminder routers"""
    error_message = str(error)

    # Extract error code (format: "ERROR_CODE: message")
    if ":" in error_message:
        error_code, details = (part.strip() for part in error_message.split(":", 1))
    else:
        error_code, details = error_message, ""

    error_status_mapping = {
        "NOTIFICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
        "DAYS_OF_WEEK_REQUIRED": status.HTTP_400_BAD_REQUEST,
    }

    error_messages = {
        "NOTIFICATION_NOT_FOUND": "Reminder not found",
        "DAYS_OF_WEEK_REQUIRED": "An active reminder needs at least one day of the week",
    }

    if error_code not in error_status_mapping:
        # Plain ValueErrors (e.g. from rule parsing) are client input problems
        return ResponseBuilder.error(
            request=request,
            message=error_message or "Invalid request",
            error_code="INVALID_REQUEST",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    message = error_messages[error_code]
    if details:
        message = f"{message}: {details}"

    return ResponseBuilder.error(
        request=request,
        message=message,
        error_code=error_code,
        status_code=error_status_mapping[error_code],
    )
