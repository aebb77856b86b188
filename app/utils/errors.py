import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging import get_logger
from .responses import ResponseBuilder

logger = get_logger()


class ReminderServiceError(Exception):
    """
    Base for errors the API turns into an error envelope.

    Subclasses pick the HTTP status and the ``meta.error_type`` label; the
    ``error_code`` travels in ``meta.error_code`` unless ``public_code`` pins it.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "SERVICE_ERROR"
    public_code = None

    def __init__(self, message: str, error_code: str = "SERVICE_ERROR"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class BusinessLogicError(ReminderServiceError):
    """A request that was understood but could not be carried out."""

    error_type = "BUSINESS_ERROR"

    def __init__(self, message: str, error_code: str = "BLOC_ERROR"):
        super().__init__(message, error_code)


class AuthenticationError(ReminderServiceError):
    """Missing or wrong credentials on the delivery webhook."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "AUTHENTICATION_ERROR"
    # The specific reason is logged, callers only see UNAUTHORIZED
    public_code = "UNAUTHORIZED"

    def __init__(
        self, message: str = "Authentication failed", error_code: str = "AUTH_ERROR"
    ):
        super().__init__(message, error_code)


class ConfigurationError(ReminderServiceError):
    """Raised when a required external resource is not configured."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "CONFIGURATION_ERROR"

    def __init__(self, message: str, error_code: str = "CONFIG_ERROR"):
        super().__init__(message, error_code)


class PushTransportError(ReminderServiceError):
    """Raised when the push transport rejects a whole batch."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "PUSH_TRANSPORT_ERROR"

    def __init__(self, message: str, error_code: str = "PUSH_ERROR"):
        super().__init__(message, error_code)


class TaskQueueError(ReminderServiceError):
    """Raised when the delayed-execution queue cannot be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "TASK_QUEUE_ERROR"

    def __init__(self, message: str, error_code: str = "QUEUE_ERROR"):
        super().__init__(message, error_code)


def _format_validation_errors(errors) -> list:
    return [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
            "input": error.get("input"),
        }
        for error in errors
    ]


def setup_error_handlers(app: FastAPI):
    """Map exceptions to the standard error envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc.detail),
            error_code="HTTP_ERROR",
            status_code=exc.status_code,
            meta={"http_status": exc.status_code},
        )

    # RequestValidationError is a sub-class of Pydantic's ValidationError
    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Request Validation Error: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Request validation failed",
            errors=_format_validation_errors(exc.errors()),
            error_code="VALIDATION_ERROR",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(
        request: Request, exc: ValidationError
    ):
        logger.error(f"Pydantic Validation Error: {exc.errors()}")
        return ResponseBuilder.error(
            request=request,
            message="Data validation failed",
            error_code="INTERNAL_VALIDATION_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy Error: {str(exc)}")

        # Don't expose internal database errors to callers
        return ResponseBuilder.error(
            request=request,
            message="A database error occurred",
            error_code="DATABASE_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "SQLALCHEMY_ERROR"},
        )

    @app.exception_handler(ReminderServiceError)
    async def reminder_service_exception_handler(
        request: Request, exc: ReminderServiceError
    ):
        logger.error(
            f"{type(exc).__name__}: {exc.message}",
            error_code=exc.error_code,
            path=str(request.url.path),
        )
        return ResponseBuilder.error(
            request=request,
            message=exc.message,
            error_code=exc.public_code or exc.error_code,
            status_code=exc.status_code,
            meta={"error_type": exc.error_type},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"Value Error: {str(exc)}")
        return ResponseBuilder.error(
            request=request,
            message=str(exc),
            error_code="VALUE_ERROR",
            status_code=status.HTTP_400_BAD_REQUEST,
            meta={"error_type": "VALUE_ERROR"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other unhandled exceptions"""
        logger.error(f"Unhandled Exception: {str(exc)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        return ResponseBuilder.error(
            request=request,
            message="An internal server error occurred",
            error_code="INTERNAL_ERROR",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            meta={"error_type": "INTERNAL_ERROR"},
        )
