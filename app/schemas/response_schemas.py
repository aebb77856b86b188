from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class ResponseStatus(str, Enum):
    """Response status enumeration"""

    SUCCESS = "success"
    ERROR = "error"
    # Mutation saved but a scheduling side effect failed
    WARNING = "warning"


class ErrorDetail(BaseModel):
    """One field-level validation problem"""

    field: str = Field(..., description="Dotted path to the offending field")
    message: str
    type: str
    input: Optional[Any] = None


class ApiResponse(BaseModel):
    """
    Envelope returned by every endpoint.

    Top-level keys stay snake_case (dumped without aliases); the ``data``
    payload is already camelCase when it comes from a CamelCaseBaseModel.
    """

    success: bool = Field(..., description="Whether the request was successful")
    status: ResponseStatus = Field(..., description="Response status")
    message: str = Field(..., description="Human-readable message")
    data: Optional[Any] = Field(default=None, description="Response data")
    meta: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional metadata, including error_code"
    )
    errors: Optional[List[ErrorDetail]] = Field(
        default=None, description="Validation error details"
    )
    warnings: Optional[List[str]] = Field(
        default=None, description="Scheduling warnings attached to a saved change"
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        description="Response timestamp (UTC)",
    )
    request_id: Optional[str] = Field(
        default=None, description="X-Request-ID of the request"
    )
    path: Optional[str] = Field(default=None, description="Request path")
    version: str = Field(default="1.0", description="Service version")
