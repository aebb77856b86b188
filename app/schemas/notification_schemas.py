from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from app.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from app.services.notifications.recurrence import (
    normalize_weekdays,
    parse_time_of_day,
)
from app.utils.datetime_utils import format_hhmm


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


def _clean_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return format_hhmm(parse_time_of_day(value))


def _clean_days(value) -> List[int]:
    if not isinstance(value, (list, tuple, set)):
        raise ValueError("days_of_week must be a list")
    return normalize_weekdays(value)


class CreateNotificationRequest(BaseModel):
    title: str = Field(..., max_length=100, description="Push notification title")
    body: str = Field(..., max_length=500, description="Push notification body")
    time: str = Field(..., description="Time of day in HH:mm, target timezone")
    days_of_week: List[int] = Field(
        ..., description="Weekdays, 0=Sunday..6=Saturday or English day names"
    )
    active: bool = Field(True, description="Whether the reminder fires")

    @field_validator("title", "body")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace and reject blank values"""
        return _clean_text(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        """Normalize H:mm to zero-padded HH:mm"""
        return _clean_time(v)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def validate_days_of_week(cls, v):
        return _clean_days(v)

    @model_validator(mode="after")
    def validate_days_when_active(self):
        if self.active and not self.days_of_week:
            raise ValueError("An active reminder needs at least one day of the week")
        return self


class UpdateNotificationRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=100)
    body: Optional[str] = Field(None, max_length=500)
    time: Optional[str] = Field(None, description="Time of day in HH:mm")
    days_of_week: Optional[List[int]] = None
    active: Optional[bool] = None

    @field_validator("title", "body")
    @classmethod
    def validate_text(cls, v: Optional[str]) -> Optional[str]:
        """Strip whitespace and reject blank values"""
        return _clean_text(v)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        """Normalize H:mm to zero-padded HH:mm"""
        return _clean_time(v)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def validate_days_of_week(cls, v):
        if v is None:
            return None
        return _clean_days(v)


class NotificationResponse(BaseModel):
    id: str = Field(..., description="Reminder ID")
    title: str
    body: str
    time: str = Field(..., description="Time of day in HH:mm")
    days_of_week: List[int]
    days_label: str = Field(..., description="Human readable days, e.g. 'Mon, Wed'")
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    next_occurrence_at: Optional[datetime] = Field(
        None, description="Next fire instant in UTC, if any"
    )


class NotificationMutationResponse(BaseModel):
    notification: Optional[NotificationResponse] = None
    scheduled_for: Optional[datetime] = None
    cancelled: int = 0
    immediate_sent: Optional[int] = None
    warnings: List[str] = Field(default_factory=list)


class DeliverWebhookRequest(BaseModel):
    record_id: str = Field(..., min_length=1, description="Reminder ID to deliver")


class DeliverWebhookResponse(BaseModel):
    status: str
    sent: int = 0
    failed: int = 0
    next_occurrence_at: Optional[datetime] = None
