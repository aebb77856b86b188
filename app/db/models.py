from typing import List, Optional
from datetime import datetime
import enum
import uuid

from sqlalchemy import (
    String,
    Boolean,
    Text,
    ForeignKey,
    Enum,
    Index,
    UniqueConstraint,
    DateTime,
    JSON,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.utils.datetime_utils import utc_now


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def _naive_utc_now() -> datetime:
    return utc_now().replace(tzinfo=None)


# Enums
class UserRole(enum.Enum):
    ADMIN = "admin"
    USER = "user"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utc_now, onupdate=_naive_utc_now
    )


# Models
class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True)  # RFC 5321 max length
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.USER, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Single-device token kept for clients registered before multi-device support
    fcm_token: Mapped[Optional[str]] = mapped_column(String(4096))
    created_by: Mapped[Optional[str]] = mapped_column(String(36))
    updated_by: Mapped[Optional[str]] = mapped_column(String(36))

    # Relationships
    device_tokens: Mapped[List["UserDeviceToken"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserDeviceToken.created_at",
    )

    # Constraints
    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_role_active", "role", "is_active"),
    )


class UserDeviceToken(Base):
    __tablename__ = "user_device_tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token: Mapped[str] = mapped_column(String(4096), nullable=False)
    platform: Mapped[Optional[str]] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utc_now, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="device_tokens")

    # Constraints
    __table_args__ = (
        UniqueConstraint("user_id", "token", name="uq_user_device_tokens_user_token"),
        Index("idx_user_device_tokens_user_id", "user_id"),
    )


class Notification(Base, AuditMixin):
    """An admin-defined recurring reminder."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    body: Mapped[str] = mapped_column(String(500), nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:mm
    days_of_week: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(36))
    updated_by: Mapped[Optional[str]] = mapped_column(String(36))

    # Constraints
    __table_args__ = (
        Index("idx_notifications_is_active", "is_active"),
    )

    @property
    def rule(self):
        from app.services.notifications.recurrence import RecurrenceRule

        return RecurrenceRule.from_record_fields(self.time_of_day, self.days_of_week)

    @property
    def is_schedulable(self) -> bool:
        """Active, well-formed time and at least one weekday."""
        if not self.is_active:
            return False
        try:
            rule = self.rule
        except ValueError:
            return False
        return bool(rule.weekdays)


class ScheduledTask(Base):
    """A pending single-shot delivery registered with the delayed-execution queue."""

    __tablename__ = "scheduled_tasks"

    id: Mapped[str] = mapped_column(String(155), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    fire_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    callback_url: Mapped[Optional[str]] = mapped_column(String(2048))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=_naive_utc_now, nullable=False
    )

    __table_args__ = (Index("idx_scheduled_tasks_fire_at", "fire_at"),)
