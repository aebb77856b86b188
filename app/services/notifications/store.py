from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.db.models import Notification, User, UserRole


class ReminderStore:
    """Reads and writes reminder records and their recipients."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_notification(self, record_id: str) -> Optional[Notification]:
        return self.db.get(Notification, record_id)

    def list_notifications(self) -> List[Notification]:
        result = self.db.scalars(
            select(Notification).order_by(Notification.created_at.desc())
        )
        return list(result.all())

    def list_active_notifications(self) -> List[Notification]:
        result = self.db.scalars(
            select(Notification).where(Notification.is_active == True)  # noqa: E712
        )
        return list(result.all())

    def list_active_users(self, role: Optional[UserRole] = None) -> List[User]:
        stmt = (
            select(User)
            .options(selectinload(User.device_tokens))
            .where(User.is_active == True)  # noqa: E712
            .order_by(User.created_at, User.id)
        )
        if role is not None:
            stmt = stmt.where(User.role == role)
        return list(self.db.scalars(stmt).all())

    def create_notification(self, values: Dict[str, Any]) -> Notification:
        record = Notification(**values)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update_notification(
        self, record: Notification, values: Dict[str, Any]
    ) -> Notification:
        for field, value in values.items():
            setattr(record, field, value)
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete_notification(self, record: Notification) -> None:
        self.db.delete(record)
        self.db.commit()


def snapshot(record: Notification) -> Dict[str, Any]:
    """Plain copy of a record's fields, detached from the session."""
    return {
        "id": record.id,
        "title": record.title,
        "body": record.body,
        "time_of_day": record.time_of_day,
        "days_of_week": list(record.days_of_week or []),
        "is_active": record.is_active,
        "created_by": record.created_by,
        "updated_by": record.updated_by,
    }


def from_snapshot(values: Dict[str, Any]) -> Notification:
    """Transient record built from a snapshot; never added to a session."""
    return Notification(**values)
