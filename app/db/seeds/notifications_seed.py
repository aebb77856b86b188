from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.models import Notification, ScheduledTask, User, UserRole
from app.utils.logging import get_logger

logger = get_logger()


def seed_notifications(db_session: Session):
    """Sync version: Seed example reminders - clear existing and add new"""

    db_session.execute(delete(ScheduledTask))
    db_session.execute(delete(Notification))
    db_session.commit()

    admin = db_session.execute(
        select(User).where(User.role == UserRole.ADMIN)
    ).scalar_one_or_none()
    admin_id = admin.id if admin else None

    notifications_data = [
        ("Morning check-in", "Log your habits for today", "08:00", [1, 2, 3, 4, 5], True),
        (
            "Evening review",
            "Did you finish today's tasks?",
            "21:30",
            [0, 1, 2, 3, 4, 5, 6],
            True,
        ),
        ("Weekly reflection", "Review your week", "18:00", [0], True),
        ("Hydration", "Drink a glass of water", "15:00", [2, 4], False),
    ]

    for title, body, time_of_day, days, active in notifications_data:
        db_session.add(
            Notification(
                title=title,
                body=body,
                time_of_day=time_of_day,
                days_of_week=days,
                is_active=active,
                created_by=admin_id,
                updated_by=admin_id,
            )
        )

    db_session.commit()
    logger.info(f"Seeded {len(notifications_data)} reminders")
