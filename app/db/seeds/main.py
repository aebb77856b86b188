"""
Main seeding file that orchestrates all database seeding operations.

Seeded reminders are not scheduled here; run the reschedule task afterwards
to arm their first deliveries.
"""

from app.db.session import SessionLocal
from app.utils.logging import get_logger

from .users_seed import seed_users
from .notifications_seed import seed_notifications

logger = get_logger()


def seed_all_data():
    """
    Sync version: Seed all database tables in dependency order.

    Users first (reminders record the admin that created them), then reminders.
    """

    db_session = SessionLocal()
    try:
        logger.info("Starting database seeding...")
        seed_users(db_session)
        seed_notifications(db_session)
        logger.info("Database seeding completed successfully!")
        return True

    except Exception as e:
        logger.error(f"Database seeding failed: {str(e)}")
        db_session.rollback()
        raise e
    finally:
        db_session.close()
