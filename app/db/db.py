import sys

from sqlalchemy.engine import Engine

from .models import Base
from .seeds.main import seed_all_data
from .session import engine

from app.utils.logging import get_logger

logger = get_logger()


def create_tables(bind: Engine = engine):
    Base.metadata.create_all(bind)
    logger.info("Created all tables.")


def drop_tables(bind: Engine = engine):
    Base.metadata.drop_all(bind)
    logger.info("Dropped all tables.")


def seed_db():
    """Seed the database with demo users and reminders"""
    seed_all_data()


def reset_db():
    logger.info("Resetting database...")
    drop_tables()
    create_tables()
    seed_db()
    logger.info(
        "Database reset complete. Run reschedule_all_notifications_task to arm seeded reminders."
    )


if __name__ == "__main__":
    # python -m app.db.db [create|reset]
    command = sys.argv[1] if len(sys.argv) > 1 else "reset"
    if command == "create":
        create_tables()
    else:
        reset_db()
