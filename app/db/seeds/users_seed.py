from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.db.models import User, UserDeviceToken, UserRole
from app.utils.logging import get_logger

logger = get_logger()


def seed_users(db_session: Session):
    """Sync version: Seed demo admin and app users - clear existing and add new"""

    # Clear existing users; device tokens go with them
    db_session.execute(delete(UserDeviceToken))
    db_session.execute(delete(User))
    db_session.commit()

    db_session.add(
        User(
            name="Habit Admin",
            email="admin@habits.example.com",
            role=UserRole.ADMIN,
            is_active=True,
        )
    )

    users_data = [
        # (name, email, active, legacy token, device tokens)
        (
            "Ayesha Khan",
            "ayesha@habits.example.com",
            True,
            None,
            ["demo-token-ayesha-android", "demo-token-ayesha-ios"],
        ),
        ("Bilal Ahmed", "bilal@habits.example.com", True, "demo-token-bilal-legacy", []),
        ("Sana Malik", "sana@habits.example.com", True, None, ["demo-token-sana-web"]),
        ("Usman Tariq", "usman@habits.example.com", False, "demo-token-usman", []),
        ("Zara Hussain", "zara@habits.example.com", True, None, []),
    ]

    for name, email, active, legacy_token, device_tokens in users_data:
        user = User(
            name=name,
            email=email,
            role=UserRole.USER,
            is_active=active,
            fcm_token=legacy_token,
        )
        for token in device_tokens:
            platform = token.rsplit("-", 1)[-1]
            user.device_tokens.append(UserDeviceToken(token=token, platform=platform))
        db_session.add(user)

    db_session.commit()
    logger.info(f"Seeded 1 admin and {len(users_data)} app users")
