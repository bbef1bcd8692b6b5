import logging
import os

from sqlalchemy.orm import Session

from backend.app.core.security import get_password_hash
from backend.app.models.enums import AppRole
from backend.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_USERS = [
    ("platform@example.com", AppRole.PLATFORM_ADMIN, None),
    ("admin@example.com", AppRole.SCHOOL_ADMIN, "school-1"),
]


def ensure_default_dev_admin(db: Session) -> None:
    """
    Create default admin users for local development if they do not exist.
    Skips execution when running under pytest to avoid altering test expectations.
    """
    if os.getenv("PYTEST_CURRENT_TEST"):
        return

    created = False
    for email, role, school_id in DEFAULT_DEV_USERS:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            continue

        user = User(
            email=email,
            hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
            role=role,
            school_id=school_id,
            is_active=True,
        )
        db.add(user)
        created = True

    if created:
        db.commit()
        logger.info("Seeded default development users")
