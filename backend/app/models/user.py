"""Actor accounts. A user's id and role are what the link services record as attribution."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime, enum_column_type
from backend.app.models.enums import AppRole


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)
    role = Column(enum_column_type(AppRole), nullable=False, default=AppRole.TEACHER)
    # Null only for platform admins, who are not bound to a tenant
    school_id = Column(String(64), nullable=True, index=True)
    guardian_id = Column(String(64), ForeignKey("guardians.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
