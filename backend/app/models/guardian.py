"""Guardian contact record owned by a school."""

from sqlalchemy import Column, String

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime


class Guardian(Base):
    __tablename__ = "guardians"

    id = Column(String(64), primary_key=True)
    school_id = Column(String(64), nullable=False, index=True)
    display_name = Column(String, nullable=False)
    primary_phone = Column(String(50), nullable=True)
    email = Column(String, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
