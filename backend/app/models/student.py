"""Student record, kept only as far as the membership check needs it."""

from sqlalchemy import Column, String

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime


class Student(Base):
    __tablename__ = "students"

    id = Column(String(64), primary_key=True)
    school_id = Column(String(64), nullable=False, index=True)
    name = Column(String, nullable=False)
    class_name = Column(String, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
