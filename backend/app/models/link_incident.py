"""Incident register for suspected or confirmed mislinks. Never hard-deleted."""

import uuid

from sqlalchemy import Boolean, Column, String, Text

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime, enum_column_type
from backend.app.models.enums import IncidentSeverity, IncidentStatus, IncidentType


class GuardianLinkIncident(Base):
    __tablename__ = "guardian_link_incidents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id = Column(String(64), nullable=False, index=True)
    guardian_id = Column(String(64), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    link_request_id = Column(String(36), nullable=True)
    link_id = Column(String(36), nullable=True)

    incident_type = Column(enum_column_type(IncidentType), nullable=False)
    severity = Column(enum_column_type(IncidentSeverity), nullable=False)
    status = Column(enum_column_type(IncidentStatus), nullable=False, default=IncidentStatus.OPEN)
    description = Column(Text, nullable=False)

    discovered_at = Column(UTCDateTime, nullable=False, default=utc_now)
    discovered_by = Column(String(64), nullable=False)
    discovered_by_role = Column(String(32), nullable=False)

    data_accessed_during_incident = Column(Boolean, nullable=False, default=False)
    link_removed = Column(Boolean, nullable=False, default=False)
    parent_notified = Column(Boolean, nullable=False, default=False)
    school_admin_notified = Column(Boolean, nullable=False, default=False)

    resolved_at = Column(UTCDateTime, nullable=True)
    resolved_by = Column(String(64), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    root_cause = Column(Text, nullable=True)
    preventive_measures = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
