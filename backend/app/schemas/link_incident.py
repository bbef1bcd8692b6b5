"""Incident register schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.enums import IncidentSeverity, IncidentStatus, IncidentType


class IncidentCreate(BaseModel):
    guardian_id: str
    student_id: str
    incident_type: IncidentType
    description: str
    severity: Optional[IncidentSeverity] = None
    data_accessed: bool = False
    link_request_id: Optional[str] = None


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatus


class IncidentResolve(BaseModel):
    resolution_notes: str
    root_cause: Optional[str] = None
    preventive_measures: Optional[str] = None
    parent_notified: Optional[bool] = None


class IncidentRead(BaseModel):
    id: str
    school_id: str
    guardian_id: str
    student_id: str
    link_request_id: Optional[str] = None
    link_id: Optional[str] = None
    incident_type: IncidentType
    severity: IncidentSeverity
    status: IncidentStatus
    description: str
    discovered_at: datetime
    discovered_by: str
    discovered_by_role: str
    data_accessed_during_incident: bool
    link_removed: bool
    parent_notified: bool
    school_admin_notified: bool
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    root_cause: Optional[str] = None
    preventive_measures: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
