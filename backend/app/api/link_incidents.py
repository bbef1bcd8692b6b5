"""Incident register endpoints for mislinked or misused guardian links."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_school_actor
from backend.app.models.enums import IncidentStatus
from backend.app.schemas.link_incident import IncidentCreate, IncidentRead, IncidentResolve, IncidentStatusUpdate
from backend.app.services.actors import STAFF_ROLES, Actor, require_role
from backend.app.services.link_incidents import (
    get_incident,
    list_incidents,
    raise_incident,
    resolve_incident,
    set_incident_status,
)

router = APIRouter(prefix="/schools/{school_id}/link-incidents", tags=["link-incidents"])


@router.post("", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
def report_incident(
    school_id: str,
    payload: IncidentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return raise_incident(
        db,
        actor=actor,
        school_id=school_id,
        guardian_id=payload.guardian_id,
        student_id=payload.student_id,
        incident_type=payload.incident_type,
        description=payload.description,
        severity=payload.severity,
        data_accessed=payload.data_accessed,
        link_request_id=payload.link_request_id,
    )


@router.get("", response_model=list[IncidentRead])
def read_incidents(
    school_id: str,
    status_filter: Optional[list[IncidentStatus]] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    require_role(actor, STAFF_ROLES, "list incidents on")
    return list_incidents(db, school_id=school_id, statuses=status_filter)


@router.get("/{incident_id}", response_model=IncidentRead)
def read_incident(
    school_id: str, incident_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_school_actor)
):
    require_role(actor, STAFF_ROLES, "read incidents on")
    return get_incident(db, school_id=school_id, incident_id=incident_id)


@router.post("/{incident_id}/status", response_model=IncidentRead)
def update_incident_status(
    school_id: str,
    incident_id: str,
    payload: IncidentStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return set_incident_status(db, school_id=school_id, incident_id=incident_id, status=payload.status, actor=actor)


@router.post("/{incident_id}/resolve", response_model=IncidentRead)
def close_incident(
    school_id: str,
    incident_id: str,
    payload: IncidentResolve,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return resolve_incident(
        db,
        school_id=school_id,
        incident_id=incident_id,
        resolution_notes=payload.resolution_notes,
        root_cause=payload.root_cause,
        preventive_measures=payload.preventive_measures,
        parent_notified=payload.parent_notified,
        actor=actor,
    )
