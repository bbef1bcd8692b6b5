"""Incident register for wrong or abused guardian-student links.

Incidents are compliance records: they are created on detection, move through
investigation to resolution, and are never deleted. Resolving one never
touches the audit ledger.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidTransition, NotFound, ValidationError
from backend.app.core.time import utc_now
from backend.app.db.session import transaction
from backend.app.models.enums import IncidentSeverity, IncidentStatus, IncidentType
from backend.app.models.link_incident import GuardianLinkIncident
from backend.app.services.actors import ADMIN_ROLES, STAFF_ROLES, Actor, require_role
from backend.app.services.link_requests import find_request
from backend.app.services.membership import ensure_same_school

logger = logging.getLogger(__name__)

PLATFORM_ESCALATION_SEVERITIES = frozenset({IncidentSeverity.HIGH, IncidentSeverity.CRITICAL})

_STATUS_MOVES = {
    IncidentStatus.OPEN: {IncidentStatus.INVESTIGATING, IncidentStatus.ESCALATED},
    IncidentStatus.INVESTIGATING: {IncidentStatus.ESCALATED},
    IncidentStatus.ESCALATED: {IncidentStatus.INVESTIGATING},
    IncidentStatus.RESOLVED: set(),
}


def suggested_severity(incident_type: Union[IncidentType, str], data_accessed: bool) -> IncidentSeverity:
    incident_type = IncidentType(incident_type)
    if incident_type is IncidentType.UNAUTHORIZED:
        return IncidentSeverity.CRITICAL
    if data_accessed:
        return IncidentSeverity.HIGH
    if incident_type is IncidentType.DUPLICATE:
        return IncidentSeverity.LOW
    return IncidentSeverity.MEDIUM


def record_incident(
    db: Session,
    *,
    school_id: str,
    guardian_id: str,
    student_id: str,
    incident_type: Union[IncidentType, str],
    description: str,
    actor: Actor,
    severity: Optional[Union[IncidentSeverity, str]] = None,
    data_accessed: bool = False,
    link_request_id: Optional[str] = None,
    link_id: Optional[str] = None,
    link_removed: bool = False,
    parent_notified: bool = False,
    at: Optional[datetime] = None,
) -> GuardianLinkIncident:
    """Stage an incident inside the caller's transaction."""
    if not description or not description.strip():
        raise ValidationError("An incident description is required")
    incident_type = IncidentType(incident_type)
    resolved_severity = IncidentSeverity(severity) if severity else suggested_severity(incident_type, data_accessed)
    incident = GuardianLinkIncident(
        school_id=school_id,
        guardian_id=guardian_id,
        student_id=student_id,
        link_request_id=link_request_id,
        link_id=link_id,
        incident_type=incident_type,
        severity=resolved_severity,
        status=IncidentStatus.OPEN,
        description=description.strip(),
        discovered_at=at or utc_now(),
        discovered_by=actor.id,
        discovered_by_role=actor.role.value,
        data_accessed_during_incident=data_accessed,
        link_removed=link_removed,
        parent_notified=parent_notified,
        school_admin_notified=True,
    )
    db.add(incident)
    return incident


def raise_incident(
    db: Session, *, school_id: str, guardian_id: str, student_id: str, actor: Actor, **fields
) -> GuardianLinkIncident:
    require_role(actor, STAFF_ROLES, "report incidents on")
    with transaction(db):
        ensure_same_school(db, school_id, guardian_id, student_id)
        link_request_id = fields.get("link_request_id")
        if link_request_id:
            request = find_request(db, school_id=school_id, request_id=link_request_id)
            if (request.guardian_id, request.student_id) != (guardian_id, student_id):
                raise ValidationError("The link request belongs to a different guardian and student")
        incident = record_incident(
            db, school_id=school_id, guardian_id=guardian_id, student_id=student_id, actor=actor, **fields
        )
    if incident.severity in PLATFORM_ESCALATION_SEVERITIES:
        logger.warning(
            "Link incident %s (%s, %s) raised for school %s",
            incident.id,
            incident.incident_type.value,
            incident.severity.value,
            incident.school_id,
        )
    else:
        logger.info("Link incident %s raised for school %s", incident.id, incident.school_id)
    return incident


def get_incident(db: Session, *, school_id: str, incident_id: str) -> GuardianLinkIncident:
    incident = (
        db.query(GuardianLinkIncident)
        .filter(GuardianLinkIncident.id == incident_id, GuardianLinkIncident.school_id == school_id)
        .first()
    )
    if incident is None:
        raise NotFound("Incident not found")
    return incident


def list_incidents(
    db: Session, *, school_id: str, statuses: Optional[Iterable[Union[IncidentStatus, str]]] = None
) -> list[GuardianLinkIncident]:
    query = db.query(GuardianLinkIncident).filter(GuardianLinkIncident.school_id == school_id)
    wanted = [IncidentStatus(s) for s in statuses or []]
    if wanted:
        query = query.filter(GuardianLinkIncident.status.in_(wanted))
    return query.order_by(GuardianLinkIncident.created_at.desc()).all()


def set_incident_status(
    db: Session, *, school_id: str, incident_id: str, status: Union[IncidentStatus, str], actor: Actor
) -> GuardianLinkIncident:
    require_role(actor, ADMIN_ROLES, "update incidents on")
    target = IncidentStatus(status)
    with transaction(db):
        incident = get_incident(db, school_id=school_id, incident_id=incident_id)
        if target not in _STATUS_MOVES[incident.status]:
            raise InvalidTransition(incident.status, f"move incident to {target.value}")
        incident.status = target
    logger.info("Incident %s moved to %s", incident.id, target.value)
    return incident


def resolve_incident(
    db: Session,
    *,
    school_id: str,
    incident_id: str,
    resolution_notes: str,
    actor: Actor,
    root_cause: Optional[str] = None,
    preventive_measures: Optional[str] = None,
    parent_notified: Optional[bool] = None,
) -> GuardianLinkIncident:
    require_role(actor, ADMIN_ROLES, "resolve incidents on")
    if not resolution_notes or not resolution_notes.strip():
        raise ValidationError("Resolution notes are required")
    with transaction(db):
        incident = get_incident(db, school_id=school_id, incident_id=incident_id)
        if incident.status is IncidentStatus.RESOLVED:
            raise InvalidTransition(incident.status, "resolve")
        incident.status = IncidentStatus.RESOLVED
        incident.resolved_at = utc_now()
        incident.resolved_by = actor.id
        incident.resolution_notes = resolution_notes.strip()
        incident.root_cause = root_cause
        incident.preventive_measures = preventive_measures
        if parent_notified is not None:
            incident.parent_notified = parent_notified
    logger.info("Incident %s resolved by %s", incident.id, actor.id)
    return incident
