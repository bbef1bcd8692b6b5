"""Audit trail for guardian-link transitions."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from backend.app.core.errors import NotFound
from backend.app.core.time import utc_now
from backend.app.models.enums import LinkRequestStatus
from backend.app.models.link_audit import GuardianLinkAuditEntry
from backend.app.models.link_request import GuardianLinkRequest
from backend.app.services.actors import Actor


def append_audit_entry(
    db: Session,
    *,
    request: GuardianLinkRequest,
    action: str,
    previous_status: Optional[LinkRequestStatus],
    new_status: Optional[LinkRequestStatus],
    actor: Actor,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    at: Optional[datetime] = None,
) -> GuardianLinkAuditEntry:
    """Stage one ledger entry in the caller's transaction; it commits with the state change."""
    entry = GuardianLinkAuditEntry(
        link_request_id=request.id,
        guardian_id=request.guardian_id,
        student_id=request.student_id,
        school_id=request.school_id,
        action=action,
        previous_status=previous_status,
        new_status=new_status,
        performed_by=actor.id,
        performed_by_role=actor.role.value,
        reason=reason,
        details=dict(metadata or {}),
        created_at=at or utc_now(),
    )
    db.add(entry)
    return entry


def history_for(db: Session, *, school_id: str, link_request_id: str) -> list[GuardianLinkAuditEntry]:
    # Entries carry their own school_id so history survives a purged request row
    entries = (
        db.query(GuardianLinkAuditEntry)
        .filter(
            GuardianLinkAuditEntry.link_request_id == link_request_id,
            GuardianLinkAuditEntry.school_id == school_id,
        )
        .order_by(GuardianLinkAuditEntry.id.desc())
        .all()
    )
    if not entries:
        raise NotFound("Link request not found")
    return entries
