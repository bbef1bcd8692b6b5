"""Tombstone snapshots staged when an activated link is taken down."""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from backend.app.core.settings import get_settings
from backend.app.models.link_request import GuardianLinkRequest
from backend.app.models.link_retention import GuardianLinkRetention
from backend.app.services.actors import Actor


def write_tombstone(
    db: Session, *, request: GuardianLinkRequest, actor: Actor, reason: str, at: datetime
) -> GuardianLinkRetention:
    """Stage a tombstone in the caller's (revoke, unlink or term end) transaction."""
    tombstone = GuardianLinkRetention(
        link_request_id=request.id,
        guardian_id=request.guardian_id,
        student_id=request.student_id,
        school_id=request.school_id,
        relationship_type=request.relationship_type,
        permission_tier=request.permission_tier,
        duration_type=request.duration_type,
        expires_at=request.expires_at,
        deleted_at=at,
        deleted_by=actor.id,
        deletion_reason=reason,
        retention_until=at + timedelta(days=get_settings().retention_days),
    )
    db.add(tombstone)
    return tombstone
