"""Retention tombstones for revoked or unlinked guardian links, and recovery from them."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import AlreadyRelinked, NotFound, RetentionExpired, ValidationError
from backend.app.core.time import as_utc, utc_now
from backend.app.db.session import transaction
from backend.app.models.enums import AppRole, LinkRequestStatus
from backend.app.models.link_request import GuardianLinkRequest
from backend.app.models.link_retention import GuardianLinkRetention
from backend.app.services.actors import ADMIN_ROLES, Actor, require_role
from backend.app.services.link_audit import append_audit_entry
from backend.app.services.link_expiry import apply_due_expiry, term_has_ended
from backend.app.services.link_requests import open_requests_for_pair

logger = logging.getLogger(__name__)

PURGE_ROLES = frozenset({AppRole.PLATFORM_ADMIN, AppRole.SYSTEM})


def get_tombstone(db: Session, *, school_id: str, retention_id: str) -> GuardianLinkRetention:
    tombstone = (
        db.query(GuardianLinkRetention)
        .filter(GuardianLinkRetention.id == retention_id, GuardianLinkRetention.school_id == school_id)
        .first()
    )
    if tombstone is None:
        raise NotFound("Retention record not found")
    return tombstone


def list_retention(db: Session, *, school_id: str, include_recovered: bool = False) -> list[GuardianLinkRetention]:
    query = db.query(GuardianLinkRetention).filter(GuardianLinkRetention.school_id == school_id)
    if not include_recovered:
        query = query.filter(GuardianLinkRetention.recovered_at.is_(None))
    return query.order_by(GuardianLinkRetention.deleted_at.desc()).all()


def recover(
    db: Session,
    *,
    school_id: str,
    retention_id: str,
    reason: str,
    actor: Actor,
    now: Optional[datetime] = None,
) -> GuardianLinkRequest:
    """Re-create an activated link from a tombstone still inside its retention window.

    A temporary link comes back with its original end date, and one whose term
    has already run out cannot be recovered.
    """
    require_role(actor, ADMIN_ROLES, "recover")
    if not reason or not reason.strip():
        raise ValidationError("A recovery reason is required")
    moment = now or utc_now()

    try:
        with transaction(db):
            tombstone = get_tombstone(db, school_id=school_id, retention_id=retention_id)
            if tombstone.recovered_at is not None:
                raise AlreadyRelinked("This link was already recovered")
            if moment >= as_utc(tombstone.retention_until):
                raise RetentionExpired()
            if term_has_ended(tombstone, moment):
                raise ValidationError("The link's temporary term has ended; start a new request instead")
            for existing in open_requests_for_pair(db, tombstone.guardian_id, tombstone.student_id):
                apply_due_expiry(db, existing, moment)
                if not existing.status.is_terminal:
                    raise AlreadyRelinked()
            db.flush()

            successor = GuardianLinkRequest(
                guardian_id=tombstone.guardian_id,
                student_id=tombstone.student_id,
                school_id=tombstone.school_id,
                relationship_type=tombstone.relationship_type,
                permission_tier=tombstone.permission_tier,
                duration_type=tombstone.duration_type,
                expires_at=tombstone.expires_at,
                status=LinkRequestStatus.ACTIVATED,
                initiated_by=actor.id,
                initiated_by_role=actor.role.value,
                requires_parent_confirmation=False,
                reviewed_by=actor.id,
                reviewed_at=moment,
                review_notes=reason.strip(),
                activated_at=moment,
                created_at=moment,
            )
            db.add(successor)
            db.flush()

            tombstone.recovered_at = moment
            tombstone.recovered_by = actor.id
            tombstone.recovery_reason = reason.strip()
            tombstone.recovered_link_request_id = successor.id

            append_audit_entry(
                db,
                request=successor,
                action="recovered",
                previous_status=None,
                new_status=LinkRequestStatus.ACTIVATED,
                actor=actor,
                reason=reason.strip(),
                metadata={"retention_id": tombstone.id, "original_link_request_id": tombstone.link_request_id},
                at=moment,
            )
    except IntegrityError as exc:
        # Lost a race against another recovery or initiate for the same pair
        raise AlreadyRelinked() from exc

    logger.info("Recovered link %s from retention record %s", successor.id, tombstone.id)
    return successor


def purge_expired_tombstones(db: Session, *, actor: Actor, now: Optional[datetime] = None) -> int:
    """Physically delete unrecovered tombstones whose retention window has closed."""
    require_role(actor, PURGE_ROLES, "purge")
    moment = now or utc_now()
    with transaction(db):
        expired = (
            db.query(GuardianLinkRetention)
            .filter(
                GuardianLinkRetention.recovered_at.is_(None),
                GuardianLinkRetention.retention_until <= moment,
            )
            .all()
        )
        for tombstone in expired:
            db.delete(tombstone)
    logger.info("Purged %d expired retention records", len(expired))
    return len(expired)
