"""Lazy expiry: lapsed confirmation codes and ended temporary terms.

Nothing runs on a timer. Every path that reads or guards a request first
passes it through ``apply_due_expiry`` inside its own transaction, so a
request is never acted on in a state it has already aged out of.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from backend.app.core.time import as_utc
from backend.app.models.enums import LinkRequestStatus
from backend.app.models.link_request import GuardianLinkRequest
from backend.app.services.actors import SYSTEM_ACTOR
from backend.app.services.confirmation import is_confirmation_expired
from backend.app.services.link_audit import append_audit_entry
from backend.app.services.link_tombstones import write_tombstone

logger = logging.getLogger(__name__)

TERM_ENDED_REASON = "Temporary link term ended"


def term_has_ended(record, moment: datetime) -> bool:
    """True when a request or tombstone carries an end date that has passed."""
    expires_at = as_utc(record.expires_at)
    return expires_at is not None and expires_at <= moment


def apply_due_expiry(db: Session, request: GuardianLinkRequest, moment: datetime) -> bool:
    """Stage the expiry or term-end transition if one is due. Returns True when it changed the request."""
    if request.status is LinkRequestStatus.PENDING_CONFIRMATION and is_confirmation_expired(
        request.confirmation_expires_at, moment
    ):
        request.status = LinkRequestStatus.EXPIRED
        request.confirmation_code_hash = None
        append_audit_entry(
            db,
            request=request,
            action="expired",
            previous_status=LinkRequestStatus.PENDING_CONFIRMATION,
            new_status=LinkRequestStatus.EXPIRED,
            actor=SYSTEM_ACTOR,
            metadata={"confirmation_expires_at": as_utc(request.confirmation_expires_at).isoformat()},
            at=moment,
        )
        logger.info("Link request %s expired awaiting confirmation", request.id)
        return True

    if request.status is LinkRequestStatus.ACTIVATED and term_has_ended(request, moment):
        request.status = LinkRequestStatus.REVOKED
        request.revoked_at = moment
        request.revocation_reason = TERM_ENDED_REASON
        tombstone = write_tombstone(db, request=request, actor=SYSTEM_ACTOR, reason=TERM_ENDED_REASON, at=moment)
        db.flush()
        append_audit_entry(
            db,
            request=request,
            action="term_ended",
            previous_status=LinkRequestStatus.ACTIVATED,
            new_status=LinkRequestStatus.REVOKED,
            actor=SYSTEM_ACTOR,
            reason=TERM_ENDED_REASON,
            metadata={"retention_id": tombstone.id, "duration_type": request.duration_type.value},
            at=moment,
        )
        logger.info("Link request %s revoked at end of its %s term", request.id, request.duration_type.value)
        return True
    return False
