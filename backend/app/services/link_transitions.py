"""State transition authority for guardian-student link requests.

    pending_review ──approve──▶ activated
          │       └─approve──▶ pending_confirmation ──confirm──▶ confirmed ──▶ activated
          │                          │        └─(code lapses)──▶ expired
          └──────reject──────────────┴──reject──▶ rejected
    activated ──revoke / unlink / (temporary term ends)──▶ revoked

Every mutating operation is one transaction: read the current row, check the
guard, mutate, append the audit entries, commit. Rejected, expired and revoked
are terminal; a fresh ``initiate`` starts a new request. Expiry is applied
lazily whenever requests are read, so there is no timer inside the service.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import (
    ActionNotPermitted,
    ConfirmationInvalid,
    DuplicatePendingRequest,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from backend.app.core.settings import get_settings
from backend.app.core.time import as_utc, utc_now
from backend.app.db.session import transaction
from backend.app.models.enums import (
    AWAITING_STATUSES,
    AppRole,
    IncidentSeverity,
    IncidentType,
    LinkDuration,
    LinkRequestStatus,
    PermissionTier,
    RelationshipType,
)
from backend.app.models.link_incident import GuardianLinkIncident
from backend.app.models.link_request import GuardianLinkRequest
from backend.app.models.link_retention import GuardianLinkRetention
from backend.app.services.actors import ADMIN_ROLES, STAFF_ROLES, Actor, require_role
from backend.app.services.confirmation import (
    confirmation_expiration,
    generate_confirmation_code,
    hash_confirmation_code,
    requires_confirmation,
    validate_confirmation_code,
)
from backend.app.services.link_audit import append_audit_entry
from backend.app.services.link_expiry import apply_due_expiry, term_has_ended
from backend.app.services.link_incidents import record_incident
from backend.app.services.link_requests import (
    count_awaiting_for_guardian,
    find_request,
    open_requests_for_pair,
    query_requests,
)
from backend.app.services.link_tombstones import write_tombstone
from backend.app.services.membership import ensure_same_school
from backend.app.services.notifications import Notifier, deliver_confirmation, get_notifier
from backend.app.services.permission_tiers import default_tier_for

logger = logging.getLogger(__name__)

S = LinkRequestStatus

ALLOWED_FROM: dict[str, frozenset] = {
    "approve": frozenset({S.PENDING_REVIEW}),
    "confirm": frozenset({S.PENDING_CONFIRMATION}),
    "resend_confirmation": frozenset({S.PENDING_CONFIRMATION}),
    "reject": frozenset({S.PENDING_REVIEW, S.PENDING_CONFIRMATION}),
    "expire": frozenset({S.PENDING_CONFIRMATION}),
    "end_term": frozenset({S.ACTIVATED}),
    "change_permission_tier": frozenset({S.ACTIVATED}),
    "revoke": frozenset({S.ACTIVATED}),
}


@dataclass
class ApprovalResult:
    request: GuardianLinkRequest
    confirmation_code: Optional[str] = None
    notification_delivered: Optional[bool] = None


@dataclass
class RevocationResult:
    request: GuardianLinkRequest
    tombstone: GuardianLinkRetention
    incident: Optional[GuardianLinkIncident] = None


def _guard(request: GuardianLinkRequest, event: str) -> None:
    if request.status not in ALLOWED_FROM[event]:
        raise InvalidTransition(request.status, event)


def _required_text(value: Optional[str], label: str, min_length: int = 1) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"A {label} is required")
    if len(cleaned) < min_length:
        raise ValidationError(f"The {label} must be at least {min_length} characters")
    return cleaned


def _issue_code(request: GuardianLinkRequest, moment: datetime) -> str:
    code = generate_confirmation_code()
    request.confirmation_code_hash = hash_confirmation_code(code)
    request.confirmation_sent_at = moment
    request.confirmation_expires_at = confirmation_expiration(moment)
    if not request.confirmation_method:
        request.confirmation_method = get_settings().default_confirmation_method
    return code


def initiate(
    db: Session,
    *,
    school_id: str,
    guardian_id: str,
    student_id: str,
    relationship_type: Union[RelationshipType, str],
    actor: Actor,
    permission_tier: Optional[Union[PermissionTier, str]] = None,
    duration_type: Union[LinkDuration, str] = LinkDuration.PERMANENT,
    expires_at: Optional[datetime] = None,
    requires_parent_confirmation: bool = False,
    confirmation_method: Optional[str] = None,
    verification_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> GuardianLinkRequest:
    require_role(actor, STAFF_ROLES, "initiate")
    moment = now or utc_now()
    relationship = RelationshipType(relationship_type)
    tier = PermissionTier(permission_tier) if permission_tier else default_tier_for(relationship)
    duration = LinkDuration(duration_type)
    expires_at = as_utc(expires_at)

    if duration.is_temporary:
        if expires_at is None:
            raise ValidationError(f"expires_at is required for a {duration.value} link")
        if expires_at <= moment:
            raise ValidationError("expires_at must be in the future")
    elif expires_at is not None:
        raise ValidationError("A permanent link cannot carry expires_at")

    needs_confirmation = requires_parent_confirmation or requires_confirmation(actor.role, relationship, tier)
    settings = get_settings()

    try:
        with transaction(db):
            ensure_same_school(db, school_id, guardian_id, student_id)
            for existing in open_requests_for_pair(db, guardian_id, student_id):
                apply_due_expiry(db, existing, moment)
                if not existing.status.is_terminal:
                    raise DuplicatePendingRequest(guardian_id, student_id)
            db.flush()
            if count_awaiting_for_guardian(db, guardian_id) >= settings.max_pending_requests_per_guardian:
                raise ValidationError(
                    f"Guardian already has {settings.max_pending_requests_per_guardian} requests awaiting review"
                )

            request = GuardianLinkRequest(
                guardian_id=guardian_id,
                student_id=student_id,
                school_id=school_id,
                relationship_type=relationship,
                permission_tier=tier,
                duration_type=duration,
                expires_at=expires_at,
                status=S.PENDING_REVIEW,
                initiated_by=actor.id,
                initiated_by_role=actor.role.value,
                requires_parent_confirmation=needs_confirmation,
                confirmation_method=confirmation_method or (settings.default_confirmation_method if needs_confirmation else None),
                verification_notes=verification_notes,
                created_at=moment,
                updated_at=moment,
            )
            db.add(request)
            db.flush()
            append_audit_entry(
                db,
                request=request,
                action="initiated",
                previous_status=None,
                new_status=S.PENDING_REVIEW,
                actor=actor,
                metadata={
                    "relationship_type": relationship.value,
                    "permission_tier": tier.value,
                    "duration_type": duration.value,
                    "requires_confirmation": needs_confirmation,
                },
                at=moment,
            )
    except IntegrityError as exc:
        # Another initiate for the same pair committed first
        raise DuplicatePendingRequest(guardian_id, student_id) from exc

    logger.info("Link request %s initiated for guardian %s / student %s", request.id, guardian_id, student_id)
    return request


def approve(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    actor: Actor,
    review_notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    require_role(actor, ADMIN_ROLES, "approve")
    moment = now or utc_now()
    code = None

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        _guard(request, "approve")
        if term_has_ended(request, moment):
            raise ValidationError("The requested link term has already ended")

        previous = request.status
        request.reviewed_by = actor.id
        request.reviewed_at = moment
        request.review_notes = review_notes

        if request.requires_parent_confirmation:
            code = _issue_code(request, moment)
            request.status = S.PENDING_CONFIRMATION
            append_audit_entry(
                db,
                request=request,
                action="approved",
                previous_status=previous,
                new_status=S.PENDING_CONFIRMATION,
                actor=actor,
                reason=review_notes,
                metadata={
                    "confirmation_method": request.confirmation_method,
                    "confirmation_expires_at": request.confirmation_expires_at.isoformat(),
                },
                at=moment,
            )
        else:
            request.status = S.ACTIVATED
            request.activated_at = moment
            append_audit_entry(
                db,
                request=request,
                action="approved",
                previous_status=previous,
                new_status=S.ACTIVATED,
                actor=actor,
                reason=review_notes,
                at=moment,
            )
            append_audit_entry(
                db,
                request=request,
                action="activated",
                previous_status=previous,
                new_status=S.ACTIVATED,
                actor=actor,
                metadata={"permission_tier": request.permission_tier.value},
                at=moment,
            )

    logger.info("Link request %s approved; now %s", request.id, request.status.value)
    result = ApprovalResult(request=request, confirmation_code=code)
    if code is not None:
        result.notification_delivered = deliver_confirmation(
            notifier or get_notifier(), request.id, request.confirmation_method, code, request.confirmation_expires_at
        )
    return result


def resend_confirmation(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    actor: Actor,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> ApprovalResult:
    require_role(actor, ADMIN_ROLES, "resend confirmation for")
    moment = now or utc_now()
    get_request(db, school_id=school_id, request_id=request_id, now=moment)

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        _guard(request, "resend_confirmation")
        code = _issue_code(request, moment)
        append_audit_entry(
            db,
            request=request,
            action="confirmation_resent",
            previous_status=request.status,
            new_status=request.status,
            actor=actor,
            metadata={"confirmation_expires_at": request.confirmation_expires_at.isoformat()},
            at=moment,
        )

    logger.info("Confirmation reissued for link request %s", request.id)
    delivered = deliver_confirmation(
        notifier or get_notifier(), request.id, request.confirmation_method, code, request.confirmation_expires_at
    )
    return ApprovalResult(request=request, confirmation_code=code, notification_delivered=delivered)


def confirm(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    code: str,
    actor: Actor,
    now: Optional[datetime] = None,
) -> GuardianLinkRequest:
    require_role(actor, frozenset({AppRole.GUARDIAN}), "confirm")
    moment = now or utc_now()

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        if actor.guardian_id != request.guardian_id:
            raise ActionNotPermitted(actor.role, "confirm another guardian's")
        if request.status not in ALLOWED_FROM["confirm"]:
            if request.confirmed_at is not None:
                # Code already consumed
                raise ConfirmationInvalid()
            raise InvalidTransition(request.status, "confirm")

        validate_confirmation_code(code, request.confirmation_code_hash, request.confirmation_expires_at, moment)

        request.confirmation_code_hash = None
        request.confirmed_at = moment
        request.status = S.CONFIRMED
        append_audit_entry(
            db,
            request=request,
            action="confirmed",
            previous_status=S.PENDING_CONFIRMATION,
            new_status=S.CONFIRMED,
            actor=actor,
            metadata={"confirmation_method": request.confirmation_method},
            at=moment,
        )
        request.status = S.ACTIVATED
        request.activated_at = moment
        append_audit_entry(
            db,
            request=request,
            action="activated",
            previous_status=S.CONFIRMED,
            new_status=S.ACTIVATED,
            actor=actor,
            metadata={"permission_tier": request.permission_tier.value},
            at=moment,
        )

    logger.info("Link request %s confirmed by guardian and activated", request.id)
    return request


def reject(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    reason: str,
    actor: Actor,
    now: Optional[datetime] = None,
) -> GuardianLinkRequest:
    require_role(actor, ADMIN_ROLES, "reject")
    reason = _required_text(reason, "rejection reason")
    moment = now or utc_now()
    get_request(db, school_id=school_id, request_id=request_id, now=moment)

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        _guard(request, "reject")
        previous = request.status
        request.status = S.REJECTED
        request.rejection_reason = reason
        request.confirmation_code_hash = None
        if request.reviewed_at is None:
            request.reviewed_by = actor.id
            request.reviewed_at = moment
        append_audit_entry(
            db,
            request=request,
            action="rejected",
            previous_status=previous,
            new_status=S.REJECTED,
            actor=actor,
            reason=reason,
            at=moment,
        )

    logger.info("Link request %s rejected from %s", request.id, previous.value)
    return request


def change_permission_tier(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    permission_tier: Union[PermissionTier, str],
    actor: Actor,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> GuardianLinkRequest:
    require_role(actor, ADMIN_ROLES, "change permissions on")
    tier = PermissionTier(permission_tier)
    moment = now or utc_now()
    # An ended term is committed as revoked before the guard sees it
    get_request(db, school_id=school_id, request_id=request_id, now=moment)

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        _guard(request, "change_permission_tier")
        if request.permission_tier is tier:
            raise ValidationError(f"Link already has the {tier.value} tier")
        previous_tier = request.permission_tier
        request.permission_tier = tier
        append_audit_entry(
            db,
            request=request,
            action="permissions_changed",
            previous_status=request.status,
            new_status=request.status,
            actor=actor,
            reason=reason,
            metadata={"from_tier": previous_tier.value, "to_tier": tier.value},
            at=moment,
        )

    logger.info("Link request %s tier changed %s -> %s", request.id, previous_tier.value, tier.value)
    return request


def _take_down(
    db: Session,
    request: GuardianLinkRequest,
    *,
    action: str,
    reason: str,
    actor: Actor,
    moment: datetime,
    metadata: Optional[dict] = None,
) -> GuardianLinkRetention:
    request.status = S.REVOKED
    request.revoked_at = moment
    request.revocation_reason = reason
    tombstone = write_tombstone(db, request=request, actor=actor, reason=reason, at=moment)
    db.flush()
    append_audit_entry(
        db,
        request=request,
        action=action,
        previous_status=S.ACTIVATED,
        new_status=S.REVOKED,
        actor=actor,
        reason=reason,
        metadata={"retention_id": tombstone.id, **(metadata or {})},
        at=moment,
    )
    return tombstone


def revoke(
    db: Session,
    *,
    school_id: str,
    request_id: str,
    reason: str,
    actor: Actor,
    now: Optional[datetime] = None,
) -> RevocationResult:
    require_role(actor, ADMIN_ROLES, "revoke")
    reason = _required_text(reason, "revocation reason")
    moment = now or utc_now()
    get_request(db, school_id=school_id, request_id=request_id, now=moment)

    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        _guard(request, "revoke")
        tombstone = _take_down(db, request, action="revoked", reason=reason, actor=actor, moment=moment)

    logger.info("Link request %s revoked; retention record %s", request.id, tombstone.id)
    return RevocationResult(request=request, tombstone=tombstone)


def unlink(
    db: Session,
    *,
    school_id: str,
    guardian_id: str,
    student_id: str,
    reason: str,
    actor: Actor,
    is_mislink: bool = False,
    now: Optional[datetime] = None,
) -> RevocationResult:
    """One-click removal of the active link for a pair, optionally recording a mislink incident."""
    require_role(actor, ADMIN_ROLES, "unlink")
    reason = _required_text(reason, "unlink reason", get_settings().min_unlink_reason_length)
    moment = now or utc_now()
    incident = None

    with transaction(db):
        for existing in open_requests_for_pair(db, guardian_id, student_id):
            if existing.school_id == school_id:
                apply_due_expiry(db, existing, moment)

    with transaction(db):
        request = (
            db.query(GuardianLinkRequest)
            .filter(
                GuardianLinkRequest.school_id == school_id,
                GuardianLinkRequest.guardian_id == guardian_id,
                GuardianLinkRequest.student_id == student_id,
                GuardianLinkRequest.status == S.ACTIVATED,
            )
            .first()
        )
        if request is None:
            raise NotFound("Link not found")
        if is_mislink:
            incident = record_incident(
                db,
                school_id=school_id,
                guardian_id=guardian_id,
                student_id=student_id,
                incident_type=IncidentType.WRONG_PARENT,
                severity=IncidentSeverity.HIGH,
                description=reason,
                actor=actor,
                link_request_id=request.id,
                link_removed=True,
                at=moment,
            )
            db.flush()
        tombstone = _take_down(
            db,
            request,
            action="unlinked",
            reason=reason,
            actor=actor,
            moment=moment,
            metadata={"is_mislink": is_mislink, "incident_id": incident.id if incident else None},
        )

    if incident is not None:
        logger.warning("Mislink unlinked for guardian %s / student %s; incident %s", guardian_id, student_id, incident.id)
    else:
        logger.info("Guardian %s unlinked from student %s", guardian_id, student_id)
    return RevocationResult(request=request, tombstone=tombstone, incident=incident)


def expire_due_requests(db: Session, *, school_id: str, now: Optional[datetime] = None) -> int:
    """Sweep a school for lapsed confirmation codes and ended temporary terms."""
    moment = now or utc_now()
    with transaction(db):
        candidates = (
            db.query(GuardianLinkRequest)
            .filter(
                GuardianLinkRequest.school_id == school_id,
                GuardianLinkRequest.status.in_([S.PENDING_CONFIRMATION, S.ACTIVATED]),
            )
            .all()
        )
        changed = sum(1 for request in candidates if apply_due_expiry(db, request, moment))
    return changed


def get_request(db: Session, *, school_id: str, request_id: str, now: Optional[datetime] = None) -> GuardianLinkRequest:
    moment = now or utc_now()
    with transaction(db):
        request = find_request(db, school_id=school_id, request_id=request_id)
        apply_due_expiry(db, request, moment)
    return request


def list_requests(
    db: Session,
    *,
    school_id: str,
    statuses: Optional[Iterable[Union[LinkRequestStatus, str]]] = None,
    now: Optional[datetime] = None,
) -> list[GuardianLinkRequest]:
    expire_due_requests(db, school_id=school_id, now=now)
    return query_requests(db, school_id=school_id, statuses=statuses)


def pending_for(db: Session, *, school_id: str, now: Optional[datetime] = None) -> list[GuardianLinkRequest]:
    return list_requests(db, school_id=school_id, statuses=AWAITING_STATUSES, now=now)
