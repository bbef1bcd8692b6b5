"""Guardian-link approval endpoints, scoped to a school."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_school_actor
from backend.app.models.enums import LinkRequestStatus
from backend.app.schemas.guardian_link import (
    ApprovalResponse,
    ApproveRequest,
    AuditEntryRead,
    CapabilitiesRead,
    ConfirmRequest,
    ExpirySweepResponse,
    LinkRequestCreate,
    LinkRequestRead,
    PermissionTierUpdate,
    ReasonRequest,
    RelinkWarningsRead,
    RevocationResponse,
    UnlinkRequest,
)
from backend.app.services import link_transitions
from backend.app.services.actors import STAFF_ROLES, Actor, require_guardian_scope, require_role
from backend.app.services.link_audit import history_for
from backend.app.services.link_transitions import RevocationResult
from backend.app.services.notifications import Notifier, get_notifier
from backend.app.services.permission_tiers import NO_CAPABILITIES, capabilities_for, resolve_active_link
from backend.app.services.relink_checks import relink_warnings

router = APIRouter(prefix="/schools/{school_id}/guardian-links", tags=["guardian-links"])


def _revocation_response(result: RevocationResult) -> RevocationResponse:
    return RevocationResponse(
        request=LinkRequestRead.model_validate(result.request),
        retention_id=result.tombstone.id,
        retention_until=result.tombstone.retention_until,
        incident_id=result.incident.id if result.incident else None,
    )


@router.post("", response_model=LinkRequestRead, status_code=status.HTTP_201_CREATED)
def initiate_link(
    school_id: str,
    payload: LinkRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return link_transitions.initiate(
        db,
        school_id=school_id,
        guardian_id=payload.guardian_id,
        student_id=payload.student_id,
        relationship_type=payload.relationship_type,
        permission_tier=payload.permission_tier,
        duration_type=payload.duration_type,
        expires_at=payload.expires_at,
        requires_parent_confirmation=payload.requires_confirmation,
        confirmation_method=payload.confirmation_method,
        verification_notes=payload.verification_notes,
        actor=actor,
    )


@router.get("", response_model=list[LinkRequestRead])
def list_links(
    school_id: str,
    status_filter: Optional[list[LinkRequestStatus]] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    require_role(actor, STAFF_ROLES, "list")
    return link_transitions.list_requests(db, school_id=school_id, statuses=status_filter)


@router.get("/pending", response_model=list[LinkRequestRead])
def list_pending_links(school_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_school_actor)):
    require_role(actor, STAFF_ROLES, "list")
    return link_transitions.pending_for(db, school_id=school_id)


@router.get("/relink-warnings", response_model=RelinkWarningsRead)
def get_relink_warnings(
    school_id: str,
    guardian_id: str,
    student_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    require_role(actor, STAFF_ROLES, "inspect")
    return relink_warnings(db, school_id=school_id, guardian_id=guardian_id, student_id=student_id)


@router.get("/capabilities", response_model=CapabilitiesRead)
def get_capabilities(
    school_id: str,
    guardian_id: str,
    student_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    require_guardian_scope(actor, guardian_id, "read capabilities of")
    link = resolve_active_link(db, guardian_id, student_id)
    if link is None or link.school_id != school_id:
        return CapabilitiesRead(
            guardian_id=guardian_id, student_id=student_id, capabilities=NO_CAPABILITIES.as_dict()
        )
    return CapabilitiesRead(
        guardian_id=guardian_id,
        student_id=student_id,
        permission_tier=link.permission_tier,
        capabilities=capabilities_for(link.permission_tier).as_dict(),
    )


@router.post("/unlink", response_model=RevocationResponse)
def unlink_guardian(
    school_id: str,
    payload: UnlinkRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    result = link_transitions.unlink(
        db,
        school_id=school_id,
        guardian_id=payload.guardian_id,
        student_id=payload.student_id,
        reason=payload.reason,
        is_mislink=payload.is_mislink,
        actor=actor,
    )
    return _revocation_response(result)


@router.post("/expire-due", response_model=ExpirySweepResponse)
def expire_due(school_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_school_actor)):
    require_role(actor, STAFF_ROLES, "sweep")
    return ExpirySweepResponse(expired=link_transitions.expire_due_requests(db, school_id=school_id))


@router.get("/{request_id}", response_model=LinkRequestRead)
def get_link(school_id: str, request_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_school_actor)):
    request = link_transitions.get_request(db, school_id=school_id, request_id=request_id)
    require_guardian_scope(actor, request.guardian_id, "read")
    return request


@router.get("/{request_id}/history", response_model=list[AuditEntryRead])
def get_link_history(
    school_id: str, request_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_school_actor)
):
    require_role(actor, STAFF_ROLES, "read history of")
    return history_for(db, school_id=school_id, link_request_id=request_id)


@router.post("/{request_id}/approve", response_model=ApprovalResponse)
def approve_link(
    school_id: str,
    request_id: str,
    payload: ApproveRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
    notifier: Notifier = Depends(get_notifier),
):
    result = link_transitions.approve(
        db,
        school_id=school_id,
        request_id=request_id,
        review_notes=payload.review_notes,
        actor=actor,
        notifier=notifier,
    )
    return ApprovalResponse(
        request=LinkRequestRead.model_validate(result.request),
        confirmation_sent=result.confirmation_code is not None,
        notification_delivered=result.notification_delivered,
    )


@router.post("/{request_id}/resend-confirmation", response_model=ApprovalResponse)
def resend_link_confirmation(
    school_id: str,
    request_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
    notifier: Notifier = Depends(get_notifier),
):
    result = link_transitions.resend_confirmation(
        db, school_id=school_id, request_id=request_id, actor=actor, notifier=notifier
    )
    return ApprovalResponse(
        request=LinkRequestRead.model_validate(result.request),
        confirmation_sent=True,
        notification_delivered=result.notification_delivered,
    )


@router.post("/{request_id}/confirm", response_model=LinkRequestRead)
def confirm_link(
    school_id: str,
    request_id: str,
    payload: ConfirmRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return link_transitions.confirm(db, school_id=school_id, request_id=request_id, code=payload.code, actor=actor)


@router.post("/{request_id}/reject", response_model=LinkRequestRead)
def reject_link(
    school_id: str,
    request_id: str,
    payload: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return link_transitions.reject(db, school_id=school_id, request_id=request_id, reason=payload.reason, actor=actor)


@router.post("/{request_id}/revoke", response_model=RevocationResponse)
def revoke_link(
    school_id: str,
    request_id: str,
    payload: ReasonRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    result = link_transitions.revoke(db, school_id=school_id, request_id=request_id, reason=payload.reason, actor=actor)
    return _revocation_response(result)


@router.post("/{request_id}/permissions", response_model=LinkRequestRead)
def change_link_permissions(
    school_id: str,
    request_id: str,
    payload: PermissionTierUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return link_transitions.change_permission_tier(
        db,
        school_id=school_id,
        request_id=request_id,
        permission_tier=payload.permission_tier,
        reason=payload.reason,
        actor=actor,
    )
