"""Retention and recovery endpoints for revoked or unlinked guardian links."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_actor, get_school_actor
from backend.app.schemas.guardian_link import LinkRequestRead
from backend.app.schemas.link_retention import PurgeResponse, RecoverRequest, RetentionRead
from backend.app.services.actors import ADMIN_ROLES, Actor, require_role
from backend.app.services.link_retention import list_retention, purge_expired_tombstones, recover

router = APIRouter(prefix="/schools/{school_id}/link-retention", tags=["link-retention"])
admin_router = APIRouter(prefix="/admin/link-retention", tags=["link-retention"])


@router.get("", response_model=list[RetentionRead])
def read_retention(
    school_id: str,
    include_recovered: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    require_role(actor, ADMIN_ROLES, "list retention records on")
    return list_retention(db, school_id=school_id, include_recovered=include_recovered)


@router.post("/{retention_id}/recover", response_model=LinkRequestRead)
def recover_link(
    school_id: str,
    retention_id: str,
    payload: RecoverRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_school_actor),
):
    return recover(db, school_id=school_id, retention_id=retention_id, reason=payload.reason, actor=actor)


@admin_router.post("/purge", response_model=PurgeResponse)
def purge_retention(db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    return PurgeResponse(purged=purge_expired_tombstones(db, actor=actor))
