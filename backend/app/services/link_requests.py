"""Queries over the link request store. Reads only; transitions live in link_transitions."""

from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from backend.app.core.errors import NotFound
from backend.app.models.enums import AWAITING_STATUSES, OPEN_STATUSES, LinkRequestStatus
from backend.app.models.link_request import GuardianLinkRequest


def find_request(db: Session, *, school_id: str, request_id: str) -> GuardianLinkRequest:
    request = (
        db.query(GuardianLinkRequest)
        .filter(GuardianLinkRequest.id == request_id, GuardianLinkRequest.school_id == school_id)
        .first()
    )
    if request is None:
        raise NotFound("Link request not found")
    return request


def open_requests_for_pair(db: Session, guardian_id: str, student_id: str) -> list[GuardianLinkRequest]:
    return (
        db.query(GuardianLinkRequest)
        .filter(
            GuardianLinkRequest.guardian_id == guardian_id,
            GuardianLinkRequest.student_id == student_id,
            GuardianLinkRequest.status.in_(OPEN_STATUSES),
        )
        .all()
    )


def count_awaiting_for_guardian(db: Session, guardian_id: str) -> int:
    return (
        db.query(GuardianLinkRequest)
        .filter(
            GuardianLinkRequest.guardian_id == guardian_id,
            GuardianLinkRequest.status.in_(AWAITING_STATUSES),
        )
        .count()
    )


def query_requests(
    db: Session, *, school_id: str, statuses: Optional[Iterable[Union[LinkRequestStatus, str]]] = None
) -> list[GuardianLinkRequest]:
    query = db.query(GuardianLinkRequest).filter(GuardianLinkRequest.school_id == school_id)
    wanted = [LinkRequestStatus(s) for s in statuses or []]
    if wanted:
        query = query.filter(GuardianLinkRequest.status.in_(wanted))
    return query.order_by(GuardianLinkRequest.created_at.desc()).all()
