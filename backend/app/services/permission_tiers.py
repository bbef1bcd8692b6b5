"""Permission tier model: what a linked guardian may see for a student.

The capability table is fixed and strictly additive:
full_access ⊇ view_notifications ⊇ view_only. Consumers asking "may guardian G
see category C for student S" resolve the pair's active link first and map its
tier through ``capabilities_for``.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.orm import Session

from backend.app.core.time import as_utc, utc_now
from backend.app.models.enums import LinkRequestStatus, PermissionTier, RelationshipType
from backend.app.models.link_request import GuardianLinkRequest


@dataclass(frozen=True)
class Capabilities:
    can_view_attendance: bool = False
    can_view_learning_updates: bool = False
    can_view_approved_insights: bool = False
    can_receive_notifications: bool = False
    can_view_fees: bool = False
    can_view_reports: bool = False
    can_view_timetables: bool = False
    can_request_meetings: bool = False

    def as_dict(self) -> dict:
        return asdict(self)

    def granted(self) -> set[str]:
        return {name for name, allowed in asdict(self).items() if allowed}


CAPABILITY_NAMES = tuple(f.name for f in fields(Capabilities))

NO_CAPABILITIES = Capabilities()

_VIEW_ONLY = Capabilities(
    can_view_attendance=True,
    can_view_learning_updates=True,
    can_view_approved_insights=True,
)

_TIER_CAPABILITIES: dict[PermissionTier, Capabilities] = {
    PermissionTier.VIEW_ONLY: _VIEW_ONLY,
    PermissionTier.VIEW_NOTIFICATIONS: Capabilities(**{**_VIEW_ONLY.as_dict(), "can_receive_notifications": True}),
    PermissionTier.FULL_ACCESS: Capabilities(**{name: True for name in CAPABILITY_NAMES}),
}

_DEFAULT_TIER: dict[RelationshipType, PermissionTier] = {
    RelationshipType.PRIMARY_GUARDIAN: PermissionTier.VIEW_NOTIFICATIONS,
    RelationshipType.SECONDARY_GUARDIAN: PermissionTier.VIEW_NOTIFICATIONS,
    RelationshipType.INFORMATIONAL_CONTACT: PermissionTier.VIEW_ONLY,
}

TIER_ORDER = (PermissionTier.VIEW_ONLY, PermissionTier.VIEW_NOTIFICATIONS, PermissionTier.FULL_ACCESS)


def capabilities_for(tier: Union[PermissionTier, str]) -> Capabilities:
    return _TIER_CAPABILITIES[PermissionTier(tier)]


def tier_allows(tier: Union[PermissionTier, str], capability: str) -> bool:
    if capability not in CAPABILITY_NAMES:
        raise KeyError(f"Unknown capability: {capability}")
    return getattr(capabilities_for(tier), capability)


def tier_rank(tier: Union[PermissionTier, str]) -> int:
    return TIER_ORDER.index(PermissionTier(tier))


def default_tier_for(relationship_type: Union[RelationshipType, str]) -> PermissionTier:
    return _DEFAULT_TIER[RelationshipType(relationship_type)]


def is_link_active(link: GuardianLinkRequest, now: Optional[datetime] = None) -> bool:
    if link.status != LinkRequestStatus.ACTIVATED or link.revoked_at is not None:
        return False
    check_time = now or utc_now()
    expires_at = as_utc(link.expires_at)
    return expires_at is None or expires_at > check_time


def resolve_active_link(
    db: Session, guardian_id: str, student_id: str, now: Optional[datetime] = None
) -> Optional[GuardianLinkRequest]:
    link = (
        db.query(GuardianLinkRequest)
        .filter(
            GuardianLinkRequest.guardian_id == guardian_id,
            GuardianLinkRequest.student_id == student_id,
            GuardianLinkRequest.status == LinkRequestStatus.ACTIVATED,
        )
        .first()
    )
    if link is None or not is_link_active(link, now):
        return None
    return link


def guardian_capabilities(
    db: Session, guardian_id: str, student_id: str, now: Optional[datetime] = None
) -> Capabilities:
    link = resolve_active_link(db, guardian_id, student_id, now)
    if link is None:
        return NO_CAPABILITIES
    return capabilities_for(link.permission_tier)
