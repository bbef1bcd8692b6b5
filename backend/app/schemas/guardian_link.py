"""Schemas for the guardian-link approval endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.enums import LinkDuration, LinkRequestStatus, PermissionTier, RelationshipType


class LinkRequestCreate(BaseModel):
    guardian_id: str
    student_id: str
    relationship_type: RelationshipType
    permission_tier: Optional[PermissionTier] = None
    duration_type: LinkDuration = LinkDuration.PERMANENT
    expires_at: Optional[datetime] = None
    requires_confirmation: bool = False
    confirmation_method: Optional[str] = None
    verification_notes: Optional[str] = None


class LinkRequestRead(BaseModel):
    id: str
    guardian_id: str
    student_id: str
    school_id: str
    relationship_type: RelationshipType
    permission_tier: PermissionTier
    duration_type: LinkDuration
    expires_at: Optional[datetime] = None
    status: LinkRequestStatus
    initiated_by: str
    initiated_by_role: str
    requires_parent_confirmation: bool
    confirmation_method: Optional[str] = None
    confirmation_sent_at: Optional[datetime] = None
    confirmation_expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    activated_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApproveRequest(BaseModel):
    review_notes: Optional[str] = None


class ApprovalResponse(BaseModel):
    request: LinkRequestRead
    confirmation_sent: bool
    notification_delivered: Optional[bool] = None


class ConfirmRequest(BaseModel):
    code: str


class ReasonRequest(BaseModel):
    reason: str


class PermissionTierUpdate(BaseModel):
    permission_tier: PermissionTier
    reason: Optional[str] = None


class UnlinkRequest(BaseModel):
    guardian_id: str
    student_id: str
    reason: str
    is_mislink: bool = False


class RevocationResponse(BaseModel):
    request: LinkRequestRead
    retention_id: str
    retention_until: datetime
    incident_id: Optional[str] = None


class AuditEntryRead(BaseModel):
    id: int
    link_request_id: Optional[str] = None
    guardian_id: str
    student_id: str
    action: str
    previous_status: Optional[LinkRequestStatus] = None
    new_status: Optional[LinkRequestStatus] = None
    performed_by: str
    performed_by_role: str
    reason: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="details")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RelinkWarningsRead(BaseModel):
    has_warnings: bool
    warnings: list[str]
    previous_links: int
    incidents: int
    currently_linked: bool

    model_config = ConfigDict(from_attributes=True)


class CapabilitiesRead(BaseModel):
    guardian_id: str
    student_id: str
    permission_tier: Optional[PermissionTier] = None
    capabilities: dict[str, bool]


class ExpirySweepResponse(BaseModel):
    expired: int
