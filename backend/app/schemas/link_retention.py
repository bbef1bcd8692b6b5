"""Retention tombstone schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from backend.app.models.enums import LinkDuration, PermissionTier, RelationshipType


class RetentionRead(BaseModel):
    id: str
    link_request_id: Optional[str] = None
    guardian_id: str
    student_id: str
    school_id: str
    relationship_type: RelationshipType
    permission_tier: PermissionTier
    duration_type: LinkDuration
    expires_at: Optional[datetime] = None
    deleted_at: datetime
    deleted_by: str
    deletion_reason: str
    retention_until: datetime
    recovered_at: Optional[datetime] = None
    recovered_by: Optional[str] = None
    recovered_link_request_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RecoverRequest(BaseModel):
    reason: str


class PurgeResponse(BaseModel):
    purged: int
