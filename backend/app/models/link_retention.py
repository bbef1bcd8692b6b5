"""Tombstone written when a link is revoked or unlinked."""

import uuid

from sqlalchemy import Column, String, Text

from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime, enum_column_type
from backend.app.models.enums import LinkDuration, PermissionTier, RelationshipType


class GuardianLinkRetention(Base):
    __tablename__ = "guardian_link_retention"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    link_request_id = Column(String(36), nullable=True, index=True)
    guardian_id = Column(String(64), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    school_id = Column(String(64), nullable=False, index=True)

    relationship_type = Column(enum_column_type(RelationshipType), nullable=False)
    permission_tier = Column(enum_column_type(PermissionTier), nullable=False)
    # Term snapshot so a recovered temporary link keeps its end date
    duration_type = Column(enum_column_type(LinkDuration), nullable=False, default=LinkDuration.PERMANENT)
    expires_at = Column(UTCDateTime, nullable=True)

    deleted_at = Column(UTCDateTime, nullable=False)
    deleted_by = Column(String(64), nullable=False)
    deletion_reason = Column(Text, nullable=False)
    retention_until = Column(UTCDateTime, nullable=False)

    recovered_at = Column(UTCDateTime, nullable=True)
    recovered_by = Column(String(64), nullable=True)
    recovery_reason = Column(Text, nullable=True)
    recovered_link_request_id = Column(String(36), nullable=True)
