"""Guardian-student link request: the root record of the approval workflow."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text, text

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime, enum_column_type
from backend.app.models.enums import (
    OPEN_STATUSES,
    LinkDuration,
    LinkRequestStatus,
    PermissionTier,
    RelationshipType,
)

_OPEN_STATUS_SQL = "status IN ({})".format(", ".join(f"'{status.value}'" for status in OPEN_STATUSES))


class GuardianLinkRequest(Base):
    __tablename__ = "guardian_link_requests"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    guardian_id = Column(String(64), ForeignKey("guardians.id"), nullable=False, index=True)
    student_id = Column(String(64), ForeignKey("students.id"), nullable=False, index=True)
    school_id = Column(String(64), nullable=False, index=True)

    relationship_type = Column(enum_column_type(RelationshipType), nullable=False)
    permission_tier = Column(enum_column_type(PermissionTier), nullable=False)
    duration_type = Column(enum_column_type(LinkDuration), nullable=False, default=LinkDuration.PERMANENT)
    expires_at = Column(UTCDateTime, nullable=True)

    status = Column(enum_column_type(LinkRequestStatus), nullable=False, default=LinkRequestStatus.PENDING_REVIEW)
    initiated_by = Column(String(64), nullable=False)
    initiated_by_role = Column(String(32), nullable=False)

    requires_parent_confirmation = Column(Boolean, nullable=False, default=False)
    confirmation_method = Column(String(32), nullable=True)
    confirmation_code_hash = Column(String(64), nullable=True)
    confirmation_sent_at = Column(UTCDateTime, nullable=True)
    confirmation_expires_at = Column(UTCDateTime, nullable=True)
    confirmed_at = Column(UTCDateTime, nullable=True)
    verification_notes = Column(Text, nullable=True)

    reviewed_by = Column(String(64), nullable=True)
    reviewed_at = Column(UTCDateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    activated_at = Column(UTCDateTime, nullable=True)
    revoked_at = Column(UTCDateTime, nullable=True)
    revocation_reason = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # At most one open request per pair; this is what makes concurrent initiates safe.
    __table_args__ = (
        Index(
            "uq_guardian_link_open_pair",
            "guardian_id",
            "student_id",
            unique=True,
            sqlite_where=text(_OPEN_STATUS_SQL),
            postgresql_where=text(_OPEN_STATUS_SQL),
        ),
    )
