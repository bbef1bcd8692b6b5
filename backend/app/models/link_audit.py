"""Append-only audit ledger for guardian-link transitions."""

from sqlalchemy import JSON, Column, Integer, String, Text, event

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base
from backend.app.db.types import UTCDateTime, enum_column_type
from backend.app.models.enums import LinkRequestStatus


class AuditEntryImmutable(RuntimeError):
    """Raised when code attempts to rewrite or delete the ledger."""


class GuardianLinkAuditEntry(Base):
    __tablename__ = "guardian_link_audit_log"

    # Autoincrement id doubles as the chronological sequence
    id = Column(Integer, primary_key=True, autoincrement=True)
    # Plain column, not a foreign key: entries outlive purged requests
    link_request_id = Column(String(36), nullable=True, index=True)
    guardian_id = Column(String(64), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)
    school_id = Column(String(64), nullable=False, index=True)
    action = Column(String(64), nullable=False)
    previous_status = Column(enum_column_type(LinkRequestStatus), nullable=True)
    new_status = Column(enum_column_type(LinkRequestStatus), nullable=True)
    performed_by = Column(String(64), nullable=False)
    performed_by_role = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)


@event.listens_for(GuardianLinkAuditEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditEntryImmutable("Audit entries cannot be modified")


@event.listens_for(GuardianLinkAuditEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditEntryImmutable("Audit entries cannot be deleted")
