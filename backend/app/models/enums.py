"""Closed vocabularies for roles, tiers and link lifecycle states."""

import enum


class AppRole(str, enum.Enum):
    PLATFORM_ADMIN = "platform_admin"
    SCHOOL_ADMIN = "school_admin"
    TEACHER = "teacher"
    GUARDIAN = "guardian"
    SYSTEM = "system"


class PermissionTier(str, enum.Enum):
    VIEW_ONLY = "view_only"
    VIEW_NOTIFICATIONS = "view_notifications"
    FULL_ACCESS = "full_access"


class RelationshipType(str, enum.Enum):
    PRIMARY_GUARDIAN = "primary_guardian"
    SECONDARY_GUARDIAN = "secondary_guardian"
    INFORMATIONAL_CONTACT = "informational_contact"


class LinkDuration(str, enum.Enum):
    PERMANENT = "permanent"
    TEMPORARY_TERM = "temporary_term"
    TEMPORARY_YEAR = "temporary_year"
    TEMPORARY_CUSTOM = "temporary_custom"

    @property
    def is_temporary(self) -> bool:
        return self is not LinkDuration.PERMANENT


class LinkRequestStatus(str, enum.Enum):
    PENDING_REVIEW = "pending_review"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    ACTIVATED = "activated"
    REJECTED = "rejected"
    EXPIRED = "expired"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {LinkRequestStatus.REJECTED, LinkRequestStatus.EXPIRED, LinkRequestStatus.REVOKED}
)
OPEN_STATUSES = tuple(status for status in LinkRequestStatus if status not in TERMINAL_STATUSES)
AWAITING_STATUSES = (LinkRequestStatus.PENDING_REVIEW, LinkRequestStatus.PENDING_CONFIRMATION)


class IncidentType(str, enum.Enum):
    WRONG_PARENT = "wrong_parent"
    WRONG_STUDENT = "wrong_student"
    DUPLICATE = "duplicate"
    UNAUTHORIZED = "unauthorized"
    OTHER = "other"


class IncidentSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, enum.Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
