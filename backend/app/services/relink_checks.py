"""Pre-link warnings: earlier links, incidents, or an open request for the same pair."""

from dataclasses import dataclass, field

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from backend.app.models.link_incident import GuardianLinkIncident
from backend.app.models.link_retention import GuardianLinkRetention
from backend.app.services.link_requests import open_requests_for_pair


@dataclass
class RelinkWarnings:
    previous_links: int = 0
    incidents: int = 0
    currently_linked: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


def relink_warnings(db: Session, *, school_id: str, guardian_id: str, student_id: str) -> RelinkWarnings:
    result = RelinkWarnings()

    previous_count, last_removed = (
        db.query(func.count(GuardianLinkRetention.id), func.max(GuardianLinkRetention.deleted_at))
        .filter(
            GuardianLinkRetention.school_id == school_id,
            GuardianLinkRetention.guardian_id == guardian_id,
            GuardianLinkRetention.student_id == student_id,
        )
        .one()
    )
    result.previous_links = previous_count or 0
    if result.previous_links:
        removed_on = last_removed.strftime("%d %b %Y") if last_removed else "unknown"
        result.warnings.append(
            f"This guardian was previously linked to this student ({result.previous_links} times). "
            f"Last unlinked: {removed_on}"
        )

    result.incidents = (
        db.query(GuardianLinkIncident)
        .filter(
            GuardianLinkIncident.school_id == school_id,
            or_(GuardianLinkIncident.guardian_id == guardian_id, GuardianLinkIncident.student_id == student_id),
        )
        .count()
    )
    if result.incidents:
        result.warnings.append(
            f"There have been {result.incidents} linking incident(s) involving this guardian or student."
        )

    if open_requests_for_pair(db, guardian_id, student_id):
        result.currently_linked = True
        result.warnings.append("This guardian already has an open or active link to this student.")

    return result
