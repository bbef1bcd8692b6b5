"""Attribution for link operations: who is acting, and in which role."""

from dataclasses import dataclass
from typing import Optional

from backend.app.core.errors import ActionNotPermitted
from backend.app.models.enums import AppRole
from backend.app.models.user import User


@dataclass(frozen=True)
class Actor:
    id: str
    role: AppRole
    guardian_id: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=str(user.id), role=AppRole(user.role), guardian_id=user.guardian_id)


SYSTEM_ACTOR = Actor(id="system", role=AppRole.SYSTEM)

ADMIN_ROLES = frozenset({AppRole.PLATFORM_ADMIN, AppRole.SCHOOL_ADMIN})
STAFF_ROLES = ADMIN_ROLES | {AppRole.TEACHER}


def require_role(actor: Actor, allowed: frozenset, event: str) -> None:
    if actor.role not in allowed:
        raise ActionNotPermitted(actor.role, event)


def require_guardian_scope(actor: Actor, guardian_id: str, event: str) -> None:
    """Staff see every guardian in their school; a guardian sees only their own links."""
    if actor.role in STAFF_ROLES:
        return
    if actor.role is AppRole.GUARDIAN and actor.guardian_id == guardian_id:
        return
    raise ActionNotPermitted(actor.role, event)
