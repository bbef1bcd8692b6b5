from datetime import datetime, timedelta, timezone

import pytest

from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.enums import AppRole, LinkDuration, PermissionTier, RelationshipType
from backend.app.models.guardian import Guardian
from backend.app.models.student import Student
from backend.app.services import link_transitions
from backend.app.services.actors import Actor
from backend.app.services.permission_tiers import (
    CAPABILITY_NAMES,
    NO_CAPABILITIES,
    TIER_ORDER,
    capabilities_for,
    default_tier_for,
    guardian_capabilities,
    resolve_active_link,
    tier_allows,
    tier_rank,
)

ADMIN = Actor(id="admin-1", role=AppRole.SCHOOL_ADMIN)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _seed(db):
    db.add(Guardian(id="g1", school_id="school-1", display_name="Guardian One"))
    db.add(Student(id="s1", school_id="school-1", name="Student One"))
    db.commit()


def test_tiers_are_strictly_additive():
    for lower, higher in zip(TIER_ORDER, TIER_ORDER[1:]):
        assert capabilities_for(lower).granted() < capabilities_for(higher).granted()


def test_view_only_capabilities():
    caps = capabilities_for(PermissionTier.VIEW_ONLY)
    assert caps.can_view_attendance is True
    assert caps.can_view_learning_updates is True
    assert caps.can_view_approved_insights is True
    assert caps.can_receive_notifications is False
    assert caps.can_view_fees is False


def test_view_notifications_adds_notifications_only():
    diff = capabilities_for("view_notifications").granted() - capabilities_for("view_only").granted()
    assert diff == {"can_receive_notifications"}


def test_full_access_grants_everything():
    assert capabilities_for(PermissionTier.FULL_ACCESS).granted() == set(CAPABILITY_NAMES)


def test_tier_allows_rejects_unknown_capability():
    assert tier_allows(PermissionTier.FULL_ACCESS, "can_view_fees") is True
    assert tier_allows(PermissionTier.VIEW_ONLY, "can_request_meetings") is False
    with pytest.raises(KeyError):
        tier_allows(PermissionTier.FULL_ACCESS, "can_view_rankings")


def test_default_tier_by_relationship():
    assert default_tier_for(RelationshipType.PRIMARY_GUARDIAN) is PermissionTier.VIEW_NOTIFICATIONS
    assert default_tier_for(RelationshipType.SECONDARY_GUARDIAN) is PermissionTier.VIEW_NOTIFICATIONS
    assert default_tier_for(RelationshipType.INFORMATIONAL_CONTACT) is PermissionTier.VIEW_ONLY


def test_capabilities_require_an_active_link():
    db = SessionLocal()
    try:
        _seed(db)
        assert guardian_capabilities(db, "g1", "s1") == NO_CAPABILITIES

        request = link_transitions.initiate(
            db,
            school_id="school-1",
            guardian_id="g1",
            student_id="s1",
            relationship_type=RelationshipType.PRIMARY_GUARDIAN,
            permission_tier=PermissionTier.VIEW_ONLY,
            actor=ADMIN,
        )
        assert guardian_capabilities(db, "g1", "s1") == NO_CAPABILITIES

        link_transitions.approve(db, school_id="school-1", request_id=request.id, actor=ADMIN)
        assert resolve_active_link(db, "g1", "s1").id == request.id
        assert guardian_capabilities(db, "g1", "s1") == capabilities_for(PermissionTier.VIEW_ONLY)

        link_transitions.revoke(db, school_id="school-1", request_id=request.id, reason="parent request", actor=ADMIN)
        assert guardian_capabilities(db, "g1", "s1") == NO_CAPABILITIES
    finally:
        db.close()


def test_temporary_link_stops_granting_after_expiry():
    db = SessionLocal()
    try:
        _seed(db)
        now = datetime.now(timezone.utc)
        request = link_transitions.initiate(
            db,
            school_id="school-1",
            guardian_id="g1",
            student_id="s1",
            relationship_type=RelationshipType.SECONDARY_GUARDIAN,
            duration_type=LinkDuration.TEMPORARY_CUSTOM,
            expires_at=now + timedelta(days=10),
            actor=ADMIN,
            now=now,
        )
        link_transitions.approve(db, school_id="school-1", request_id=request.id, actor=ADMIN, now=now)

        assert resolve_active_link(db, "g1", "s1", now + timedelta(days=5)) is not None
        assert resolve_active_link(db, "g1", "s1", now + timedelta(days=11)) is None
    finally:
        db.close()


def test_tier_rank_follows_tier_order():
    assert tier_rank("view_only") < tier_rank("view_notifications") < tier_rank(PermissionTier.FULL_ACCESS)
