from datetime import datetime, timedelta, timezone

import pytest

from backend.app.core.errors import ActionNotPermitted, AlreadyRelinked, NotFound, RetentionExpired, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.enums import AppRole, LinkDuration, LinkRequestStatus, PermissionTier, RelationshipType
from backend.app.models.guardian import Guardian
from backend.app.models.link_retention import GuardianLinkRetention
from backend.app.models.student import Student
from backend.app.services import link_retention, link_transitions
from backend.app.services.actors import SYSTEM_ACTOR, Actor
from backend.app.services.link_audit import history_for
from backend.app.services.permission_tiers import resolve_active_link

ADMIN = Actor(id="admin-1", role=AppRole.SCHOOL_ADMIN)
PLATFORM = Actor(id="platform-1", role=AppRole.PLATFORM_ADMIN)
TEACHER = Actor(id="teacher-1", role=AppRole.TEACHER)

REVOKED_AT = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    session.add(Guardian(id="g1", school_id="school-1", display_name="Guardian One"))
    session.add(Student(id="s1", school_id="school-1", name="Student One"))
    session.commit()
    yield session
    session.close()


def _revoked_link(db, tier=PermissionTier.VIEW_NOTIFICATIONS, **kwargs):
    request = link_transitions.initiate(
        db,
        school_id="school-1",
        guardian_id="g1",
        student_id="s1",
        relationship_type=RelationshipType.PRIMARY_GUARDIAN,
        permission_tier=tier,
        actor=ADMIN,
        now=REVOKED_AT - timedelta(days=30),
        **kwargs,
    )
    link_transitions.approve(
        db, school_id="school-1", request_id=request.id, actor=ADMIN, now=REVOKED_AT - timedelta(days=30)
    )
    return link_transitions.revoke(
        db, school_id="school-1", request_id=request.id, reason="Removed in error", actor=ADMIN, now=REVOKED_AT
    )


def test_scenario_recovery_within_window(db):
    revoked = _revoked_link(db, tier=PermissionTier.VIEW_ONLY)
    tombstone = revoked.tombstone
    moment = REVOKED_AT + timedelta(days=30)

    successor = link_retention.recover(
        db, school_id="school-1", retention_id=tombstone.id, reason="Unlinked by mistake", actor=ADMIN, now=moment
    )

    assert successor.id != revoked.request.id
    assert successor.status is LinkRequestStatus.ACTIVATED
    assert successor.permission_tier is PermissionTier.VIEW_ONLY
    assert successor.relationship_type is RelationshipType.PRIMARY_GUARDIAN
    assert successor.activated_at == moment

    db.expire_all()
    stored = db.get(GuardianLinkRetention, tombstone.id)
    assert stored.recovered_at == moment
    assert stored.recovered_by == "admin-1"
    assert stored.recovered_link_request_id == successor.id
    assert resolve_active_link(db, "g1", "s1", moment).id == successor.id

    entry = history_for(db, school_id="school-1", link_request_id=successor.id)[0]
    assert entry.action == "recovered"
    assert entry.details["retention_id"] == tombstone.id
    assert entry.details["original_link_request_id"] == revoked.request.id


def test_scenario_recovery_after_window(db):
    tombstone = _revoked_link(db).tombstone
    with pytest.raises(RetentionExpired):
        link_retention.recover(
            db,
            school_id="school-1",
            retention_id=tombstone.id,
            reason="Too late",
            actor=ADMIN,
            now=REVOKED_AT + timedelta(days=91),
        )
    db.expire_all()
    assert db.get(GuardianLinkRetention, tombstone.id).recovered_at is None


def test_recovery_at_the_boundary_is_expired(db):
    tombstone = _revoked_link(db).tombstone
    with pytest.raises(RetentionExpired):
        link_retention.recover(
            db,
            school_id="school-1",
            retention_id=tombstone.id,
            reason="Exactly at the end",
            actor=ADMIN,
            now=REVOKED_AT + timedelta(days=90),
        )


def test_recovery_twice_is_already_relinked(db):
    tombstone = _revoked_link(db).tombstone
    moment = REVOKED_AT + timedelta(days=1)
    link_retention.recover(db, school_id="school-1", retention_id=tombstone.id, reason="Mistake", actor=ADMIN, now=moment)
    with pytest.raises(AlreadyRelinked):
        link_retention.recover(
            db, school_id="school-1", retention_id=tombstone.id, reason="Again", actor=ADMIN, now=moment
        )


def test_recovery_blocked_by_newer_request(db):
    tombstone = _revoked_link(db).tombstone
    link_transitions.initiate(
        db,
        school_id="school-1",
        guardian_id="g1",
        student_id="s1",
        relationship_type=RelationshipType.SECONDARY_GUARDIAN,
        actor=ADMIN,
        now=REVOKED_AT + timedelta(days=2),
    )
    with pytest.raises(AlreadyRelinked):
        link_retention.recover(
            db,
            school_id="school-1",
            retention_id=tombstone.id,
            reason="Mistake",
            actor=ADMIN,
            now=REVOKED_AT + timedelta(days=3),
        )


def test_lapsed_confirmation_does_not_block_recovery(db):
    tombstone = _revoked_link(db).tombstone
    newer = link_transitions.initiate(
        db,
        school_id="school-1",
        guardian_id="g1",
        student_id="s1",
        relationship_type=RelationshipType.SECONDARY_GUARDIAN,
        requires_parent_confirmation=True,
        actor=ADMIN,
        now=REVOKED_AT + timedelta(days=1),
    )
    link_transitions.approve(
        db, school_id="school-1", request_id=newer.id, actor=ADMIN, now=REVOKED_AT + timedelta(days=2)
    )

    moment = REVOKED_AT + timedelta(days=10)
    successor = link_retention.recover(
        db, school_id="school-1", retention_id=tombstone.id, reason="Unlinked by mistake", actor=ADMIN, now=moment
    )

    assert successor.status is LinkRequestStatus.ACTIVATED
    db.expire_all()
    lapsed = link_transitions.get_request(db, school_id="school-1", request_id=newer.id, now=moment)
    assert lapsed.status is LinkRequestStatus.EXPIRED
    assert history_for(db, school_id="school-1", link_request_id=newer.id)[0].action == "expired"


def test_recovered_temporary_link_keeps_its_end_date(db):
    ends = REVOKED_AT + timedelta(days=20)
    revoked = _revoked_link(db, duration_type=LinkDuration.TEMPORARY_CUSTOM, expires_at=ends)
    assert revoked.tombstone.duration_type is LinkDuration.TEMPORARY_CUSTOM

    successor = link_retention.recover(
        db,
        school_id="school-1",
        retention_id=revoked.tombstone.id,
        reason="Unlinked by mistake",
        actor=ADMIN,
        now=REVOKED_AT + timedelta(days=5),
    )

    assert successor.duration_type is LinkDuration.TEMPORARY_CUSTOM
    assert successor.expires_at == ends
    after_term = link_transitions.get_request(
        db, school_id="school-1", request_id=successor.id, now=ends + timedelta(hours=1)
    )
    assert after_term.status is LinkRequestStatus.REVOKED


def test_temporary_link_past_its_term_cannot_be_recovered(db):
    ends = REVOKED_AT + timedelta(days=20)
    tombstone = _revoked_link(db, duration_type=LinkDuration.TEMPORARY_CUSTOM, expires_at=ends).tombstone
    with pytest.raises(ValidationError):
        link_retention.recover(
            db,
            school_id="school-1",
            retention_id=tombstone.id,
            reason="Unlinked by mistake",
            actor=ADMIN,
            now=ends + timedelta(days=1),
        )
    db.expire_all()
    assert db.get(GuardianLinkRetention, tombstone.id).recovered_at is None


def test_term_end_tombstone_snapshots_the_term(db):
    ends = REVOKED_AT + timedelta(days=20)
    request = link_transitions.initiate(
        db,
        school_id="school-1",
        guardian_id="g1",
        student_id="s1",
        relationship_type=RelationshipType.PRIMARY_GUARDIAN,
        duration_type=LinkDuration.TEMPORARY_TERM,
        expires_at=ends,
        actor=ADMIN,
        now=REVOKED_AT,
    )
    link_transitions.approve(db, school_id="school-1", request_id=request.id, actor=ADMIN, now=REVOKED_AT)
    link_transitions.get_request(db, school_id="school-1", request_id=request.id, now=ends)

    tombstone = db.query(GuardianLinkRetention).one()
    assert tombstone.duration_type is LinkDuration.TEMPORARY_TERM
    assert tombstone.expires_at == ends
    with pytest.raises(ValidationError):
        link_retention.recover(
            db, school_id="school-1", retention_id=tombstone.id, reason="Mistake", actor=ADMIN, now=ends
        )


def test_recovery_requires_admin_and_reason(db):
    tombstone = _revoked_link(db).tombstone
    with pytest.raises(ActionNotPermitted):
        link_retention.recover(db, school_id="school-1", retention_id=tombstone.id, reason="Mistake", actor=TEACHER)
    with pytest.raises(ValidationError):
        link_retention.recover(db, school_id="school-1", retention_id=tombstone.id, reason=" ", actor=ADMIN)


def test_recovery_unknown_tombstone_is_not_found(db):
    with pytest.raises(NotFound):
        link_retention.recover(db, school_id="school-1", retention_id="missing", reason="Mistake", actor=ADMIN)


def test_list_retention_hides_recovered_records(db):
    tombstone = _revoked_link(db).tombstone
    assert [t.id for t in link_retention.list_retention(db, school_id="school-1")] == [tombstone.id]
    link_retention.recover(
        db,
        school_id="school-1",
        retention_id=tombstone.id,
        reason="Mistake",
        actor=ADMIN,
        now=REVOKED_AT + timedelta(days=1),
    )
    assert link_retention.list_retention(db, school_id="school-1") == []
    assert len(link_retention.list_retention(db, school_id="school-1", include_recovered=True)) == 1
    assert link_retention.list_retention(db, school_id="school-2", include_recovered=True) == []


def test_purge_removes_only_expired_unrecovered_tombstones(db):
    tombstone = _revoked_link(db).tombstone

    assert link_retention.purge_expired_tombstones(db, actor=SYSTEM_ACTOR, now=REVOKED_AT + timedelta(days=89)) == 0
    assert link_retention.purge_expired_tombstones(db, actor=PLATFORM, now=REVOKED_AT + timedelta(days=90)) == 1
    db.expire_all()
    assert db.get(GuardianLinkRetention, tombstone.id) is None


def test_purge_keeps_recovered_tombstones(db):
    tombstone = _revoked_link(db).tombstone
    link_retention.recover(
        db,
        school_id="school-1",
        retention_id=tombstone.id,
        reason="Mistake",
        actor=ADMIN,
        now=REVOKED_AT + timedelta(days=1),
    )
    assert link_retention.purge_expired_tombstones(db, actor=SYSTEM_ACTOR, now=REVOKED_AT + timedelta(days=200)) == 0


def test_school_admin_cannot_purge(db):
    with pytest.raises(ActionNotPermitted):
        link_retention.purge_expired_tombstones(db, actor=ADMIN)
