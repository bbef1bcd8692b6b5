from typing import Optional

import pytest
from fastapi.testclient import TestClient

from backend.app.core.security import create_access_token, get_password_hash
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.main import app
from backend.app.models.enums import AppRole
from backend.app.models.guardian import Guardian
from backend.app.models.user import User


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def create_user(
    email: str,
    password: Optional[str],
    role: AppRole = AppRole.SCHOOL_ADMIN,
    is_active: bool = True,
    guardian_id: Optional[str] = None,
):
    db = SessionLocal()
    user = User(
        email=email,
        hashed_password=get_password_hash(password) if password else None,
        role=role,
        school_id="school-1",
        is_active=is_active,
        guardian_id=guardian_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    db.close()
    return user


def test_successful_login_returns_token():
    client = TestClient(app)
    create_user("login@example.com", "secret")
    response = client.post("/auth/login", json={"email": "login@example.com", "password": "secret"})
    assert response.status_code == 200
    data = response.json()
    assert data.get("token_type") == "bearer"
    assert isinstance(data.get("access_token"), str) and data["access_token"]


def test_login_records_last_login():
    client = TestClient(app)
    user = create_user("lastlogin@example.com", "secret")
    client.post("/auth/login", json={"email": "lastlogin@example.com", "password": "secret"})
    db = SessionLocal()
    stored = db.query(User).filter(User.id == user.id).first()
    assert stored.last_login is not None
    db.close()


def test_wrong_password_returns_400():
    client = TestClient(app)
    create_user("wrongpw@example.com", "secret")
    response = client.post("/auth/login", json={"email": "wrongpw@example.com", "password": "bad"})
    assert response.status_code == 400


def test_missing_hash_returns_400_not_500():
    client = TestClient(app)
    create_user("badhash@example.com", None)
    response = client.post("/auth/login", json={"email": "badhash@example.com", "password": "secret"})
    assert response.status_code == 400


def test_inactive_user_cannot_login():
    client = TestClient(app)
    create_user("inactive@example.com", "secret", is_active=False)
    response = client.post("/auth/login", json={"email": "inactive@example.com", "password": "secret"})
    assert response.status_code == 400


def test_nonexistent_user_returns_400():
    client = TestClient(app)
    response = client.post("/auth/login", json={"email": "nosuch@example.com", "password": "secret"})
    assert response.status_code == 400


def test_me_returns_current_user():
    client = TestClient(app)
    user = create_user("me@example.com", "secret", role=AppRole.TEACHER)
    token = create_access_token(user.id)
    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "me@example.com"
    assert data["role"] == "teacher"
    assert data["school_id"] == "school-1"


def test_me_requires_token():
    client = TestClient(app)
    assert client.get("/auth/me").status_code == 401
    response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_login_ignores_email_case_and_reports_identity():
    client = TestClient(app)
    user = create_user("casing@example.com", "secret", role=AppRole.TEACHER)
    response = client.post("/auth/login", json={"email": "  Casing@Example.COM ", "password": "secret"})
    assert response.status_code == 200
    data = response.json()
    assert data["user_id"] == user.id
    assert data["role"] == "teacher"
    assert data["school_id"] == "school-1"
    assert data["guardian_id"] is None


def test_blank_password_is_rejected_before_lookup():
    client = TestClient(app)
    create_user("blank@example.com", "secret")
    response = client.post("/auth/login", json={"email": "blank@example.com", "password": ""})
    assert response.status_code == 422


def test_guardian_token_round_trips_through_me():
    client = TestClient(app)
    db = SessionLocal()
    db.add(Guardian(id="g1", school_id="school-1", display_name="Guardian One"))
    db.commit()
    db.close()
    create_user("parent@example.com", "secret", role=AppRole.GUARDIAN, guardian_id="g1")

    token = client.post("/auth/login", json={"email": "parent@example.com", "password": "secret"}).json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "guardian"
    assert me.json()["guardian_id"] == "g1"
