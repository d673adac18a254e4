import os
import uuid

# Settings are read at import time by app.db.session; give them something
# harmless before anything from app is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///./.pytest-bootstrap.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

# FORCE model registration
import app.models  # noqa: E402,F401

from app.core.security import issue_actor_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import make_engine, make_session_factory  # noqa: E402
from app.models.enums import GlobalRole  # noqa: E402
from app.models.user import User  # noqa: E402
from app.policies.rbac import Actor  # noqa: E402


@pytest.fixture(scope="function")
def engine(tmp_path):
    # one database file per test: several sessions can see each other's commits
    eng = make_engine(f"sqlite:///{tmp_path / 'engine.db'}")
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(role=GlobalRole.COLLABORATOR, email=None):
        u = User(
            email=email or f"{uuid.uuid4().hex[:10]}@example.org",
            full_name="Test User",
            global_role=GlobalRole(role).value,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


def actor_for(user) -> Actor:
    return Actor(actor_id=user.id, global_role=GlobalRole(user.global_role))


@pytest.fixture
def as_actor():
    return actor_for


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        token = issue_actor_token(user.id, user.global_role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(session_factory):
    from app.db.session import get_db
    from app.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
