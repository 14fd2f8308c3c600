"""
Shared fixtures.

Environment variables are set before any src module is imported, so the app
runs on a private in-memory SQLite database and a temporary upload directory.

Run with:  python -m pytest tests/ -v
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="snapgram-uploads-")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.shared.auth.auth import hash_password  # noqa: E402
from src.shared.auth.database import Base, SessionLocal, engine, User  # noqa: E402
from src.shared.social import database as _social_models  # noqa: E402,F401
from src.shared.chat import database as _chat_models  # noqa: E402,F401
from src.shared.notifications import database as _notification_models  # noqa: E402,F401
from src.shared.realtime.connection_manager import get_push  # noqa: E402
from src.app import app  # noqa: E402

TEST_PASSWORD = "password123"

# bcrypt is slow on purpose; hash once for every factory-made user
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


class RecordingPush:
    """Push channel double that records every send instead of using sockets."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sent = []

    def send_to_user(self, user_id, destination, payload):
        self.sent.append((user_id, destination, payload))
        return self.connected

    def sent_to(self, user_id, destination=None):
        return [
            payload for uid, dest, payload in self.sent
            if uid == user_id and (destination is None or dest == destination)
        ]


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def offline_push():
    """Push double for a recipient with no open socket."""
    return RecordingPush(connected=False)


@pytest.fixture
def make_user(db):
    """Factory: make_user("alice") -> committed User."""
    def _make_user(username, name=None, email=None):
        user = User(
            username=username,
            email=email or f"{username}@snapgram.io",
            password_hash=_TEST_PASSWORD_HASH,
            name=name,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def client():
    """TestClient using the real push channel (needed for WebSocket tests)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def recording_client(push):
    """TestClient whose routes push into a RecordingPush."""
    app.dependency_overrides[get_push] = lambda: push
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_push, None)


@pytest.fixture
def register():
    """Factory: register(client, "alice") -> auth headers for a new account."""
    def _register(test_client, username, password=TEST_PASSWORD):
        response = test_client.post("/auth/register", json={
            "username": username,
            "email": f"{username}@snapgram.io",
            "password": password,
        })
        assert response.status_code == 201, response.text
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}
    return _register
