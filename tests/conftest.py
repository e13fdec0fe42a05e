"""
Shared fixtures: an isolated SQLite database per test, user/token factories
and in-memory stand-ins for every outbound integration.
"""

import os
import tempfile

# Configure the environment BEFORE importing the app
os.environ["DATABASE_URL"] = f"sqlite:///{tempfile.mkdtemp()}/bootstrap.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["ADMIN_EMAIL"] = "seed-admin@patricktravel.com"
os.environ["ADMIN_PASSWORD"] = "SeedAdmin123!"

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from app.auth.utils import create_access_token, get_password_hash
from app.core.rate_limit import limiter
from app.database import Base, get_db
from app.integrations import email, firebase, push, uploadthing
from app.models import Case, ServiceType, User, UserRole

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


# =============================================================================
# Integrations
# =============================================================================

@pytest.fixture(autouse=True)
def integrations(monkeypatch):
    """Record every outbound call instead of talking to Firebase, SMTP, Expo or UploadThing."""
    calls = SimpleNamespace(
        realtime=[], chat_rooms=[], chat_messages=[], presence=[], typing=[],
        emails=[], pushes=[], uploads=[], deleted_keys=[],
    )

    def fake_upload(content, filename, content_type):
        key = f"key-{len(calls.uploads) + 1}-{filename}"
        calls.uploads.append((filename, content_type, len(content)))
        return uploadthing.UploadedFile(
            key=key, url=f"https://utfs.io/f/{key}", name=filename, size=len(content), content_type=content_type
        )

    monkeypatch.setattr(firebase, "push_realtime_notification", lambda user_id, nid, payload: calls.realtime.append((user_id, nid, payload)))
    monkeypatch.setattr(firebase, "initialize_chat_room", lambda *args: calls.chat_rooms.append(args))
    monkeypatch.setattr(firebase, "mirror_chat_message", lambda sender, recipient, message: calls.chat_messages.append((sender, recipient, message)))
    monkeypatch.setattr(firebase, "set_presence", lambda *args: calls.presence.append(args))
    monkeypatch.setattr(firebase, "set_typing", lambda *args: calls.typing.append(args))
    monkeypatch.setattr(email, "send_email", lambda to, subject, html, text=None: calls.emails.append((to, subject)) or True)
    monkeypatch.setattr(push, "send_push_notification", lambda token, title, body, data=None: calls.pushes.append((token, title)) or {})
    monkeypatch.setattr(uploadthing, "upload_file", fake_upload)
    monkeypatch.setattr(uploadthing, "delete_files", lambda keys: calls.deleted_keys.extend(keys))
    return calls


# =============================================================================
# Users and tokens
# =============================================================================

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role=UserRole.CLIENT, email=None, is_active=True, push_token=None, **kwargs):
        counter["n"] += 1
        user = User(
            email=email or f"{role.value.lower()}{counter['n']}@example.com",
            password_hash=PASSWORD_HASH,
            first_name=kwargs.pop("first_name", role.value.title()),
            last_name=kwargs.pop("last_name", f"User{counter['n']}"),
            role=role,
            is_active=is_active,
            push_token=push_token,
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def agent(make_user):
    return make_user(UserRole.AGENT, push_token="ExponentPushToken[agent]")


@pytest.fixture
def client_user(make_user):
    return make_user(UserRole.CLIENT, push_token="ExponentPushToken[client]")


@pytest.fixture
def make_case(db_session):
    counter = {"n": 0}

    def _make_case(client_user, **kwargs):
        counter["n"] += 1
        case = Case(
            reference_number=f"PT-TEST-{counter['n']:04d}",
            client_id=client_user.id,
            service_type=kwargs.pop("service_type", ServiceType.STUDENT_VISA),
            **kwargs,
        )
        db_session.add(case)
        db_session.commit()
        db_session.refresh(case)
        return case

    return _make_case


@pytest.fixture
def headers_for():
    return auth_headers
