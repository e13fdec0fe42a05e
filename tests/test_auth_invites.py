from datetime import datetime, timedelta

import pytest

from app.auth import routes as auth_routes
from app.auth.utils import hash_token, verify_password
from app.core.rate_limit import RateLimitPresets
from app.models import ActivityLog, InviteCode, InviteUsage, Message, Notification, NotificationType, User, UserRole
from app.services.invite_service import create_invite_code

REGISTRATION = {
    "email": "new.agent@example.com",
    "password": "supersecret1",
    "first_name": "New",
    "last_name": "Agent",
}


@pytest.fixture
def make_invite(db_session, admin):
    def _make_invite(role=UserRole.AGENT, **overrides):
        invite = create_invite_code(db_session, role, admin.id, max_uses=overrides.pop("max_uses", 1))
        for field, value in overrides.items():
            setattr(invite, field, value)
        db_session.commit()
        db_session.refresh(invite)
        return invite
    return _make_invite


def test_register_without_invite_creates_client(client, db_session):
    response = client.post("/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    user = response.json()["data"]["user"]
    assert user["role"] == "CLIENT"
    assert db_session.query(User).filter(User.email == REGISTRATION["email"]).count() == 1


def test_register_duplicate_email_conflicts(client, make_user):
    make_user(UserRole.CLIENT, email=REGISTRATION["email"])

    response = client.post("/auth/register", json=REGISTRATION)

    assert response.status_code == 409
    assert response.json()["code"] == "EMAIL_EXISTS"


def test_register_with_invite_takes_its_role_and_consumes_it(client, make_invite, db_session):
    invite = make_invite(UserRole.AGENT)

    response = client.post("/auth/register", json={**REGISTRATION, "invite_code": invite.code})

    assert response.status_code == 201
    assert response.json()["data"]["user"]["role"] == "AGENT"
    db_session.expire_all()
    assert invite.used_count == 1
    assert invite.last_used_by_id == response.json()["data"]["user"]["id"]
    assert db_session.query(InviteUsage).filter(InviteUsage.invite_code_id == invite.id).count() == 1


def test_single_use_invite_is_consumed_exactly_once(client, make_invite, db_session):
    invite = make_invite(UserRole.AGENT)
    first = client.post("/auth/register", json={**REGISTRATION, "invite_code": invite.code})
    second = client.post(
        "/auth/register",
        json={**REGISTRATION, "email": "second@example.com", "invite_code": invite.code},
    )

    assert first.status_code == 201
    assert second.status_code == 403
    assert second.json()["error"] == "This invite code has reached its usage limit"
    assert db_session.query(User).filter(User.email == "second@example.com").count() == 0
    db_session.expire_all()
    assert invite.used_count == 1


def test_login_returns_bearer_token(client, make_user):
    user = make_user(UserRole.AGENT, email="login@example.com")

    response = client.post("/auth/login", data={"username": "login@example.com", "password": "password123"})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["role"] == "AGENT"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["data"]["user"]["id"] == user.id


def test_login_with_wrong_password(client, make_user):
    make_user(UserRole.CLIENT, email="login@example.com")

    response = client.post("/auth/login", data={"username": "login@example.com", "password": "nope"})

    assert response.status_code == 401


def test_inactive_user_token_is_refused(client, make_user, headers_for):
    user = make_user(UserRole.CLIENT, is_active=False)

    response = client.get("/auth/me", headers=headers_for(user))

    assert response.status_code == 403
    assert response.json()["error"] == "Account is inactive"


# ===== Google login =====

def fake_google_token(claims):
    def verify_oauth2_token(token, request, audience):
        if token != "good-token":
            raise ValueError("Token used too late")
        return claims
    return verify_oauth2_token


def test_google_login_creates_verified_client(client, monkeypatch, db_session):
    claims = {"email": "Traveller@Gmail.com", "sub": "google-123", "given_name": "Ama", "email_verified": True}
    monkeypatch.setattr(auth_routes.id_token, "verify_oauth2_token", fake_google_token(claims))

    response = client.post("/auth/google-login", json={"id_token": "good-token"})

    assert response.status_code == 200
    assert response.json()["role"] == "CLIENT"
    user = db_session.query(User).filter(User.email == "traveller@gmail.com").one()
    assert user.google_id == "google-123"
    assert user.is_verified is True


def test_google_login_links_existing_account(client, make_user, monkeypatch, db_session):
    existing = make_user(UserRole.AGENT, email="agent.g@example.com")
    claims = {"email": "agent.g@example.com", "sub": "google-456"}
    monkeypatch.setattr(auth_routes.id_token, "verify_oauth2_token", fake_google_token(claims))

    response = client.post("/auth/google-login", json={"id_token": "good-token"})

    assert response.json()["role"] == "AGENT"
    db_session.expire_all()
    assert existing.google_id == "google-456"
    assert db_session.query(User).count() == 1


def test_google_login_rejects_invalid_token(client, monkeypatch):
    monkeypatch.setattr(auth_routes.id_token, "verify_oauth2_token", fake_google_token({}))

    response = client.post("/auth/google-login", json={"id_token": "forged"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid Google token"


# ===== Account =====

def test_change_password(client, client_user, headers_for, db_session):
    response = client.put(
        "/users/me/password",
        json={"current_password": "password123", "new_password": "new-password-1"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 200
    db_session.expire_all()
    assert verify_password("new-password-1", client_user.password_hash)


def test_change_password_with_wrong_current_password(client, client_user, headers_for):
    response = client.put(
        "/users/me/password",
        json={"current_password": "not-my-password", "new_password": "new-password-1"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Current password is incorrect"


def test_change_password_requires_eight_characters(client, client_user, headers_for):
    response = client.put(
        "/users/me/password",
        json={"current_password": "password123", "new_password": "short"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 422
    assert "new_password" in response.json()["errors"]


def test_register_push_token(client, make_user, headers_for, db_session):
    user = make_user(UserRole.CLIENT)

    response = client.post(
        "/users/me/push-token", json={"push_token": "ExponentPushToken[abc]"}, headers=headers_for(user)
    )
    empty = client.post("/users/me/push-token", json={"push_token": ""}, headers=headers_for(user))

    assert response.status_code == 200
    assert empty.status_code == 422
    db_session.expire_all()
    assert user.push_token == "ExponentPushToken[abc]"


def test_data_export_contains_only_the_callers_records(
    client, client_user, agent, make_user, make_case, headers_for, db_session
):
    case = make_case(client_user, internal_notes="agent-only remark")
    make_case(make_user(UserRole.CLIENT))
    db_session.add_all([
        Message(sender_id=agent.id, recipient_id=client_user.id, content="Hello", case_id=case.id),
        Message(sender_id=agent.id, recipient_id=make_user(UserRole.CLIENT).id, content="Not yours"),
        Notification(user_id=client_user.id, type=NotificationType.SYSTEM_ANNOUNCEMENT, title="Hi", message="Welcome"),
    ])
    db_session.commit()

    response = client.get("/users/data-export", headers=headers_for(client_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["format"] == "json"
    assert data["user"]["id"] == client_user.id
    assert [c["id"] for c in data["cases"]] == [case.id]
    assert "internal_notes" not in data["cases"][0]
    assert [m["content"] for m in data["messages"]] == ["Hello"]
    assert [n["title"] for n in data["notifications"]] == ["Hi"]
    db_session.expire_all()
    assert client_user.data_export_requests == 1
    assert client_user.last_data_export is not None


def test_data_export_is_limited_per_day(client, client_user, headers_for):
    preset = RateLimitPresets.DATA_EXPORT
    for _ in range(preset.max_requests):
        assert client.get("/users/data-export", headers=headers_for(client_user)).status_code == 200

    blocked = client.get("/users/data-export", headers=headers_for(client_user))

    assert blocked.status_code == 429


def test_account_deletion_anonymizes_and_deactivates(client, make_user, headers_for, db_session):
    user = make_user(UserRole.CLIENT, push_token="ExponentPushToken[me]")
    headers = headers_for(user)

    response = client.request("DELETE", "/users/account", json={"reason": "Moving abroad"}, headers=headers)
    again = client.get("/auth/me", headers=headers)

    assert response.status_code == 200
    scheduled_for = datetime.fromisoformat(response.json()["data"]["scheduled_for"])
    assert scheduled_for - datetime.utcnow() > timedelta(days=29)
    assert again.status_code == 401
    db_session.expire_all()
    assert user.is_active is False
    assert user.email == f"deleted_{user.id}@deleted.local"
    assert user.push_token is None
    assert user.deletion_reason == "Moving abroad"
    assert db_session.query(ActivityLog).filter(
        ActivityLog.user_id == user.id, ActivityLog.action == "ACCOUNT_DELETION_REQUESTED"
    ).count() == 1


def test_account_deletion_without_reason(client, client_user, headers_for, db_session):
    response = client.delete("/users/account", headers=headers_for(client_user))

    assert response.status_code == 200
    db_session.expire_all()
    assert client_user.deletion_scheduled_for is not None
    assert client_user.deletion_reason is None


# ===== Password reset and email verification =====

def test_register_sends_verification_email(client, integrations, db_session):
    response = client.post("/auth/register", json=REGISTRATION)

    assert response.status_code == 201
    assert integrations.emails == [(REGISTRATION["email"], "Verify your email address")]
    user = db_session.query(User).filter(User.email == REGISTRATION["email"]).one()
    assert user.is_verified is False
    assert len(user.verification_token_hash) == 64


def test_verify_email_marks_user_verified(client, make_user, db_session):
    user = make_user(UserRole.CLIENT, is_verified=False)
    user.verification_token_hash = hash_token("verify-me")
    db_session.commit()

    response = client.post("/auth/verify-email", json={"token": "verify-me"})
    reused = client.post("/auth/verify-email", json={"token": "verify-me"})

    assert response.status_code == 200
    assert response.json()["data"] == {"email": user.email}
    assert reused.status_code == 400
    assert reused.json()["error"] == "Invalid or expired verification token"
    db_session.expire_all()
    assert user.is_verified is True
    assert user.verification_token_hash is None


def test_resend_verification(client, make_user, integrations, db_session):
    pending = make_user(UserRole.CLIENT, is_verified=False)
    verified = make_user(UserRole.CLIENT, is_verified=True)

    response = client.post("/auth/resend-verification", json={"email": pending.email})
    unknown = client.post("/auth/resend-verification", json={"email": "nobody@example.com"})
    already = client.post("/auth/resend-verification", json={"email": verified.email})

    assert response.status_code == 200
    assert unknown.status_code == 200
    assert unknown.json()["message"] == response.json()["message"]
    assert already.status_code == 400
    assert already.json()["error"] == "Email is already verified"
    assert integrations.emails == [(pending.email, "Verify your email address")]
    db_session.expire_all()
    assert pending.verification_token_hash is not None


def test_forgot_password_does_not_reveal_unknown_emails(client, make_user, integrations, db_session):
    user = make_user(UserRole.CLIENT)

    known = client.post("/auth/forgot-password", json={"email": user.email.upper()})
    unknown = client.post("/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]
    assert integrations.emails == [(user.email, "Reset your password")]
    db_session.expire_all()
    assert user.reset_token_hash is not None
    assert user.reset_token_expires > datetime.utcnow()


def test_reset_password_with_valid_token(client, make_user, db_session):
    user = make_user(UserRole.CLIENT)
    user.reset_token_hash = hash_token("reset-me")
    user.reset_token_expires = datetime.utcnow() + timedelta(minutes=30)
    db_session.commit()

    response = client.post("/auth/reset-password", json={"token": "reset-me", "password": "NewPassw0rd"})
    reused = client.post("/auth/reset-password", json={"token": "reset-me", "password": "NewPassw0rd"})

    assert response.status_code == 200
    assert response.json()["data"] == {"email": user.email}
    assert reused.status_code == 400
    db_session.expire_all()
    assert verify_password("NewPassw0rd", user.password_hash)
    assert user.reset_token_hash is None
    assert user.reset_token_expires is None


def test_reset_password_with_expired_token(client, make_user, db_session):
    user = make_user(UserRole.CLIENT)
    user.reset_token_hash = hash_token("stale")
    user.reset_token_expires = datetime.utcnow() - timedelta(minutes=1)
    db_session.commit()

    response = client.post("/auth/reset-password", json={"token": "stale", "password": "NewPassw0rd"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid or expired reset token"


def test_reset_password_requires_mixed_characters(client, make_user, db_session):
    user = make_user(UserRole.CLIENT)
    user.reset_token_hash = hash_token("reset-me")
    user.reset_token_expires = datetime.utcnow() + timedelta(minutes=30)
    db_session.commit()

    response = client.post("/auth/reset-password", json={"token": "reset-me", "password": "alllowercase1"})

    assert response.status_code == 400
    db_session.expire_all()
    assert verify_password("password123", user.password_hash)


# ===== Invite administration =====

def test_admin_creates_invite_code(client, admin, headers_for):
    response = client.post(
        "/admin/invite-codes",
        json={"role": "AGENT", "expires_in_days": 30, "max_uses": 5, "purpose": "ONBOARDING"},
        headers=headers_for(admin),
    )

    assert response.status_code == 201
    invite = response.json()["data"]["invite_code"]
    assert invite["code"].startswith("agent-")
    assert len(invite["code"]) == len("agent-") + 16
    assert invite["max_uses"] == 5
    assert invite["purpose"] == "ONBOARDING"


def test_client_invite_codes_are_not_allowed(client, admin, headers_for):
    response = client.post("/admin/invite-codes", json={"role": "CLIENT"}, headers=headers_for(admin))

    assert response.status_code == 400


def test_invite_code_bounds_are_validated(client, admin, headers_for):
    response = client.post(
        "/admin/invite-codes", json={"role": "AGENT", "expires_in_days": 400}, headers=headers_for(admin)
    )

    assert response.status_code == 422
    assert "expires_in_days" in response.json()["errors"]


def test_list_invite_codes_filters_by_status(client, admin, make_invite, headers_for):
    make_invite(UserRole.AGENT)
    make_invite(UserRole.AGENT, expires_at=datetime.utcnow() - timedelta(days=1))
    make_invite(UserRole.ADMIN, used_count=1)

    def codes(status):
        response = client.get("/admin/invite-codes", params={"status": status}, headers=headers_for(admin))
        return response.json()["data"]["invite_codes"]

    assert len(codes("active")) == 1
    assert len(codes("expired")) == 1
    assert [c["role"] for c in codes("exhausted")] == ["ADMIN"]


def test_delete_deactivates_invite_code(client, admin, make_invite, headers_for, db_session):
    invite = make_invite()

    response = client.delete(f"/admin/invite-codes/{invite.id}", headers=headers_for(admin))

    assert response.status_code == 200
    db_session.expire_all()
    assert invite.is_active is False
    assert db_session.query(InviteCode).count() == 1


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"is_active": False}, "This invite code has been deactivated"),
        ({"expires_at": datetime.utcnow() - timedelta(minutes=1)}, "This invite code has expired"),
        ({"used_count": 1}, "This invite code has reached its usage limit"),
    ],
)
def test_validate_reports_each_failure(client, make_invite, overrides, message):
    invite = make_invite(**overrides)

    response = client.post("/admin/invite-codes/validate", json={"code": invite.code})

    assert response.status_code == 403
    assert response.json()["error"] == message


def test_validate_unknown_code(client):
    response = client.post("/admin/invite-codes/validate", json={"code": "agent-missing"})

    assert response.status_code == 403
    assert response.json()["error"] == "Invalid or expired invite code"


def test_validate_returns_role(client, make_invite):
    invite = make_invite(UserRole.ADMIN)

    response = client.post("/admin/invite-codes/validate", json={"code": invite.code})

    assert response.status_code == 200
    assert response.json()["data"] == {"valid": True, "role": "ADMIN"}
