import csv
import io

from app import config
from app.models import ActivityLog, FAQ, InviteCode, User, UserRole
from app.seed import SEED_FAQS, run_seed


# ===== Seed =====

def test_seed_creates_admin_invites_and_faqs(db_session):
    run_seed(db_session)

    admin = db_session.query(User).filter(User.email == config.ADMIN_EMAIL).one()
    assert admin.role == UserRole.ADMIN
    invites = {invite.purpose: invite for invite in db_session.query(InviteCode).all()}
    assert invites["SEED_AGENT"].role == UserRole.AGENT
    assert invites["SEED_AGENT"].max_uses == 10
    assert invites["SEED_ADMIN"].role == UserRole.ADMIN
    assert invites["SEED_ADMIN"].max_uses == 1
    assert db_session.query(FAQ).count() == len(SEED_FAQS)


def test_seed_is_idempotent(db_session):
    run_seed(db_session)
    run_seed(db_session)

    assert db_session.query(User).count() == 1
    assert db_session.query(InviteCode).count() == 2
    assert db_session.query(FAQ).count() == len(SEED_FAQS)


def test_seed_admin_with_mixed_case_email_can_log_in(client, db_session, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAIL", "Ops.Admin@PatrickTravel.com")

    run_seed(db_session)

    assert db_session.query(User).filter(User.email == "ops.admin@patricktravel.com").count() == 1
    response = client.post(
        "/auth/login", data={"username": "Ops.Admin@PatrickTravel.com", "password": config.ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    assert response.json()["role"] == "ADMIN"


def test_seed_refreshes_existing_faq_answers(db_session):
    db_session.add(FAQ(question=SEED_FAQS[0]["question"], answer="stale", category="Old"))
    db_session.commit()

    run_seed(db_session)

    faq = db_session.query(FAQ).filter(FAQ.question == SEED_FAQS[0]["question"]).one()
    assert faq.answer == SEED_FAQS[0]["answer"]
    assert db_session.query(FAQ).count() == len(SEED_FAQS)


# ===== User administration =====

def test_admin_deactivates_user_and_logs_it(client, admin, client_user, headers_for, db_session):
    response = client.patch(f"/users/{client_user.id}", json={"is_active": False}, headers=headers_for(admin))

    assert response.status_code == 200
    assert client.get("/auth/me", headers=headers_for(client_user)).status_code == 403
    assert db_session.query(ActivityLog).filter(ActivityLog.user_id == admin.id).count() == 1


def test_admin_cannot_deactivate_self(client, admin, headers_for):
    response = client.patch(f"/users/{admin.id}", json={"is_active": False}, headers=headers_for(admin))

    assert response.status_code == 400


def test_client_reads_only_own_profile(client, make_user, headers_for):
    me = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)

    assert client.get(f"/users/{me.id}", headers=headers_for(me)).status_code == 200
    assert client.get(f"/users/{other.id}", headers=headers_for(me)).status_code == 403


# ===== Activity logs =====

def test_activity_logs_filter_and_export(client, admin, client_user, headers_for, db_session):
    db_session.add_all([
        ActivityLog(user_id=client_user.id, action="CASE_CREATED", description="Created case PT-1"),
        ActivityLog(user_id=client_user.id, action="PASSWORD_CHANGED", description="Changed password"),
        ActivityLog(user_id=admin.id, action="CASE_CREATED", description="Created case PT-2", details={"caseId": "x"}),
    ])
    db_session.commit()

    listed = client.get("/admin/activity-logs", params={"action": "CASE_CREATED"}, headers=headers_for(admin))
    exported = client.get(
        "/admin/activity-logs/export", params={"user_id": client_user.id}, headers=headers_for(admin)
    )

    assert listed.json()["data"]["pagination"]["total"] == 2
    assert exported.status_code == 200
    assert exported.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(io.StringIO(exported.text)))
    assert rows[0][0] == "timestamp"
    assert {row[3] for row in rows[1:]} == {"CASE_CREATED", "PASSWORD_CHANGED"}


def test_activity_logs_are_admin_only(client, agent, headers_for):
    assert client.get("/admin/activity-logs", headers=headers_for(agent)).status_code == 403
