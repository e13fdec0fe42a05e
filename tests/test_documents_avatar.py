from types import SimpleNamespace

import requests
from sqlalchemy import update

from app import config
from app.integrations import uploadthing
from app.models import Document, DocumentStatus, DocumentType, User, UserRole

PDF = ("passport.pdf", b"%PDF-1.4 test", "application/pdf")
PNG = ("me.png", b"\x89PNG fake image", "image/png")

# Captured before the autouse fixture swaps in the in-memory fake
REAL_UPLOAD_FILE = uploadthing.upload_file


def add_document(db_session, case, uploader, **kwargs):
    document = Document(
        case_id=case.id,
        uploaded_by_id=uploader.id,
        file_name="passport.pdf",
        original_name="passport.pdf",
        file_path="https://utfs.io/f/abc123",
        file_key="abc123",
        file_size=100,
        mime_type="application/pdf",
        document_type=DocumentType.PASSPORT,
        **kwargs,
    )
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


# ===== Documents =====

def test_upload_document_stores_file_and_notifies_agent(
    client, agent, client_user, make_case, headers_for, integrations
):
    case = make_case(client_user, assigned_agent_id=agent.id)

    response = client.post(
        "/documents/upload",
        files={"file": PDF},
        data={"case_id": case.id, "document_type": "PASSPORT"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 201
    document = response.json()["data"]["document"]
    assert document["status"] == "PENDING"
    assert document["original_name"] == "passport.pdf"
    assert document["file_path"].startswith("https://utfs.io/f/")
    assert integrations.uploads == [("passport.pdf", "application/pdf", len(PDF[1]))]
    assert integrations.realtime[-1][0] == agent.id


def test_upload_rejects_unsupported_type(client, client_user, make_case, headers_for, integrations):
    case = make_case(client_user)

    response = client.post(
        "/documents/upload",
        files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
        data={"case_id": case.id, "document_type": "OTHER"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 400
    assert integrations.uploads == []


def test_metadata_create_requires_fields(client, client_user, headers_for):
    response = client.post("/documents", json={"file_name": "a.pdf"}, headers=headers_for(client_user))

    assert response.status_code == 400


def test_client_only_lists_own_documents(client, make_user, make_case, headers_for, db_session):
    owner = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)
    add_document(db_session, make_case(owner), owner)
    add_document(db_session, make_case(other), other)

    response = client.get("/documents", headers=headers_for(owner))

    data = response.json()["data"]
    assert data["pagination"]["total"] == 1
    assert data["pagination"]["limit"] == 20
    assert data["documents"][0]["uploaded_by_id"] == owner.id


def test_reject_requires_reason(client, agent, client_user, make_case, headers_for, db_session):
    document = add_document(db_session, make_case(client_user), client_user)

    response = client.patch(f"/documents/{document.id}/reject", json={"reason": " "}, headers=headers_for(agent))

    assert response.status_code == 400


def test_reject_and_approve_notify_client(client, agent, client_user, make_case, headers_for, db_session, integrations):
    case = make_case(client_user)
    rejected = add_document(db_session, case, client_user)
    approved = add_document(db_session, case, client_user)

    reject = client.patch(f"/documents/{rejected.id}/reject", json={"reason": "Blurry scan"}, headers=headers_for(agent))
    approve = client.patch(f"/documents/{approved.id}/approve", headers=headers_for(agent))

    assert reject.json()["data"]["document"]["status"] == "REJECTED"
    assert reject.json()["data"]["document"]["rejection_reason"] == "Blurry scan"
    assert approve.json()["data"]["document"]["status"] == "APPROVED"
    assert approve.json()["data"]["document"]["verified_by"] == agent.id
    assert [to for to, _ in integrations.emails] == [client_user.email, client_user.email]


def test_bulk_approve_only_touches_pending(client, admin, client_user, make_case, headers_for, db_session):
    case = make_case(client_user)
    pending = add_document(db_session, case, client_user)
    rejected = add_document(db_session, case, client_user, status=DocumentStatus.REJECTED)

    response = client.post(
        "/documents/bulk/approve",
        json={"document_ids": [pending.id, rejected.id]},
        headers=headers_for(admin),
    )

    assert response.json()["data"] == {"approved_count": 1}
    db_session.expire_all()
    assert pending.status == DocumentStatus.APPROVED
    assert rejected.status == DocumentStatus.REJECTED


def test_delete_document_removes_stored_file(client, client_user, make_case, headers_for, db_session, integrations):
    document = add_document(db_session, make_case(client_user), client_user)

    response = client.delete(f"/documents/{document.id}", headers=headers_for(client_user))

    assert response.status_code == 200
    assert integrations.deleted_keys == ["abc123"]


# ===== Avatar =====

def test_avatar_upload_replaces_previous_file(client, make_user, headers_for, db_session, integrations):
    user = make_user(UserRole.CLIENT, avatar_url="https://utfs.io/f/old-avatar")

    response = client.post("/users/avatar", files={"file": PNG}, headers=headers_for(user))

    assert response.status_code == 200
    new_url = response.json()["data"]["avatar_url"]
    assert new_url.endswith("me.png")
    db_session.expire_all()
    assert user.avatar_url == new_url
    assert integrations.deleted_keys == ["old-avatar"]


def test_avatar_rejects_non_images(client, client_user, headers_for):
    response = client.post("/users/avatar", files={"file": PDF}, headers=headers_for(client_user))

    assert response.status_code == 400


def test_avatar_upload_losing_race_returns_conflict(
    client, make_user, headers_for, session_factory, db_session, monkeypatch, integrations
):
    user = make_user(UserRole.CLIENT, avatar_url="https://utfs.io/f/original")
    original_upload = uploadthing.upload_file

    def racing_upload(content, filename, content_type):
        # Another request switches the avatar while this upload is in flight
        other = session_factory()
        other.execute(update(User).where(User.id == user.id).values(avatar_url="https://utfs.io/f/winner"))
        other.commit()
        other.close()
        return original_upload(content, filename, content_type)

    monkeypatch.setattr(uploadthing, "upload_file", racing_upload)

    response = client.post("/users/avatar", files={"file": PNG}, headers=headers_for(user))

    assert response.status_code == 409
    assert response.json()["error"] == "Avatar was updated by another request. Please try again."
    assert integrations.deleted_keys == ["key-1-me.png"]
    db_session.expire_all()
    assert user.avatar_url == "https://utfs.io/f/winner"


def use_real_uploads(monkeypatch, slot_upload):
    """Run the real UploadThing client against a stubbed ``requests.post``."""
    monkeypatch.setattr(uploadthing, "upload_file", REAL_UPLOAD_FILE)
    monkeypatch.setattr(config, "UPLOADTHING_SECRET", "sk_test")

    def post(url, **kwargs):
        if url.endswith("/v6/uploadFiles"):
            slot = {"url": "https://slot.example/upload", "key": "slot-key", "fields": {}}
            return SimpleNamespace(status_code=200, text="", json=lambda: {"data": [slot]})
        return slot_upload(url, **kwargs)

    monkeypatch.setattr(uploadthing.requests, "post", post)


def test_avatar_storage_connection_error_returns_502(client, client_user, headers_for, monkeypatch):
    def refuse(url, **kwargs):
        raise requests.ConnectionError("connection refused")

    use_real_uploads(monkeypatch, refuse)

    response = client.post("/users/avatar", files={"file": PNG}, headers=headers_for(client_user))

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to upload avatar"


def test_document_storage_timeout_returns_502(client, client_user, make_case, headers_for, monkeypatch):
    def time_out(url, **kwargs):
        raise requests.ReadTimeout("read timed out")

    use_real_uploads(monkeypatch, time_out)
    case = make_case(client_user)

    response = client.post(
        "/documents/upload",
        files={"file": PDF},
        data={"case_id": case.id, "document_type": "PASSPORT"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to upload document"


def test_avatar_larger_than_limit_is_rejected(client, client_user, headers_for, integrations):
    oversized = ("big.png", b"\x89PNG" + b"0" * (4 * 1024 * 1024), "image/png")

    response = client.post("/users/avatar", files={"file": oversized}, headers=headers_for(client_user))

    assert response.status_code == 400
    assert integrations.uploads == []
