from datetime import datetime, timedelta

from app.models import DocumentTemplate, FAQ, LegalDocument, LegalDocumentType, ServiceType


def add_template(db_session, name, **kwargs):
    template = DocumentTemplate(
        name=name,
        file_url=f"https://utfs.io/f/{name}",
        file_name=f"{name}.pdf",
        category=kwargs.pop("category", "Forms"),
        **kwargs,
    )
    db_session.add(template)
    db_session.commit()
    db_session.refresh(template)
    return template


def add_legal(db_session, slug, type=LegalDocumentType.PRIVACY, **kwargs):
    document = LegalDocument(type=type, slug=slug, title=slug.title(), content="...", **kwargs)
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


# ===== Templates =====

def test_public_template_list_hides_inactive_and_filters(client, db_session):
    add_template(db_session, "visa-form", service_type=ServiceType.STUDENT_VISA)
    add_template(db_session, "work-form", service_type=ServiceType.WORK_PERMIT)
    add_template(db_session, "old-form", service_type=ServiceType.STUDENT_VISA, is_active=False)

    everything = client.get("/templates").json()["data"]
    student = client.get("/templates", params={"service_type": "STUDENT_VISA"}).json()["data"]

    assert everything["total"] == 2
    assert [t["name"] for t in student["templates"]] == ["visa-form"]


def test_get_template_counts_downloads(client, db_session):
    template = add_template(db_session, "checklist")

    client.get(f"/templates/{template.id}")
    response = client.get(f"/templates/{template.id}")

    assert response.json()["data"]["template"]["download_count"] == 2


def test_inactive_template_is_forbidden(client, db_session):
    template = add_template(db_session, "retired", is_active=False)

    assert client.get(f"/templates/{template.id}").status_code == 403
    assert client.get("/templates/missing").status_code == 404


def test_admin_manages_templates(client, admin, client_user, headers_for):
    payload = {"name": "Invitation letter", "file_url": "https://utfs.io/f/inv", "file_name": "inv.docx", "category": "Letters"}

    assert client.post("/templates", json=payload, headers=headers_for(client_user)).status_code == 403
    assert client.post("/templates", json={"name": "x"}, headers=headers_for(admin)).status_code == 400

    created = client.post("/templates", json=payload, headers=headers_for(admin))
    assert created.status_code == 201
    template_id = created.json()["data"]["template"]["id"]

    updated = client.patch(f"/templates/{template_id}", json={"is_required": True}, headers=headers_for(admin))
    assert updated.json()["data"]["template"]["is_required"] is True

    assert client.delete(f"/templates/{template_id}", headers=headers_for(admin)).status_code == 200
    assert client.get(f"/templates/{template_id}").status_code == 404


# ===== Legal documents =====

def test_latest_privacy_policy(client, db_session):
    now = datetime.utcnow()
    add_legal(db_session, "privacy-v1", published_at=now - timedelta(days=30))
    add_legal(db_session, "privacy-v2", published_at=now)
    add_legal(db_session, "terms-v1", type=LegalDocumentType.TERMS, published_at=now)

    response = client.get("/legal/privacy", params={"latest": True})

    assert response.json()["data"]["document"]["slug"] == "privacy-v2"


def test_include_inactive_is_admin_only(client, admin, client_user, headers_for, db_session):
    add_legal(db_session, "terms-live", type=LegalDocumentType.TERMS)
    add_legal(db_session, "terms-draft", type=LegalDocumentType.TERMS, is_active=False)

    public = client.get("/legal/terms", params={"include_inactive": True}, headers=headers_for(client_user))
    as_admin = client.get("/legal/terms", params={"include_inactive": True}, headers=headers_for(admin))

    assert [d["slug"] for d in public.json()["data"]["documents"]] == ["terms-live"]
    assert len(as_admin.json()["data"]["documents"]) == 2


def test_create_legal_document_validates_language_and_slug(client, admin, headers_for, db_session):
    add_legal(db_session, "privacy-en")
    base = {"title": "Privacy", "content": "Policy text"}

    bad_language = client.post("/legal/privacy", json={**base, "slug": "privacy-de", "language": "de"}, headers=headers_for(admin))
    duplicate = client.post("/legal/privacy", json={**base, "slug": "privacy-en", "language": "en"}, headers=headers_for(admin))
    created = client.post("/legal/privacy", json={**base, "slug": "privacy-fr", "language": "fr"}, headers=headers_for(admin))

    assert bad_language.status_code == 400
    assert duplicate.status_code == 409
    assert created.status_code == 201
    assert created.json()["data"]["document"]["type"] == "PRIVACY"


def test_update_with_wrong_type_is_not_found(client, admin, headers_for, db_session):
    document = add_legal(db_session, "privacy-main")

    response = client.put(f"/legal/terms/{document.id}", json={"title": "Terms"}, headers=headers_for(admin))

    assert response.status_code == 404


# ===== FAQ =====

def test_faq_list_is_ordered_and_language_scoped(client, db_session):
    db_session.add_all([
        FAQ(question="B2", answer="a", category="B", display_order=2),
        FAQ(question="B1", answer="a", category="B", display_order=1),
        FAQ(question="A1", answer="a", category="A", display_order=5),
        FAQ(question="FR", answer="a", category="A", language="fr"),
        FAQ(question="Hidden", answer="a", category="A", is_active=False),
    ])
    db_session.commit()

    data = client.get("/faq").json()["data"]

    assert [f["question"] for f in data["faqs"]] == ["A1", "B1", "B2"]
    assert data["categories"] == ["A", "B"]


def test_duplicate_faq_question_conflicts(client, admin, headers_for):
    payload = {"question": "How much does it cost?", "answer": "Depends", "category": "Fees"}

    assert client.post("/faq", json=payload, headers=headers_for(admin)).status_code == 201
    assert client.post("/faq", json=payload, headers=headers_for(admin)).status_code == 409


def test_explicit_nulls_leave_required_fields_untouched(client, admin, headers_for, db_session):
    template = add_template(db_session, "visa-checklist")
    faq = FAQ(question="Do I need a visa?", answer="Usually", category="Visas")
    db_session.add(faq)
    db_session.commit()

    template_response = client.patch(
        f"/templates/{template.id}", json={"name": None, "is_required": True}, headers=headers_for(admin)
    )
    faq_response = client.put(f"/faq/{faq.id}", json={"answer": None, "category": "Travel"}, headers=headers_for(admin))

    assert template_response.status_code == 200
    assert template_response.json()["data"]["template"]["name"] == "visa-checklist"
    assert template_response.json()["data"]["template"]["is_required"] is True
    assert faq_response.status_code == 200
    assert faq_response.json()["data"]["faq"]["answer"] == "Usually"
    assert faq_response.json()["data"]["faq"]["category"] == "Travel"
