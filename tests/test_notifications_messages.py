from app.integrations import email
from app.models import Message, MessageType, Notification, NotificationType, UserRole


def add_notification(db_session, user, title="Hello", is_read=False, type=NotificationType.SYSTEM_ANNOUNCEMENT):
    notification = Notification(user_id=user.id, type=type, title=title, message=f"{title} body", is_read=is_read)
    db_session.add(notification)
    db_session.commit()
    db_session.refresh(notification)
    return notification


# ===== Notifications =====

def test_list_returns_only_own_notifications_with_unread_count(client, make_user, headers_for, db_session):
    owner = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)
    add_notification(db_session, owner, "Visa update")
    add_notification(db_session, owner, "Read one", is_read=True)
    add_notification(db_session, other, "Not yours")

    response = client.get("/notifications", headers=headers_for(owner))

    data = response.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["unread_count"] == 1
    assert {n["user_id"] for n in data["notifications"]} == {owner.id}


def test_list_filters_by_status_and_search(client, client_user, headers_for, db_session):
    add_notification(db_session, client_user, "Passport approved")
    add_notification(db_session, client_user, "Passport rejected", is_read=True)
    add_notification(db_session, client_user, "New message")

    unread = client.get("/notifications", params={"status": "unread"}, headers=headers_for(client_user))
    search = client.get("/notifications", params={"search": "passport"}, headers=headers_for(client_user))

    assert len(unread.json()["data"]["notifications"]) == 2
    assert len(search.json()["data"]["notifications"]) == 2


def test_invalid_sort_column_is_rejected(client, client_user, headers_for):
    response = client.get("/notifications", params={"sort_by": "title"}, headers=headers_for(client_user))

    assert response.status_code == 422


def test_agent_creates_notification_with_realtime_fanout(client, agent, client_user, headers_for, integrations):
    response = client.post(
        "/notifications",
        json={"user_id": client_user.id, "title": "Reminder", "message": "Upload your photo", "send_push": True},
        headers=headers_for(agent),
    )

    assert response.status_code == 201
    notification = response.json()["data"]["notification"]
    assert integrations.realtime == [
        (client_user.id, notification["id"],
         {"type": "SYSTEM_ANNOUNCEMENT", "title": "Reminder", "message": "Upload your photo", "actionUrl": None})
    ]
    assert integrations.pushes == [("ExponentPushToken[client]", "Reminder")]


def test_client_cannot_create_notifications(client, client_user, headers_for):
    response = client.post(
        "/notifications",
        json={"user_id": client_user.id, "title": "x", "message": "y"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 403


def test_notification_for_unknown_user(client, admin, headers_for):
    response = client.post(
        "/notifications", json={"user_id": "missing", "title": "x", "message": "y"}, headers=headers_for(admin)
    )

    assert response.status_code == 404


def test_realtime_failure_does_not_break_request(client, admin, client_user, headers_for, monkeypatch):
    from app.integrations import firebase

    def broken(*args):
        raise RuntimeError("firebase down")

    monkeypatch.setattr(firebase, "push_realtime_notification", broken)

    response = client.post(
        "/notifications",
        json={"user_id": client_user.id, "title": "Still stored", "message": "body"},
        headers=headers_for(admin),
    )

    assert response.status_code == 201


def test_mark_read_is_owner_only(client, make_user, headers_for, db_session):
    owner = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)
    notification = add_notification(db_session, owner)

    forbidden = client.patch(f"/notifications/{notification.id}", headers=headers_for(other))
    allowed = client.patch(f"/notifications/{notification.id}", headers=headers_for(owner))

    assert forbidden.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["data"]["notification"]["is_read"] is True


def test_delete_is_owner_only(client, make_user, headers_for, db_session):
    owner = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)
    notification = add_notification(db_session, owner)

    assert client.delete(f"/notifications/{notification.id}", headers=headers_for(other)).status_code == 403
    assert client.delete(f"/notifications/{notification.id}", headers=headers_for(owner)).status_code == 200
    assert db_session.query(Notification).count() == 0


def test_mark_all_read_returns_count(client, make_user, headers_for, db_session):
    owner = make_user(UserRole.CLIENT)
    other = make_user(UserRole.CLIENT)
    add_notification(db_session, owner)
    add_notification(db_session, owner)
    add_notification(db_session, other)

    response = client.put("/notifications/mark-all-read", headers=headers_for(owner))

    assert response.json()["data"] == {"count": 2}
    assert db_session.query(Notification).filter(Notification.is_read.is_(False)).count() == 1


# ===== Messages =====

def test_send_chat_message_mirrors_and_notifies(client, agent, client_user, make_case, headers_for, integrations):
    case = make_case(client_user, assigned_agent_id=agent.id)

    response = client.post(
        "/messages",
        json={"recipient_id": agent.id, "content": "Hello agent", "case_id": case.id},
        headers=headers_for(client_user),
    )

    assert response.status_code == 201
    message = response.json()["data"]["message"]
    assert message["sender"]["id"] == client_user.id
    sender_id, recipient_id, mirrored = integrations.chat_messages[0]
    assert (sender_id, recipient_id) == (client_user.id, agent.id)
    assert mirrored["id"] == message["id"]
    assert integrations.realtime[-1][0] == agent.id
    assert integrations.pushes[-1][0] == "ExponentPushToken[agent]"


def test_send_message_requires_recipient_and_content(client, client_user, headers_for):
    response = client.post("/messages", json={"content": "  "}, headers=headers_for(client_user))

    assert response.status_code == 400


def test_client_cannot_message_on_foreign_case(client, make_user, agent, make_case, headers_for):
    owner = make_user(UserRole.CLIENT)
    intruder = make_user(UserRole.CLIENT)
    case = make_case(owner)

    response = client.post(
        "/messages",
        json={"recipient_id": agent.id, "content": "hi", "case_id": case.id},
        headers=headers_for(intruder),
    )

    assert response.status_code == 403


def test_mark_message_read_is_recipient_only(client, agent, client_user, headers_for, db_session):
    message = Message(sender_id=client_user.id, recipient_id=agent.id, content="hi")
    db_session.add(message)
    db_session.commit()

    assert client.patch(f"/messages/{message.id}/read", headers=headers_for(client_user)).status_code == 403
    response = client.patch(f"/messages/{message.id}/read", headers=headers_for(agent))
    assert response.status_code == 200
    assert response.json()["data"]["message"]["is_read"] is True


def test_list_messages_includes_sent_and_received(client, make_user, agent, headers_for, db_session):
    me = make_user(UserRole.CLIENT)
    stranger = make_user(UserRole.CLIENT)
    db_session.add_all([
        Message(sender_id=me.id, recipient_id=agent.id, content="out"),
        Message(sender_id=agent.id, recipient_id=me.id, content="in"),
        Message(sender_id=agent.id, recipient_id=stranger.id, content="other"),
    ])
    db_session.commit()

    response = client.get("/messages", headers=headers_for(me))

    assert {m["content"] for m in response.json()["data"]["messages"]} == {"out", "in"}


def test_incoming_email_reply_is_threaded(client, agent, client_user, headers_for, db_session, integrations):
    sent = client.post(
        "/messages",
        json={"recipient_id": client_user.id, "content": "Please confirm", "subject": "Your case", "message_type": "EMAIL"},
        headers=headers_for(agent),
    ).json()["data"]["message"]
    thread_id = sent["email_thread_id"]
    assert thread_id

    response = client.post(
        "/emails/incoming",
        json={"thread_id": thread_id, "sender_id": client_user.id, "content": "Confirmed"},
    )

    assert response.status_code == 201
    reply = response.json()["data"]["message"]
    assert reply["recipient_id"] == agent.id
    assert reply["email_thread_id"] == thread_id
    assert reply["subject"] == "Re: Your case"
    assert db_session.query(Message).filter(Message.message_type == MessageType.EMAIL).count() == 2


def test_incoming_email_unknown_thread(client, client_user):
    response = client.post(
        "/emails/incoming", json={"thread_id": "nope", "sender_id": client_user.id, "content": "hi"}
    )

    assert response.status_code == 404


def test_incoming_email_from_outsider_is_forbidden(client, make_user, agent, client_user, headers_for):
    outsider = make_user(UserRole.CLIENT)
    sent = client.post(
        "/messages",
        json={"recipient_id": client_user.id, "content": "hello", "message_type": "EMAIL"},
        headers=headers_for(agent),
    ).json()["data"]["message"]

    response = client.post(
        "/emails/incoming",
        json={"thread_id": sent["email_thread_id"], "sender_id": outsider.id, "content": "let me in"},
    )

    assert response.status_code == 403


def test_incoming_email_rejects_blank_content(client, agent, client_user, headers_for, db_session):
    sent = client.post(
        "/messages",
        json={"recipient_id": client_user.id, "content": "Any news?", "message_type": "EMAIL"},
        headers=headers_for(agent),
    ).json()["data"]["message"]

    response = client.post(
        "/emails/incoming",
        json={"thread_id": sent["email_thread_id"], "sender_id": client_user.id, "content": "   "},
    )

    assert response.status_code == 400
    assert db_session.query(Message).count() == 1


def test_email_message_content_is_escaped(client, agent, client_user, headers_for, monkeypatch):
    sent_html = []
    monkeypatch.setattr(email, "send_email", lambda to, subject, html, text=None: sent_html.append(html) or True)
    link = '<a href="https://evil.example/login">Reset your password</a>'

    response = client.post(
        "/messages",
        json={"recipient_id": agent.id, "content": link, "message_type": "EMAIL"},
        headers=headers_for(client_user),
    )

    assert response.status_code == 201
    assert len(sent_html) == 1
    assert link not in sent_html[0]
    assert "&lt;a href=&quot;https://evil.example/login&quot;&gt;" in sent_html[0]


def test_document_rejection_reason_is_escaped(monkeypatch):
    sent_html = []
    monkeypatch.setattr(email, "send_email", lambda to, subject, html, text=None: sent_html.append(html) or True)

    email.send_document_rejected_email("c@example.com", "<b>scan</b>.pdf", "<script>x</script>", "Ann & Bob")

    assert "<script>" not in sent_html[0]
    assert "&lt;b&gt;scan&lt;/b&gt;.pdf" in sent_html[0]
    assert "Ann &amp; Bob" in sent_html[0]
