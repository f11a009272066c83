import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import login


def token_of(headers):
    return headers["Authorization"].split(" ", 1)[1]


def send(client, headers, content, recipient=None):
    body = {"content": content}
    if recipient:
        body["recipientUsername"] = recipient
    return client.post("/api/messages", json=body, headers=headers)


def test_student_writes_to_tpo_desk(client, student_headers, tpo_headers):
    response = send(client, student_headers, "  When is the next drive?  ")

    assert response.status_code == 201
    message = response.json()
    assert message["recipientUsername"] == "TPO Admin"
    assert message["senderRole"] == "student"
    assert message["content"] == "When is the next drive?"
    assert message["isRead"] is False


def test_tpo_must_name_recipient(client, tpo_headers):
    assert send(client, tpo_headers, "Hello").status_code == 422
    assert send(client, tpo_headers, "Hello", recipient="TPO Admin").status_code == 422
    assert send(client, tpo_headers, "   ", recipient="alice").status_code == 422


def test_conversations_and_unread(client, student_headers, tpo_headers):
    bob = login(client, "bob")
    send(client, student_headers, "First from alice")
    send(client, bob, "Hi from bob")
    send(client, student_headers, "Second from alice")
    send(client, tpo_headers, "Reply to bob", recipient="bob")

    conversations = client.get("/api/messages/conversations", headers=tpo_headers).json()
    assert [c["studentUsername"] for c in conversations] == ["bob", "alice"]
    assert conversations[0]["lastMessage"] == "Reply to bob"
    assert conversations[1]["unreadCount"] == 2
    assert conversations[0]["unreadCount"] == 1

    assert client.get("/api/messages/unread-count", headers=tpo_headers).json() == {"count": 3}
    assert client.get("/api/messages/unread-count", headers=bob).json() == {"count": 1}

    thread = client.get("/api/messages/thread/alice", headers=tpo_headers).json()
    assert [m["content"] for m in thread] == ["First from alice", "Second from alice"]
    assert client.get("/api/messages/unread-count", headers=tpo_headers).json() == {"count": 1}


def test_conversations_are_tpo_only(client, student_headers):
    response = client.get("/api/messages/conversations", headers=student_headers)
    assert response.status_code == 403


def test_realtime_delivers_own_messages_only(client, student_headers, tpo_headers):
    bob = login(client, "bob")

    with client.websocket_connect(f"/api/realtime/messages?token={token_of(bob)}") as feed:
        send(client, student_headers, "Not for bob")
        send(client, tpo_headers, "Interview on Friday", recipient="bob")

        event = feed.receive_json()
        assert event["type"] == "INSERT"
        assert event["table"] == "messages"
        assert event["record"]["content"] == "Interview on Friday"
        assert event["record"]["sender_username"] == "TPO Admin"


def test_realtime_tpo_sees_student_messages(client, student_headers, tpo_headers):
    with client.websocket_connect(f"/api/realtime/messages?token={token_of(tpo_headers)}") as feed:
        send(client, student_headers, "Resume question")
        assert feed.receive_json()["record"]["sender_username"] == "alice"


def test_realtime_rejects_bad_token_and_table(client, student_headers):
    with pytest.raises(WebSocketDisconnect) as err:
        with client.websocket_connect("/api/realtime/messages?token=nope"):
            pass
    assert err.value.code == 4403

    with pytest.raises(WebSocketDisconnect) as err:
        with client.websocket_connect(f"/api/realtime/students?token={token_of(student_headers)}"):
            pass
    assert err.value.code == 4403
