"""HTTP and WebSocket surface."""
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from starlette.websockets import WebSocketDisconnect

from messenger.config import AUTH_ALGORITHM, AUTH_SECRET
from messenger.main import create_app
from messenger.ws.fanout_hub import FanoutHub
from tests.conftest import ALICE, BOB, CAROL


def auth(user_id):
    token = jwt.encode({"sub": user_id}, AUTH_SECRET, algorithm=AUTH_ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def ws_url(user_id):
    return "/ws?token=" + jwt.encode({"sub": user_id}, AUTH_SECRET, algorithm=AUTH_ALGORITHM)


@pytest.fixture
def hub():
    return FanoutHub()


@pytest.fixture
def client(engine, hub):
    with TestClient(create_app(engine=engine, hub=hub)) as client:
        yield client


@pytest.fixture
def conversation(client):
    response = client.post("/api/conversations", json={"other_user_id": BOB}, headers=auth(ALICE))
    return response.json()


def test_requires_bearer_token(client):
    assert client.get("/api/conversations").status_code == 401
    assert client.get("/api/conversations", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_create_or_get_conversation(client):
    created = client.post("/api/conversations", json={"other_user_id": BOB}, headers=auth(ALICE))
    fetched = client.post("/api/conversations", json={"other_user_id": ALICE}, headers=auth(BOB))

    assert created.status_code == 201
    assert fetched.status_code == 200
    assert fetched.json()["id"] == created.json()["id"]
    assert created.json()["last_message"] is None


def test_conversation_with_self_is_rejected(client):
    response = client.post("/api/conversations", json={"other_user_id": ALICE}, headers=auth(ALICE))

    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "invalid_participants"


def test_send_retry_and_list(client, conversation):
    url = f"/api/conversations/{conversation['id']}/messages"

    first = client.post(url, json={"body": "hi", "client_nonce": "n1"}, headers=auth(BOB))
    retry = client.post(url, json={"body": "hi", "client_nonce": "n1"}, headers=auth(BOB))

    assert first.status_code == 201
    assert retry.status_code == 200
    assert retry.json()["id"] == first.json()["id"]

    listed = client.get(url, params={"page": 0, "size": 50}, headers=auth(ALICE))
    assert listed.status_code == 200
    assert [m["id"] for m in listed.json()] == [first.json()["id"]]

    inbox = client.get("/api/conversations", headers=auth(ALICE)).json()
    assert inbox[0]["last_message"]["id"] == first.json()["id"]
    assert inbox[0]["unread_count"] == 1


def test_error_kinds(client, conversation):
    url = f"/api/conversations/{conversation['id']}/messages"

    outsider = client.post(url, json={"body": "hi"}, headers=auth(CAROL))
    assert outsider.status_code == 403
    assert outsider.json() == {"error": {
        "kind": "not_participant",
        "message": "You are not a participant in this conversation",
        "retriable": False,
    }}

    empty = client.post(url, json={"body": "  "}, headers=auth(BOB))
    assert empty.status_code == 422
    assert empty.json()["error"]["kind"] == "empty_body"

    bad_page = client.get(url, params={"page": -1}, headers=auth(ALICE))
    assert bad_page.status_code == 400
    assert bad_page.json()["error"]["kind"] == "invalid_page"

    missing = client.post("/api/conversations/999/messages", json={"body": "hi"}, headers=auth(BOB))
    assert missing.status_code == 404
    assert missing.json()["error"]["kind"] == "conversation_not_found"


def test_delivery_status_endpoints(client, conversation):
    sent = client.post(
        f"/api/conversations/{conversation['id']}/messages", json={"body": "hi"}, headers=auth(BOB)
    ).json()

    read = client.post(f"/api/messages/{sent['id']}/read", headers=auth(ALICE))
    late_ack = client.post(f"/api/messages/{sent['id']}/delivered", headers=auth(ALICE))
    own = client.post(f"/api/messages/{sent['id']}/read", headers=auth(BOB))

    assert read.json()["status"] == "read"
    assert late_ack.json()["status"] == "read"
    assert own.status_code == 404
    assert own.json()["error"]["kind"] == "status_not_found"

    statuses = client.get(f"/api/messages/{sent['id']}/statuses", headers=auth(BOB)).json()
    assert [(s["user_id"], s["status"]) for s in statuses] == [(ALICE, "read")]


def test_mark_conversation_read(client, conversation):
    url = f"/api/conversations/{conversation['id']}/messages"
    for body in ("one", "two"):
        client.post(url, json={"body": body}, headers=auth(BOB))

    response = client.post(f"/api/conversations/{conversation['id']}/read", headers=auth(ALICE))

    assert response.json() == {"updated": 2}
    assert client.get("/api/conversations", headers=auth(ALICE)).json()[0]["unread_count"] == 0


def test_websocket_receives_new_messages(client, conversation, hub):
    with client.websocket_connect(ws_url(ALICE)) as socket:
        hello = socket.receive_json()
        assert hello["event"] == "connection_established"
        assert hello["user_id"] == ALICE

        socket.send_json({"action": "subscribe", "conversation_id": conversation["id"]})
        assert socket.receive_json() == {"event": "subscribed", "conversation_id": conversation["id"]}

        sent = client.post(
            f"/api/conversations/{conversation['id']}/messages",
            json={"body": "live", "client_nonce": "ws-1"},
            headers=auth(BOB),
        ).json()

        pushed = socket.receive_json()
        assert pushed["event"] == "message.created"
        assert pushed["payload"]["id"] == sent["id"]
        assert pushed["payload"]["body"] == "live"

        socket.send_json({"action": "unsubscribe", "conversation_id": conversation["id"]})
        assert socket.receive_json()["event"] == "unsubscribed"
        assert hub.subscribers(conversation["id"]) == []


def test_websocket_rejects_outsiders_and_bad_frames(client, conversation):
    with client.websocket_connect(ws_url(CAROL)) as socket:
        socket.receive_json()

        socket.send_json({"action": "subscribe", "conversation_id": conversation["id"]})
        assert socket.receive_json()["kind"] == "not_participant"

        socket.send_json({"action": "dance", "conversation_id": conversation["id"]})
        assert socket.receive_json()["kind"] == "invalid_action"

        socket.send_json({"action": "subscribe", "conversation_id": "1"})
        assert socket.receive_json()["kind"] == "invalid_frame"


def test_websocket_requires_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws?token=garbage"):
            pass


def test_closed_socket_is_dropped_from_hub(client, conversation, hub):
    with client.websocket_connect(ws_url(ALICE)) as socket:
        socket.receive_json()
        socket.send_json({"action": "subscribe", "conversation_id": conversation["id"]})
        socket.receive_json()
        assert len(hub.subscribers(conversation["id"])) == 1

    response = client.post(
        f"/api/conversations/{conversation['id']}/messages", json={"body": "anyone?"}, headers=auth(BOB)
    )

    assert response.status_code == 201
    assert hub.subscribers(conversation["id"]) == []


def test_health_and_metrics(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert "messages_admitted_total" in client.get("/metrics").json()["counters"]
