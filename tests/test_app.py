from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import app as app_module
import routers.chats
import routers.meetings
from relay.hub import RelayHub


class FakeBackend:
    """In-memory stand-in for RedisBackend with the same method surface."""

    def __init__(self) -> None:
        self.meetings: dict[str, dict] = {}
        self.participants: dict[str, set[str]] = {}
        self.chats: dict[str, set[str]] = {}

    def create_meeting(self, meeting_id: str, host: str):
        self.meetings[meeting_id] = {
            "meetingId": meeting_id,
            "host": host,
            "isActive": True,
            "startTime": datetime.now().isoformat(),
        }
        self.participants[meeting_id] = {host}
        return self.get_meeting(meeting_id)

    def get_meeting(self, meeting_id: str):
        if meeting_id not in self.meetings:
            return None
        return {**self.meetings[meeting_id], "participants": sorted(self.participants[meeting_id])}

    def add_participant(self, meeting_id: str, user_id: str):
        self.participants[meeting_id].add(user_id)
        return True

    def end_meeting(self, meeting_id: str):
        self.meetings[meeting_id].update(isActive=False, endTime=datetime.now().isoformat())
        return True

    def set_chat_members(self, chat_id: str, user_ids):
        self.chats[chat_id] = set(user_ids)
        return True

    def get_chat_members(self, chat_id: str):
        return set(self.chats.get(chat_id, set()))


@pytest.fixture
def backend(monkeypatch) -> FakeBackend:
    fake = FakeBackend()
    monkeypatch.setattr(routers.meetings, "redis_backend", fake)
    monkeypatch.setattr(routers.chats, "redis_backend", fake)
    return fake


@pytest.fixture
def relay_hub(monkeypatch, backend) -> RelayHub:
    hub = RelayHub(membership_resolver=backend)
    monkeypatch.setattr(app_module, "relay_hub", hub)
    return hub


@pytest.fixture
def client(relay_hub):
    with TestClient(app_module.app) as test_client:
        yield test_client


def setup_socket(ws, user_id: str) -> None:
    ws.send_json({"event": "setup", "data": {"userId": user_id}})
    assert ws.receive_json() == {"event": "connected", "data": None}


def test_call_flow_over_websocket(client) -> None:
    with client.websocket_connect("/ws") as ws_a:
        setup_socket(ws_a, "A")

        ws_a.send_json({"event": "direct-call", "data": {"targetUserId": "B", "fromUser": {"_id": "A", "name": "Ann"}, "meetingId": "m1"}})
        error = ws_a.receive_json()
        assert error["event"] == "call-error"
        assert error["data"]["meetingId"] == "m1"

        with client.websocket_connect("/ws") as ws_b:
            setup_socket(ws_b, "B")

            ws_a.send_json({"event": "direct-call", "data": {"targetUserId": "B", "fromUser": {"_id": "A", "name": "Ann"}, "meetingId": "m2"}})
            assert ws_b.receive_json() == {
                "event": "incoming-call",
                "data": {"fromUser": {"_id": "A", "name": "Ann"}, "meetingId": "m2"},
            }

            ws_b.send_json({"event": "accept-call", "data": {"toUserId": "A", "meetingId": "m2"}})
            assert ws_a.receive_json() == {"event": "call-accepted", "data": {"meetingId": "m2"}}


def test_message_fanout_over_websocket(client) -> None:
    message = {"_id": "msg1", "content": "hi", "sender": {"_id": "A"}, "chat": {"_id": "chat42", "users": ["A", "B"]}}
    with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b1, client.websocket_connect("/ws") as ws_b2:
        setup_socket(ws_a, "A")
        setup_socket(ws_b1, "B")
        setup_socket(ws_b2, "B")

        ws_a.send_json({"event": "new message", "data": message})

        assert ws_b1.receive_json() == {"event": "message received", "data": message}
        assert ws_b2.receive_json() == {"event": "message received", "data": message}


def test_message_without_members_uses_stored_membership(client, backend) -> None:
    backend.set_chat_members("chat42", ["A", "B"])
    message = {"content": "hi", "sender": {"_id": "A"}, "chat": {"_id": "chat42"}}
    with client.websocket_connect("/ws") as ws_a, client.websocket_connect("/ws") as ws_b:
        setup_socket(ws_a, "A")
        setup_socket(ws_b, "B")

        ws_a.send_json({"event": "new message", "data": message})

        assert ws_b.receive_json() == {"event": "message received", "data": message}


def test_malformed_frame_keeps_connection_open(client) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_text("definitely not json")
        ws.send_json({"event": "direct-call", "data": {"meetingId": "m1"}})
        setup_socket(ws, "A")


def test_health_reports_live_counts(client, relay_hub) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "connections": 0, "users": 0, "rooms": 0, "ringing_calls": 0}


def test_create_and_join_meeting(client, backend) -> None:
    created = client.post("/api/meeting", headers={"X-User-Id": "A"})
    assert created.status_code == 201
    meeting_id = created.json()["meetingId"]
    assert created.json()["participants"] == ["A"]

    joined = client.get(f"/api/meeting/{meeting_id}", headers={"X-User-Id": "B"})
    assert joined.status_code == 200
    assert joined.json()["participants"] == ["A", "B"]
    assert backend.participants[meeting_id] == {"A", "B"}


def test_meeting_requires_identity(client) -> None:
    assert client.post("/api/meeting").status_code == 401


def test_unknown_or_ended_meeting_is_not_found(client) -> None:
    assert client.get("/api/meeting/nope", headers={"X-User-Id": "A"}).status_code == 404

    meeting_id = client.post("/api/meeting", headers={"X-User-Id": "A"}).json()["meetingId"]
    assert client.post(f"/api/meeting/{meeting_id}/end", headers={"X-User-Id": "B"}).status_code == 403

    ended = client.post(f"/api/meeting/{meeting_id}/end", headers={"X-User-Id": "A"})
    assert ended.status_code == 200
    assert ended.json()["isActive"] is False
    assert client.get(f"/api/meeting/{meeting_id}", headers={"X-User-Id": "A"}).status_code == 404


def test_chat_membership_routes(client, backend) -> None:
    forbidden = client.put("/api/chat/chat42/users", json={"users": ["B", "C"]}, headers={"X-User-Id": "A"})
    assert forbidden.status_code == 403

    stored = client.put("/api/chat/chat42/users", json={"users": ["B", "A", "A"]}, headers={"X-User-Id": "A"})
    assert stored.status_code == 200
    assert stored.json() == {"chatId": "chat42", "users": ["A", "B"]}

    assert client.get("/api/chat/chat42/users", headers={"X-User-Id": "B"}).json()["users"] == ["A", "B"]
    assert client.get("/api/chat/chat42/users", headers={"X-User-Id": "C"}).status_code == 403
    assert client.get("/api/chat/other/users", headers={"X-User-Id": "A"}).status_code == 404
