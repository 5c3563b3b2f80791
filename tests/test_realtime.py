import asyncio
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState
from djrequests.main import app
from djrequests.routers.events import get_event_service
from djrequests.routers.requests import get_request_service
from djrequests.schemas.event import EventCreate
from djrequests.services.broadcaster import (
    QUEUE_UPDATE,
    REQUEST_ADDED,
    ConnectionManager,
)
from djrequests.services.event_service import EventService
from djrequests.services.request_service import RequestService
from tests.conftest import TEST_TABLE_NAME


class FakeWebSocket:
    def __init__(self, fail=False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)


class TestConnectionManager:
    def test_broadcast_scoped_to_slug(self):
        registry = ConnectionManager()
        party = FakeWebSocket()
        wedding = FakeWebSocket()
        registry.subscribe(party, "party")
        registry.subscribe(wedding, "wedding")

        delivered = asyncio.run(registry.broadcast_queue_update("party"))

        assert delivered == 1
        assert party.sent[0]["type"] == QUEUE_UPDATE
        assert isinstance(party.sent[0]["timestamp"], int)
        assert wedding.sent == []

    def test_resubscribe_is_last_wins(self):
        registry = ConnectionManager()
        websocket = FakeWebSocket()
        registry.subscribe(websocket, "party")
        registry.subscribe(websocket, "wedding")

        assert registry.subscribers("party") == []
        assert registry.subscribers("wedding") == [websocket]
        assert registry.subscribed_slug(websocket) == "wedding"

    def test_unsubscribe(self):
        registry = ConnectionManager()
        websocket = FakeWebSocket()
        registry.subscribe(websocket, "party")

        registry.unsubscribe(websocket)
        registry.unsubscribe(websocket)

        assert registry.subscribers("party") == []
        assert registry.subscribed_slug(websocket) is None

    def test_failed_send_drops_connection(self):
        registry = ConnectionManager()
        healthy = FakeWebSocket()
        broken = FakeWebSocket(fail=True)
        registry.subscribe(healthy, "party")
        registry.subscribe(broken, "party")

        delivered = asyncio.run(registry.broadcast_request_played("party", "req-1"))

        assert delivered == 1
        assert healthy.sent[0]["requestId"] == "req-1"
        assert registry.subscribers("party") == [healthy]

    def test_closed_connection_skipped(self):
        registry = ConnectionManager()
        closed = FakeWebSocket()
        closed.client_state = WebSocketState.DISCONNECTED
        registry.subscribe(closed, "party")

        delivered = asyncio.run(registry.broadcast_visibility_toggle("party", False))

        assert delivered == 0
        assert closed.sent == []


@pytest.fixture
def client(dynamodb_resource):
    """Create test client with overridden dependencies"""
    app.dependency_overrides[get_event_service] = lambda: EventService(
        dynamodb_resource, TEST_TABLE_NAME
    )
    app.dependency_overrides[get_request_service] = lambda: RequestService(
        dynamodb_resource, TEST_TABLE_NAME
    )

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides = {}


@pytest.fixture
def event(dynamodb_resource):
    return EventService(dynamodb_resource, TEST_TABLE_NAME).create_event(
        "dj-1", EventCreate(name="Live Night", is_recurring=True)
    )


def test_subscribe_acknowledged(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "subscribe", "eventSlug": "party"})
        ack = websocket.receive_json()

        assert ack["type"] == "subscribed"
        assert ack["eventSlug"] == "party"
        assert "timestamp" in ack


def test_malformed_messages_ignored(client):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("not json")
        websocket.send_json(["subscribe"])
        websocket.send_json({"type": "subscribe"})
        websocket.send_json({"type": "subscribe", "eventSlug": "party"})

        assert websocket.receive_json()["eventSlug"] == "party"


def test_new_request_pushed_to_subscribers(client, event):
    with client.websocket_connect("/ws") as websocket:
        websocket.send_json({"type": "subscribe", "eventSlug": event.slug})
        websocket.receive_json()

        response = client.post(
            f"/api/events/{event.slug}/requests",
            json={"song_name": "Blinding Lights", "artist": "The Weeknd"},
        )
        assert response.status_code == 201

        message = websocket.receive_json()
        assert message["type"] == REQUEST_ADDED
        assert message["request"]["id"] == response.json()["request"]["id"]
        assert message["request"]["song_name"] == "Blinding Lights"
        assert "upvoters" not in message["request"]
