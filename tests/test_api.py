"""
Tests for Baruc API endpoints.

The app runs its real lifespan with a BarucBot preset on ``app.state.bot``
(fake transport and workflows), so no bridge or Google service is needed.
"""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import GROUP, FakeCharts, FakeReport, make_settings

from baruc.bot import BarucBot
from baruc.config import get_settings
from baruc.core.conversation import vocabulary
from baruc.core.dedupe import SeenMessageCache
from baruc.main import app


@pytest.fixture
def bot(transport):
    return BarucBot(
        make_settings(),
        transport=transport,
        charts=FakeCharts(),
        mltv=FakeReport(),
        op_zones=FakeReport(),
        seen=SeenMessageCache(),
    )


@pytest.fixture
def client(bot):
    app.state.bot = bot
    with TestClient(app) as client:
        yield client
    del app.state.bot


def make_ready(bot):
    bot.client_state.set_ready(True)
    bot.client_state.set_authenticated(True)


def wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestHealth:
    """Health check tests."""

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["classifier"] == "keywords"
        assert data["client"]["is_ready"] is False
        assert data["open_contexts"] == 0

    def test_health_includes_features(self, client):
        features = client.get("/health").json()["features"]

        assert features == {"charts": True, "mltv": True, "op_zones": True}

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_without_bot_returns_503(self):
        response = TestClient(app).get("/health")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "BOT_NOT_STARTED"


class TestRoot:
    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "Baruc" in response.json()["message"]


class TestWebhook:
    def test_lifecycle_events_make_client_ready(self, client):
        assert client.post("/webhook/whatsapp", json={"event": "ready"}).status_code == 202
        assert client.post("/webhook/whatsapp", json={"event": "authenticated"}).status_code == 202

        assert client.get("/health").json()["client"]["is_ready"] is True

    def test_message_is_answered_in_background(self, client, bot, transport):
        make_ready(bot)

        response = client.post(
            "/webhook/whatsapp",
            json={"event": "message", "message": {"from": GROUP, "body": "baruc", "timestamp": 1}},
        )

        assert response.status_code == 202
        assert response.json() == {"accepted": True, "event": "message"}
        assert wait_until(lambda: len(transport.texts()) == 1)
        assert transport.texts()[0] in vocabulary.GREETINGS

    def test_unknown_event_is_rejected(self, client):
        assert client.post("/webhook/whatsapp", json={"event": "typing"}).status_code == 422

    def test_bridge_token_is_enforced(self, client, monkeypatch):
        monkeypatch.setenv("WHATSAPP_BRIDGE_TOKEN", "secret")
        get_settings.cache_clear()

        assert client.post("/webhook/whatsapp", json={"event": "ready"}).status_code == 401
        response = client.post(
            "/webhook/whatsapp",
            json={"event": "ready"},
            headers={"Authorization": "Bearer secret"},
        )
        assert response.status_code == 202


class TestPairing:
    def test_qr_returned_by_bridge(self, client, transport):
        transport.qr = "2@abc"

        assert client.get("/api/qr").json() == {"qr": "2@abc"}

    def test_qr_timeout(self, client):
        response = client.get("/api/qr")

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "QR_TIMEOUT"

    def test_qr_page(self, client):
        response = client.get("/api/qr-page")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_logout(self, client, bot, transport):
        make_ready(bot)

        assert client.post("/api/logout").json() == {"status": "logged out"}
        assert transport.logged_out
        assert not bot.client_state.is_ready()


class TestGroups:
    def test_requires_ready_client(self, client):
        response = client.get("/api/groups")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "TRANSPORT_NOT_READY"

    def test_lists_only_groups(self, client, bot, transport):
        make_ready(bot)
        transport.chats = [
            {"id": GROUP, "name": "Ops", "isGroup": True},
            {"id": "5215500000000@c.us", "name": "Ana"},
        ]

        assert client.get("/api/groups").json() == [{"id": GROUP, "name": "Ops"}]

    def test_group_messages_accept_bare_id(self, client, bot, transport):
        make_ready(bot)
        transport.messages[GROUP] = [
            {"from": GROUP, "author": "a@c.us", "body": "hola", "timestamp": 1, "ack": 2},
            {"from": GROUP, "author": "b@c.us", "body": "baruc", "timestamp": 2},
        ]

        response = client.get("/api/groups/120363000000000001/messages", params={"limit": 1})

        assert response.json() == [{"from": GROUP, "author": "a@c.us", "body": "hola", "timestamp": 1}]


class TestContexts:
    def test_list_and_get(self, client, bot):
        bot.store.get_or_create(GROUP)

        assert [c["chat_id"] for c in client.get("/api/contexts").json()] == [GROUP]
        data = client.get(f"/api/contexts/{GROUP}").json()
        assert data["current_state"] == "idle"
        assert data["has_state"] is False

    def test_unknown_context_is_404(self, client):
        response = client.get("/api/contexts/nope@g.us")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_delete(self, client, bot):
        bot.store.get_or_create(GROUP)

        assert client.delete(f"/api/contexts/{GROUP}").json() == {"cleared": GROUP}
        assert bot.store.get(GROUP) is None
        assert client.delete(f"/api/contexts/{GROUP}").status_code == 404


class TestMetrics:
    def test_metrics_summary(self, client):
        data = client.get("/metrics").json()

        assert "uptime_seconds" in data
        assert "stages" in data
        assert "counters" in data
