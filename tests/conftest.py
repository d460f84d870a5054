"""
Shared fakes and fixtures.

Everything external (bridge, Gemini, Sheets, chart renderer) is faked in
memory and every delay is zeroed so tests never sleep.
"""

from __future__ import annotations

import asyncio

import pytest

from baruc.config import (
    DeliverySettings,
    DispatchSettings,
    FeatureFlags,
    Settings,
    WhatsAppSettings,
    get_settings,
)
from baruc.core.dedupe import SeenMessageCache
from baruc.exceptions import TransportException
from baruc.observability import get_metrics_store
from baruc.whatsapp.transport import ClientState, InboundMessage, MediaPayload, Transport
from baruc.workflows.charts import ChartDescriptor

BOT_ID = "5215500000000@c.us"
GROUP = "120363000000000001@g.us"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """No real Gemini key and fresh metrics for every test."""
    monkeypatch.setenv("GEMINI_API_KEY", "")
    get_settings.cache_clear()
    get_metrics_store().reset()
    yield
    get_settings.cache_clear()


def make_settings(features: FeatureFlags | None = None) -> Settings:
    return Settings(
        features=features or FeatureFlags(),
        whatsapp=WhatsAppSettings(ready_timeout_seconds=0.05, qr_timeout_seconds=0.05),
        delivery=DeliverySettings(
            pre_send_delay_seconds=0,
            media_pre_send_delay_seconds=0,
            serialization_grace_seconds=0,
            backoff_seconds=0,
            ready_wait_seconds=0.05,
            media_ready_wait_seconds=0.05,
        ),
        dispatch=DispatchSettings(workflow_delay_seconds=0, media_gap_seconds=0),
    )


def ready_state() -> ClientState:
    state = ClientState()
    state.set_ready(True)
    state.set_authenticated(True)
    return state


def group_message(body: str, timestamp: int, chat_id: str = GROUP, mentioned: list[str] | None = None) -> InboundMessage:
    return InboundMessage.model_validate(
        {"from": chat_id, "body": body, "timestamp": timestamp, "mentionedIds": mentioned or []}
    )


class FakeTransport(Transport):
    """Records sends; ``errors`` are raised (in order) before succeeding."""

    def __init__(self, bot_id: str | None = BOT_ID):
        self._bot_id = bot_id
        self.sent: list[tuple[str, str | MediaPayload]] = []
        self.errors: list[Exception] = []
        self.calls = 0
        self.chats: list[dict] = []
        self.messages: dict[str, list[dict]] = {}
        self.qr: str | None = None
        self.logged_out = False
        self.gate: asyncio.Event | None = None
        self.fail_media: set[str] = set()

    @property
    def bot_id(self) -> str | None:
        return self._bot_id

    async def send_message(self, chat_id, content) -> None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        if isinstance(content, MediaPayload) and content.filename in self.fail_media:
            raise TransportException("Evaluation failed: TypeError: Cannot read properties of undefined (reading 'serialize')")
        self.sent.append((chat_id, content))

    async def get_chats(self) -> list[dict]:
        return self.chats

    async def get_chat_messages(self, chat_id, limit=50) -> list[dict]:
        return self.messages.get(chat_id, [])[:limit]

    async def restart_session(self) -> str | None:
        return self.qr

    async def logout(self) -> None:
        self.logged_out = True

    def texts(self, chat_id: str = GROUP) -> list[str]:
        return [content for chat, content in self.sent if chat == chat_id and isinstance(content, str)]

    def media(self, chat_id: str = GROUP) -> list[MediaPayload]:
        return [content for chat, content in self.sent if chat == chat_id and isinstance(content, MediaPayload)]


class FakeGemini:
    """Returns queued responses; an Exception in the queue is raised."""

    def __init__(self, responses: list | None = None):
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    async def generate(self, prompt: str, temperature: float | None = None) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, Exception):
            raise response
        return response


class FakeCharts:
    def __init__(self, urls: list[str] | None = None, error: Exception | None = None):
        self.urls = urls if urls is not None else ["https://cdn.example.com/mx.png", "https://cdn.example.com/co.png"]
        self.error = error
        self.calls: list[tuple[str, int]] = []
        self.gate: asyncio.Event | None = None

    async def generate_charts(self, tipo: str, period: int = 4) -> list[ChartDescriptor]:
        self.calls.append((tipo, period))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [
            ChartDescriptor(url=url, title=f"{tipo} - Semana {period}", country=f"País {i + 1}", type=tipo, period=period)
            for i, url in enumerate(self.urls)
        ]

    async def convert_urls_to_media(self, urls: list[str]) -> list[MediaPayload]:
        return [MediaPayload(mimetype="image/png", data="aGVsbG8=", filename=url.rsplit("/", 1)[-1]) for url in urls]


class FakeReport:
    def __init__(self, text: str = "📊 Reporte", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def generate_analysis(self, today=None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def seen():
    return SeenMessageCache()
