"""
Baruc WhatsApp - Transport.

The WhatsApp client itself runs in a bridge sidecar (a whatsapp-web session
exposed over HTTP). This module holds:

- ``InboundMessage`` / ``BridgeEvent``: webhook payloads posted by the bridge
- ``MediaPayload``: base64 media ready to send
- ``ClientState``: readiness/auth lifecycle driven by bridge events
- ``Transport``: what the core needs from a chat client
- ``HttpBridgeTransport``: httpx implementation against the bridge API
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from baruc.config import Settings
from baruc.exceptions import TransportException

logger = logging.getLogger(__name__)


# =============================================================================
# Payloads
# =============================================================================


class InboundMessage(BaseModel):
    """Inbound chat message as posted by the bridge."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    from_: str = Field(..., alias="from")
    body: str = ""
    author: str | None = None
    mentioned_ids: list[str] = Field(default_factory=list, alias="mentionedIds")
    timestamp: int = 0

    @property
    def chat_id(self) -> str:
        return self.from_

    @property
    def is_group(self) -> bool:
        return self.from_.endswith("@g.us")


EventType = Literal["message", "ready", "authenticated", "auth_failure", "disconnected", "qr"]


class BridgeEvent(BaseModel):
    """Webhook envelope: lifecycle events and inbound messages."""

    model_config = ConfigDict(extra="ignore")

    event: EventType
    message: InboundMessage | None = None
    qr: str | None = None
    reason: str | None = None


class MediaPayload(BaseModel):
    """Binary media encoded for the bridge."""

    mimetype: str
    data: str = Field(..., description="Base64 content")
    filename: str | None = None
    caption: str | None = None


# =============================================================================
# Client State
# =============================================================================


class ClientState:
    """
    Readiness of the WhatsApp client.

    Ready means both the ``ready`` and ``authenticated`` events were seen and no
    ``disconnected``/``auth_failure`` since. A readiness older than
    ``stale_after_seconds`` is re-confirmed once: the first check after that
    returns False, which sends callers through ``wait_for_ready``.
    """

    def __init__(self, stale_after_seconds: float = 120.0, clock: Callable[[], float] = time.monotonic):
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock
        self._ready = False
        self._authenticated = False
        self._last_ready_time: float | None = None
        self._ready_event = asyncio.Event()
        self._qr: str | None = None
        self._qr_event = asyncio.Event()

    # -------------------------------------------------------------------------
    # Lifecycle events
    # -------------------------------------------------------------------------

    def set_ready(self, ready: bool) -> None:
        self._ready = ready
        if ready:
            self._last_ready_time = self._clock()
            logger.info("WhatsApp client ready")
        else:
            logger.warning("WhatsApp client not ready")
        self._sync_event()

    def set_authenticated(self, authenticated: bool) -> None:
        self._authenticated = authenticated
        logger.info(f"WhatsApp client authenticated: {authenticated}")
        self._sync_event()

    def set_qr(self, qr: str) -> None:
        self._qr = qr
        self._qr_event.set()

    def clear_qr(self) -> None:
        self._qr = None
        self._qr_event.clear()

    def reset(self) -> None:
        self._ready = False
        self._authenticated = False
        self._last_ready_time = None
        self.clear_qr()
        self._sync_event()
        logger.info("WhatsApp client state reset")

    def _sync_event(self) -> None:
        if self._ready and self._authenticated:
            self._ready_event.set()
        else:
            self._ready_event.clear()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_ready(self) -> bool:
        if not (self._ready and self._authenticated):
            return False

        now = self._clock()
        if self._last_ready_time is not None and now - self._last_ready_time > self.stale_after_seconds:
            logger.info("Readiness is stale, re-confirming")
            self._last_ready_time = now
            return False
        return True

    async def wait_for_ready(self, timeout_seconds: float = 5.0) -> bool:
        """Wait until ready or until the timeout elapses. Never raises."""
        if self.is_ready():
            return True

        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"WhatsApp client not ready after {timeout_seconds}s")
            return False

        self._last_ready_time = self._clock()
        return True

    async def wait_for_qr(self, timeout_seconds: float = 20.0) -> str | None:
        try:
            await asyncio.wait_for(self._qr_event.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            return None
        return self._qr

    def status(self) -> dict[str, Any]:
        since = None
        if self._last_ready_time is not None:
            since = round(self._clock() - self._last_ready_time, 1)
        return {
            "is_ready": self._ready,
            "is_authenticated": self._authenticated,
            "seconds_since_ready": since,
        }

    def apply_event(self, event: BridgeEvent) -> None:
        """Update state from a lifecycle event (messages are ignored here)."""
        if event.event == "ready":
            self.set_ready(True)
        elif event.event == "authenticated":
            self.set_authenticated(True)
        elif event.event in ("auth_failure", "disconnected"):
            logger.warning(f"WhatsApp {event.event}: {event.reason or ''}")
            self.set_ready(False)
            self.set_authenticated(False)
        elif event.event == "qr" and event.qr:
            logger.info("QR code received - scan to authenticate")
            self.set_qr(event.qr)


# =============================================================================
# Transport
# =============================================================================


class Transport(ABC):
    """Chat client primitives used by the core."""

    @property
    @abstractmethod
    def bot_id(self) -> str | None:
        """Serialized id of the bot account, used to detect mentions."""

    @abstractmethod
    async def send_message(self, chat_id: str, content: str | MediaPayload) -> None:
        """Send text or media. Raises TransportException on failure."""

    @abstractmethod
    async def get_chats(self) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def get_chat_messages(self, chat_id: str, limit: int = 50) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    async def restart_session(self) -> str | None:
        """Restart the client to obtain a pairing QR. May return the QR directly."""

    @abstractmethod
    async def logout(self) -> None:
        pass

    async def aclose(self) -> None:
        return None


class HttpBridgeTransport(Transport):
    """Transport backed by the bridge sidecar's HTTP API."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.base_url = settings.whatsapp.bridge_url.rstrip("/")
        self.timeout_seconds = settings.whatsapp.bridge_timeout_seconds
        self._token = settings.whatsapp.bridge_token
        self._client = client
        self._bot_id: str | None = None

    @property
    def bot_id(self) -> str | None:
        return self._bot_id

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout_seconds),
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._get_client().request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransportException(f"Bridge unreachable: {e}", status_code=503)

        if response.status_code >= 400:
            try:
                body = response.json()
                error = body.get("error") or body.get("message") or response.text
            except ValueError:
                error = response.text
            raise TransportException(str(error), status_code=502)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def send_message(self, chat_id: str, content: str | MediaPayload) -> None:
        if isinstance(content, MediaPayload):
            await self._request(
                "POST",
                "/api/sendImage",
                json={"chatId": chat_id, "file": content.model_dump(exclude_none=True)},
            )
        else:
            await self._request("POST", "/api/sendText", json={"chatId": chat_id, "text": content})

    async def get_chats(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/api/chats")
        return data if isinstance(data, list) else []

    async def get_chat_messages(self, chat_id: str, limit: int = 50) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/api/chats/{chat_id}/messages", params={"limit": limit})
        return data if isinstance(data, list) else []

    async def fetch_me(self) -> str | None:
        """Ask the bridge who we are; cached as bot_id."""
        data = await self._request("GET", "/api/me")
        if isinstance(data, dict):
            self._bot_id = data.get("id") or data.get("wid")
        return self._bot_id

    async def restart_session(self) -> str | None:
        data = await self._request("POST", "/api/session/restart")
        if isinstance(data, dict):
            return data.get("qr")
        return None

    async def logout(self) -> None:
        await self._request("POST", "/api/logout")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
