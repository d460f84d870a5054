"""
Baruc WhatsApp - Delivery Guard.

Outbound sends with:
- per-chat single flight: a send to a chat already sending is rejected (False)
- text dedupe: same chat + first 100 chars within the dedupe window → True
- readiness wait before each attempt
- retries with increasing backoff
- serialization heuristic: on TEXT, a serialization fault while the client
  is still ready counts as delivered; on MEDIA it is a real failure
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from baruc.config import DeliverySettings
from baruc.exceptions import TransportException, is_serialization_fault
from baruc.observability import get_metrics_store
from baruc.whatsapp.transport import ClientState, MediaPayload, Transport

logger = logging.getLogger(__name__)

DEDUPE_PREFIX_CHARS = 100


class DeliveryGuard:
    """Serializes and retries outbound sends per chat."""

    def __init__(
        self,
        transport: Transport,
        client_state: ClientState,
        settings: DeliverySettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.client_state = client_state
        self.settings = settings or DeliverySettings()
        self._clock = clock
        self._in_flight: set[str] = set()
        self._last_sent: dict[str, float] = {}

    def is_sending(self, chat_id: str) -> bool:
        return chat_id in self._in_flight

    # -------------------------------------------------------------------------
    # Text
    # -------------------------------------------------------------------------

    async def send_text(self, chat_id: str, text: str, max_retries: int = 1) -> bool:
        key = f"{chat_id}-{text[:DEDUPE_PREFIX_CHARS]}"
        now = self._clock()
        self._prune(now)

        last = self._last_sent.get(key)
        if last is not None and now - last < self.settings.dedupe_window_seconds:
            logger.info(f"Duplicate message to {chat_id} suppressed")
            get_metrics_store().increment("sends_deduplicated")
            return True

        if chat_id in self._in_flight:
            logger.warning(f"Send already in flight for {chat_id}, rejecting")
            return False

        self._in_flight.add(chat_id)
        try:
            for attempt in range(1, max_retries + 1):
                try:
                    if not self.client_state.is_ready():
                        await self.client_state.wait_for_ready(self.settings.ready_wait_seconds)

                    await asyncio.sleep(self.settings.pre_send_delay_seconds)
                    await self.transport.send_message(chat_id, text)

                    self._last_sent[key] = self._clock()
                    get_metrics_store().increment("replies_sent")
                    return True

                except TransportException as e:
                    logger.error(f"Text send failed ({attempt}/{max_retries}) to {chat_id}: {e.message}")

                    if e.is_serialization_fault:
                        await asyncio.sleep(self.settings.serialization_grace_seconds)
                        if self.client_state.is_ready():
                            logger.warning(f"Serialization fault on text to {chat_id}, client ready: assuming delivered")
                            self._last_sent[key] = self._clock()
                            get_metrics_store().increment("sends_assumed_delivered")
                            return True

                    if attempt < max_retries:
                        await asyncio.sleep(self.settings.backoff_seconds * attempt)

            logger.error(f"Text send to {chat_id} failed after {max_retries} attempts")
            get_metrics_store().increment("send_failures")
            return False
        finally:
            self._in_flight.discard(chat_id)

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    async def send_media(self, chat_id: str, media: MediaPayload, max_retries: int = 1) -> bool:
        if chat_id in self._in_flight:
            logger.warning(f"Send already in flight for {chat_id}, rejecting media")
            return False

        self._in_flight.add(chat_id)
        try:
            for attempt in range(1, max_retries + 1):
                try:
                    if not self.client_state.is_ready():
                        ready = await self.client_state.wait_for_ready(self.settings.media_ready_wait_seconds)
                        if not ready:
                            continue

                    await asyncio.sleep(self.settings.media_pre_send_delay_seconds)
                    await self.transport.send_message(chat_id, media)
                    get_metrics_store().increment("media_sent")
                    return True

                except TransportException as e:
                    if is_serialization_fault(e.message):
                        logger.error(f"Serialization fault on media to {chat_id}: image NOT delivered")
                    else:
                        logger.error(f"Media send failed ({attempt}/{max_retries}) to {chat_id}: {e.message}")

                    if attempt < max_retries:
                        await asyncio.sleep(self.settings.backoff_seconds * attempt)

            logger.error(f"Media send to {chat_id} failed after {max_retries} attempts")
            get_metrics_store().increment("send_failures")
            return False
        finally:
            self._in_flight.discard(chat_id)

    def _prune(self, now: float) -> None:
        retention = self.settings.dedupe_retention_seconds
        stale = [key for key, sent_at in self._last_sent.items() if now - sent_at > retention]
        for key in stale:
            del self._last_sent[key]
