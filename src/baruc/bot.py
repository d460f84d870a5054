"""
Baruc Bot - Wiring and lifecycle.

BarucBot owns every piece of shared state: conversation store, client state,
delivery guard, processed-message cache, workflow services and the
background tasks (context sweep, processed-message reset). The FastAPI app
keeps exactly one instance on ``app.state.bot``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from baruc.config import Settings
from baruc.core.conversation import ConversationStore
from baruc.core.conversation.machine import DialogueStateMachine
from baruc.core.dedupe import build_seen_cache
from baruc.core.gemini import GeminiService, has_api_key
from baruc.core.intent_classifier import IntentClassifier
from baruc.core.intent_classifier.keywords import KeywordClassifier
from baruc.core.periodic import PeriodicTask
from baruc.exceptions import TransportException
from baruc.whatsapp import BridgeEvent, ClientState, DeliveryGuard, HttpBridgeTransport, InboundMessage, Transport
from baruc.whatsapp.dispatcher import MessageDispatcher

logger = logging.getLogger(__name__)


class BarucBot:
    """Conversation core plus the collaborators it talks to."""

    def __init__(
        self,
        settings: Settings,
        transport: Transport | None = None,
        gemini: GeminiService | None = None,
        charts=None,
        mltv=None,
        op_zones=None,
        seen=None,
        store: ConversationStore | None = None,
    ):
        self.settings = settings
        self.transport = transport or HttpBridgeTransport(settings)

        if gemini is None and has_api_key():
            gemini = GeminiService(model=settings.gemini.model)
        self.gemini = gemini

        self.store = store if store is not None else ConversationStore(
            timeout_seconds=settings.conversation.context_timeout_seconds,
            max_messages=settings.conversation.max_messages,
        )
        self.client_state = ClientState(stale_after_seconds=settings.whatsapp.ready_stale_seconds)
        self.classifier = IntentClassifier(
            gemini=self.gemini,
            fallback=KeywordClassifier(wake_word=settings.whatsapp.wake_word),
        )
        self.machine = DialogueStateMachine(
            self.store,
            self.classifier,
            wake_word=settings.whatsapp.wake_word,
            ai_greetings=settings.conversation.ai_greetings,
            gemini=self.gemini,
        )
        self.guard = DeliveryGuard(self.transport, self.client_state, settings.delivery)

        self._owned: list[Any] = []
        if charts is None and mltv is None and op_zones is None:
            charts, mltv, op_zones = self._build_workflows()

        self.dispatcher = MessageDispatcher(
            settings=settings,
            store=self.store,
            machine=self.machine,
            guard=self.guard,
            client_state=self.client_state,
            transport=self.transport,
            seen=seen if seen is not None else build_seen_cache(settings),
            charts=charts,
            mltv=mltv,
            op_zones=op_zones,
        )

        self.sweeper = PeriodicTask(
            "context-sweep",
            settings.conversation.sweep_interval_seconds,
            self.store.sweep_expired,
        )
        self.seen_reset = PeriodicTask(
            "seen-reset",
            settings.dispatch.seen_reset_seconds,
            self.dispatcher.reset_seen,
        )
        self._tasks: set[asyncio.Task] = set()

    def _build_workflows(self):
        from baruc.providers import ChartRendererClient, CloudinaryStorage, GoogleSheetsProvider
        from baruc.workflows import ChartsService, MLTVService, OpZonesService

        sheets = GoogleSheetsProvider(self.settings)
        charts = ChartsService(sheets, CloudinaryStorage(self.settings), ChartRendererClient(self.settings))
        self._owned = [sheets, charts.storage, charts.renderer, charts]

        if self.gemini is None:
            logger.warning("No Gemini key: MLTV and OP ZONES reports are unavailable")
            return charts, None, None
        return charts, MLTVService(self.gemini, sheets), OpZonesService(self.gemini, sheets)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        self.sweeper.start()
        self.seen_reset.start()
        logger.info(f"Baruc started (classifier={self.classifier.backend})")

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.seen_reset.stop()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        for owned in self._owned:
            await owned.aclose()
        await self.transport.aclose()
        logger.info("Baruc stopped")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def handle_event(self, event: BridgeEvent) -> asyncio.Task | None:
        """Apply a bridge event. Messages are processed in their own task."""
        if event.event == "message":
            if event.message is None:
                return None
            return self.submit(event.message)

        self.client_state.apply_event(event)
        if event.event == "ready" and self.transport.bot_id is None and hasattr(self.transport, "fetch_me"):
            return self._track(self._identify())
        return None

    def submit(self, message: InboundMessage) -> asyncio.Task:
        return self._track(self._handle_safely(message))

    async def handle_message(self, message: InboundMessage):
        return await self.dispatcher.handle(message)

    async def _handle_safely(self, message: InboundMessage) -> None:
        try:
            await self.dispatcher.handle(message)
        except Exception as e:
            logger.error(f"Error handling message from {message.chat_id}: {e}", exc_info=True)

    async def _identify(self) -> None:
        try:
            bot_id = await self.transport.fetch_me()
            logger.info(f"Bot id: {bot_id}")
        except TransportException as e:
            logger.warning(f"Could not fetch bot id: {e.message}")

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Pairing
    # -------------------------------------------------------------------------

    async def request_qr(self) -> str | None:
        """Restart the session and wait for a pairing QR."""
        self.client_state.reset()
        qr = await self.transport.restart_session()
        if qr:
            self.client_state.set_qr(qr)
            return qr
        return await self.client_state.wait_for_qr(self.settings.whatsapp.qr_timeout_seconds)

    async def logout(self) -> None:
        await self.transport.logout()
        self.client_state.reset()
