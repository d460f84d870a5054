"""
Baruc WhatsApp - Message Dispatcher.

Per inbound group message:
1. filter (groups only, non-empty body) and dedupe on chat + timestamp + prefix
2. gate: wake word, bot mention or an already-open context
3. dialogue state machine → reply
4. readiness gate, then send the reply
5. if the context is now executing, run its workflow once and always clean up
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import TYPE_CHECKING

from baruc.config import Settings
from baruc.core.conversation import ConversationStore
from baruc.core.conversation.machine import DialogueStateMachine, Reply
from baruc.core.conversation.vocabulary import is_cancellation, plural_weeks
from baruc.core.dedupe import RedisSeenMessageCache, SeenMessageCache
from baruc.core.intents import DEFAULT_PERIOD_WEEKS, ChartVariable, Intent, clamp_period
from baruc.observability import get_metrics_store
from baruc.whatsapp.sender import DeliveryGuard
from baruc.whatsapp.transport import ClientState, InboundMessage, Transport

if TYPE_CHECKING:
    from baruc.workflows import ChartsService, MLTVService, OpZonesService

logger = logging.getLogger(__name__)

DEDUPE_BODY_PREFIX = 50
PERIOD_IN_TEXT = re.compile(r"(\d+)\s*semana")

GENERIC_APOLOGY = "Hubo un problema procesando tu solicitud. Intenta nuevamente."
FEATURE_DISABLED_REPLY = "⚠️ Esa función no está disponible por ahora."
MLTV_SEND_APOLOGY = "Lo siento, hubo un error al enviar el análisis MLTV 😕"
MLTV_APOLOGY = "Lo siento, hubo un error al analizar los datos de multiverticalidad 😕"
ZONES_SEND_APOLOGY = "Lo siento, hubo un error al enviar el reporte de OP ZONES 😕"
ZONES_APOLOGY = "Lo siento, hubo un error al generar el reporte de OP ZONES 😕"
CHARTS_EMPTY = "❌ No se pudieron generar las gráficas. Intenta de nuevo."
CHARTS_UNDELIVERED = "❌ No se pudieron enviar las gráficas debido a problemas de conexión. Por favor intenta de nuevo."
CHARTS_APOLOGY = "❌ Hubo un error generando las gráficas. Por favor intenta de nuevo."


def requested_period(reply: Reply) -> int:
    """Period asked for: the resolved intent first, then the acknowledgment text, then 4."""
    if reply.intent is not None and reply.intent.periodo:
        return reply.intent.periodo
    match = PERIOD_IN_TEXT.search(reply.text)
    if match:
        return int(match.group(1))
    return DEFAULT_PERIOD_WEEKS


def chart_type(reply: Reply) -> str:
    if reply.intent is not None and reply.intent.variable is not None:
        return reply.intent.variable.value
    return ChartVariable.ORDERS.value if "órdenes" in reply.text else ChartVariable.EXPENSES.value


class MessageDispatcher:
    """Routes inbound messages through the conversation core and runs workflows."""

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        machine: DialogueStateMachine,
        guard: DeliveryGuard,
        client_state: ClientState,
        transport: Transport,
        seen: SeenMessageCache | RedisSeenMessageCache,
        charts: "ChartsService | None" = None,
        mltv: "MLTVService | None" = None,
        op_zones: "OpZonesService | None" = None,
    ):
        self.settings = settings
        self.store = store
        self.machine = machine
        self.guard = guard
        self.client_state = client_state
        self.transport = transport
        self.seen = seen
        self.charts = charts
        self.mltv = mltv
        self.op_zones = op_zones
        self.wake_word = settings.whatsapp.wake_word.lower()
        self._active_charts: set[str] = set()

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def handle(self, message: InboundMessage) -> Reply | None:
        """Process one inbound message. Returns the reply the bot decided on, if any."""
        chat_id = message.chat_id
        if self.settings.whatsapp.groups_only and not message.is_group:
            return None
        if not message.body or not message.body.strip():
            return None

        metrics = get_metrics_store()
        metrics.increment("messages_received")

        key = f"{chat_id}-{message.timestamp}-{message.body[:DEDUPE_BODY_PREFIX]}"
        if not await self.seen.check_and_add(key):
            logger.info(f"Duplicate inbound message ignored: {key}")
            metrics.increment("messages_duplicated")
            return None

        text = self.preprocess(message)
        if text is None:
            metrics.increment("messages_ignored")
            return None

        logger.info(f"Processing message from {chat_id}: {text!r}")
        reply = await self.machine.process(chat_id, text)
        if reply is None:
            return None

        if not self.client_state.is_ready():
            ready = await self.client_state.wait_for_ready(self.settings.whatsapp.ready_timeout_seconds)
            if not ready:
                logger.warning(f"WhatsApp client not available, dropping reply to {chat_id}")
                metrics.increment("replies_dropped_not_ready")
                if reply.workflow is not None:
                    self.store.delete(chat_id)
                return reply

        sent = await self.guard.send_text(chat_id, reply.text, 2)
        if not sent:
            logger.error(f"Reply to {chat_id} could not be sent")

        if reply.workflow is not None:
            await self._run_workflow(chat_id, reply)
        return reply

    def preprocess(self, message: InboundMessage) -> str | None:
        """Text to feed the state machine, or None when the message is not for the bot."""
        body = message.body
        text = body.strip().lower()
        chat_id = message.chat_id

        bot_id = self.transport.bot_id
        mentioned = bool(bot_id) and bot_id in message.mentioned_ids
        has_wake_word = self.wake_word in text
        has_context = self.store.has_open_context(chat_id)

        if not (mentioned or has_wake_word or has_context):
            logger.debug(f"Ignoring chatter in {chat_id}")
            return None

        # Bare "ok"/"gracias" must not reopen a finished conversation.
        if not has_context and not has_wake_word and is_cancellation(text):
            logger.debug(f"Ignoring bare cancellation word in {chat_id}")
            return None

        if mentioned and not has_wake_word:
            return f"{self.wake_word} {body}"
        return body

    # -------------------------------------------------------------------------
    # Workflows
    # -------------------------------------------------------------------------

    async def _run_workflow(self, chat_id: str, reply: Reply) -> None:
        await asyncio.sleep(self.settings.dispatch.workflow_delay_seconds)

        workflow = self.store.executing_workflow(chat_id)
        if workflow is None:
            logger.info(f"Context for {chat_id} is no longer executing, skipping workflow")
            return

        metrics = get_metrics_store()
        stage = f"workflow:{workflow.value}"
        started = time.perf_counter()
        try:
            if not self._enabled(workflow):
                await self.guard.send_text(chat_id, FEATURE_DISABLED_REPLY, 1)
            elif workflow is Intent.ZONE_REPORT:
                await self._op_zones_workflow(chat_id)
            elif workflow is Intent.MULTIVERTICAL_REPORT:
                await self._mltv_workflow(chat_id)
            elif workflow is Intent.CHARTS:
                await self._charts_workflow(chat_id, chart_type(reply), requested_period(reply))
        except Exception as e:
            logger.error(f"Workflow {workflow.value} failed for {chat_id}: {e}")
            metrics.record_stage_error(stage, type(e).__name__)
            await self.guard.send_text(chat_id, GENERIC_APOLOGY, 1)
        finally:
            metrics.record_stage_latency(stage, (time.perf_counter() - started) * 1000)
            self.store.mark_completed(chat_id)
            self.store.delete(chat_id)

    def _enabled(self, workflow: Intent) -> bool:
        features = self.settings.features
        if workflow is Intent.CHARTS:
            return features.charts and self.charts is not None
        if workflow is Intent.MULTIVERTICAL_REPORT:
            return features.mltv and self.mltv is not None
        return features.op_zones and self.op_zones is not None

    async def _op_zones_workflow(self, chat_id: str) -> None:
        try:
            analysis = await self.op_zones.generate_analysis()
            if not await self.guard.send_text(chat_id, analysis, 2):
                await self.guard.send_text(chat_id, ZONES_SEND_APOLOGY, 1)
        except Exception as e:
            logger.error(f"OP ZONES analysis failed for {chat_id}: {e}")
            get_metrics_store().record_stage_error("workflow:op_zones", type(e).__name__)
            await self.guard.send_text(chat_id, ZONES_APOLOGY, 1)
        finally:
            self.store.clear_op_zones_state(chat_id)

    async def _mltv_workflow(self, chat_id: str) -> None:
        try:
            analysis = await self.mltv.generate_analysis()
            if not await self.guard.send_text(chat_id, analysis, 2):
                await self.guard.send_text(chat_id, MLTV_SEND_APOLOGY, 1)
        except Exception as e:
            logger.error(f"MLTV analysis failed for {chat_id}: {e}")
            get_metrics_store().record_stage_error("workflow:mltv", type(e).__name__)
            await self.guard.send_text(chat_id, MLTV_APOLOGY, 1)
        finally:
            self.store.clear_mltv_state(chat_id)

    async def _charts_workflow(self, chat_id: str, tipo: str, period: int) -> None:
        generation_key = f"{chat_id}-{tipo}-{period}"
        if generation_key in self._active_charts:
            logger.info(f"Chart generation already running: {generation_key}")
            return

        self._active_charts.add(generation_key)
        try:
            validated = clamp_period(period)
            if validated != period:
                await self.guard.send_text(
                    chat_id,
                    f"📊 Período ajustado a {plural_weeks(validated)} (máximo disponible). "
                    "Las gráficas incluirán datos acumulativos + órdenes de ayer.",
                )
            else:
                await self.guard.send_text(
                    chat_id,
                    f"📊 Generando gráficas de {tipo} para {plural_weeks(validated)} (acumulativo + órdenes de ayer)...",
                )

            charts = await self.charts.generate_charts(tipo, validated)
            if not charts:
                await self.guard.send_text(chat_id, CHARTS_EMPTY)
                return

            await self.guard.send_text(
                chat_id,
                f"✅ Gráficas generadas! Enviando {len(charts)} imágenes "
                f"(período acumulativo: {plural_weeks(validated)} + órdenes de ayer)...",
            )

            media = await self.charts.convert_urls_to_media([chart.url for chart in charts])
            sent = 0
            for index, item in enumerate(media):
                if await self.guard.send_media(chat_id, item):
                    sent += 1
                else:
                    logger.error(f"Chart {index + 1}/{len(media)} not delivered to {chat_id}")
                if index < len(media) - 1:
                    await asyncio.sleep(self.settings.dispatch.media_gap_seconds)

            await self.guard.send_text(chat_id, self._charts_summary(tipo, validated, sent, len(media)))

        except Exception as e:
            logger.error(f"Chart generation failed for {chat_id}: {e}")
            get_metrics_store().record_stage_error("workflow:graficas", type(e).__name__)
            await self.guard.send_text(chat_id, CHARTS_APOLOGY)
        finally:
            self._active_charts.discard(generation_key)

    @staticmethod
    def _charts_summary(tipo: str, period: int, sent: int, total: int) -> str:
        if sent == 0:
            return CHARTS_UNDELIVERED
        if sent == total:
            return (
                f"📊 ¡Proceso completado! Se enviaron todas las {sent} gráficas de {tipo} "
                f"({plural_weeks(period)} acumulativo + ORDERS_Y) ✅"
            )
        return f"📊 ¡Proceso completado! Se enviaron {sent}/{total} gráficas, {total - sent} no se pudieron enviar 📊"

    # -------------------------------------------------------------------------
    # Helpers for the HTTP layer
    # -------------------------------------------------------------------------

    def is_analyzing_mltv(self, chat_id: str) -> bool:
        return self.store.is_analyzing_mltv(chat_id)

    def is_analyzing_op_zones(self, chat_id: str) -> bool:
        return self.store.is_analyzing_op_zones(chat_id)

    def has_state(self, chat_id: str) -> bool:
        return self.store.has_state(chat_id)

    def clear_context(self, chat_id: str) -> bool:
        return self.store.delete(chat_id)

    async def reset_seen(self) -> None:
        await self.seen.clear()
        logger.debug("Processed-message cache cleared")
