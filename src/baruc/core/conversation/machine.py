"""
Dialogue State Machine - Decide la respuesta de cada mensaje

Transiciones (en orden de prioridad):
1. Cancelación (mensaje corto) → borra contexto, confirma. No se registra.
2. Cierre tras completar (just_completed + palabra de fin) → borra contexto. No se registra.
3. Registrar mensaje, clasificar y:
   - saludo → idle
   - desconocido → cierre si just_completed, si no menú de capacidades
   - faltan datos → waiting_data + pregunta del campo
   - listo → executing + mensaje de ejecución (el dispatcher corre el workflow)
   - nada de lo anterior → sin respuesta

Toda respuesta retornada se registra como mensaje del bot.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from baruc.core.conversation import vocabulary
from baruc.core.conversation.store import ConversationContext, ConversationState, ConversationStore
from baruc.core.intent_classifier import Classification, IntentClassifier
from baruc.core.intents import Intent, IntentRecord
from baruc.observability import get_metrics_store

logger = logging.getLogger(__name__)


@dataclass
class Reply:
    """Respuesta del bot y, si aplica, el workflow a disparar después de enviarla."""
    text: str
    workflow: Intent | None = None
    intent: IntentRecord | None = None


class DialogueStateMachine:
    """
    Máquina de estados del diálogo.

    Args:
        store: Dueño de los contextos.
        classifier: Clasificador de intención.
        wake_word: Palabra que reabre la conversación (se cita en los cierres).
        gemini: Opcional, para saludos generados (ai_greetings).
    """

    def __init__(
        self,
        store: ConversationStore,
        classifier: IntentClassifier,
        wake_word: str = "baruc",
        ai_greetings: bool = False,
        gemini=None,
    ):
        self.store = store
        self.classifier = classifier
        self.wake_word = wake_word
        self.ai_greetings = ai_greetings
        self.gemini = gemini

    async def process(self, chat_id: str, text: str) -> Reply | None:
        context = self.store.get_or_create(chat_id)

        if vocabulary.is_cancellation(text):
            self.store.delete(chat_id)
            logger.info(f"Conversation cancelled for {chat_id}")
            return Reply(text=vocabulary.CANCELLED_REPLY.format(wake=self._wake_label()))

        if context.just_completed and vocabulary.is_end_of_conversation(text):
            return self._close(chat_id)

        self.store.append(context, "user", text)

        started = time.perf_counter()
        classification = await self.classifier.classify(context)
        metrics = get_metrics_store()
        metrics.record_stage_latency("classify", (time.perf_counter() - started) * 1000)
        if classification.is_unparseable:
            metrics.record_stage_error("classify", "UNPARSEABLE")

        reply = await self._apply(context, classification)

        # A closing reply deletes the context; nothing left to record into.
        if reply is not None and self.store.get(chat_id) is context:
            self.store.append(context, "bot", reply.text, intent=reply.intent)
        return reply

    async def _apply(self, context: ConversationContext, analysis: Classification) -> Reply | None:
        intent = analysis.intent
        context.current_intent = intent

        if intent.intencion is Intent.GREETING:
            context.current_state = ConversationState.IDLE
            context.just_completed = False
            return Reply(text=await self._greeting(), intent=intent)

        if intent.intencion is Intent.UNKNOWN:
            if context.just_completed:
                return self._close(context.chat_id)
            return Reply(text=vocabulary.CAPABILITIES_MENU, intent=intent)

        if analysis.needs_more_info:
            context.current_state = ConversationState.WAITING_DATA
            context.waiting_for = analysis.missing_field
            context.just_completed = False
            return Reply(text=vocabulary.question_for(intent, analysis.missing_field), intent=intent)

        if analysis.should_execute:
            context.current_state = ConversationState.EXECUTING
            context.waiting_for = None
            context.just_completed = False
            return Reply(
                text=vocabulary.execution_message(intent),
                workflow=intent.intencion,
                intent=intent,
            )

        return None

    def _close(self, chat_id: str) -> Reply:
        self.store.delete(chat_id)
        logger.info(f"Conversation finished for {chat_id}")
        return Reply(text=vocabulary.CLOSING_REPLY.format(wake=self._wake_label()))

    def _wake_label(self) -> str:
        return self.wake_word.capitalize()

    async def _greeting(self) -> str:
        if not (self.ai_greetings and self.gemini is not None):
            return vocabulary.random_greeting()

        prompt = (
            "Eres Baruc, un asistente de datos de Rappi en un grupo de WhatsApp. "
            "Saluda en una o dos líneas, con un emoji, y menciona que puedes generar "
            "gráficas de órdenes o gasto (1-4 semanas), análisis MLTV y reportes de zonas. "
            "Termina preguntando en qué puedes ayudar."
        )
        try:
            greeting = await self.gemini.generate(prompt, temperature=0.7)
        except Exception as e:
            logger.warning(f"AI greeting failed, using template: {e}")
            return vocabulary.random_greeting()
        return greeting or vocabulary.random_greeting()
