"""
Conversation Store - Contexto por chat.

Un contexto existe solo mientras la conversación está abierta: cancelar,
terminar o expirar lo ELIMINA (no lo reinicia), para que un estado viejo no
vuelva a disparar flujos.

Toda mutación es lectura-modificación-escritura sobre una sola llave, dentro
de un único event loop; el barrido de expirados solo borra llaves.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Literal

from baruc.core.intents import Intent, IntentRecord

logger = logging.getLogger(__name__)

Sender = Literal["user", "bot"]


class ConversationState(str, Enum):
    IDLE = "idle"
    PROCESSING_INTENT = "processing_intent"
    WAITING_DATA = "waiting_data"
    EXECUTING = "executing"
    COMPLETED = "completed"


@dataclass
class ContextMessage:
    timestamp: float
    sender: Sender
    content: str
    intent: IntentRecord | None = None


@dataclass
class ConversationContext:
    """Estado conversacional mutable de un chat."""
    chat_id: str
    session_id: str
    last_active_time: float
    messages: list[ContextMessage] = field(default_factory=list)
    current_state: ConversationState = ConversationState.IDLE
    current_intent: IntentRecord | None = None
    waiting_for: str | None = None
    just_completed: bool = False

    def history_text(self) -> str:
        return "\n".join(f"{m.sender}: {m.content}" for m in self.messages)

    def last_user_message(self) -> str:
        for message in reversed(self.messages):
            if message.sender == "user":
                return message.content
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "session_id": self.session_id,
            "last_active_time": self.last_active_time,
            "current_state": self.current_state.value,
            "current_intent": self.current_intent.to_dict() if self.current_intent else None,
            "waiting_for": self.waiting_for,
            "just_completed": self.just_completed,
            "messages": [
                {"timestamp": m.timestamp, "sender": m.sender, "content": m.content}
                for m in self.messages
            ],
        }


class ConversationStore:
    """
    Dueño de todos los contextos de conversación.

    Args:
        timeout_seconds: Inactividad tras la cual un contexto expira.
        max_messages: Tamaño de la ventana de historial (FIFO).
        clock: Fuente de tiempo en segundos (inyectable para tests).
    """

    def __init__(
        self,
        timeout_seconds: float = 30 * 60,
        max_messages: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        self.timeout_seconds = timeout_seconds
        self.max_messages = max_messages
        self._clock = clock
        self._contexts: dict[str, ConversationContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def get_or_create(self, chat_id: str) -> ConversationContext:
        """Retorna el contexto vivo o crea uno nuevo si no existe o expiró."""
        now = self._clock()
        context = self._contexts.get(chat_id)

        if context is None or self._is_expired(context, now):
            context = ConversationContext(
                chat_id=chat_id,
                session_id=f"{chat_id}-{int(now * 1000)}",
                last_active_time=now,
            )
            self._contexts[chat_id] = context
            logger.info(f"New conversation context for {chat_id}")
        else:
            context.last_active_time = now

        return context

    def get(self, chat_id: str) -> ConversationContext | None:
        """Contexto vivo (no expirado) o None. No crea ni toca el reloj del contexto."""
        context = self._contexts.get(chat_id)
        if context is None or self._is_expired(context, self._clock()):
            return None
        return context

    def delete(self, chat_id: str) -> bool:
        removed = self._contexts.pop(chat_id, None) is not None
        if removed:
            logger.info(f"Conversation context deleted for {chat_id}")
        return removed

    def sweep_expired(self) -> int:
        """Borra todo contexto inactivo más allá del timeout. Retorna cuántos borró."""
        now = self._clock()
        expired = [
            chat_id
            for chat_id, context in list(self._contexts.items())
            if self._is_expired(context, now)
        ]
        for chat_id in expired:
            self._contexts.pop(chat_id, None)

        if expired:
            logger.info(f"Swept {len(expired)} expired conversation contexts")
        return len(expired)

    def _is_expired(self, context: ConversationContext, now: float) -> bool:
        return now - context.last_active_time > self.timeout_seconds

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def append(
        self,
        context: ConversationContext,
        sender: Sender,
        content: str,
        intent: IntentRecord | None = None,
    ) -> None:
        context.messages.append(
            ContextMessage(timestamp=self._clock(), sender=sender, content=content, intent=intent)
        )
        if len(context.messages) > self.max_messages:
            context.messages = context.messages[-self.max_messages:]

    def mark_completed(self, chat_id: str) -> None:
        context = self._contexts.get(chat_id)
        if context:
            context.current_state = ConversationState.COMPLETED
            context.just_completed = True

    def clear_mltv_state(self, chat_id: str) -> None:
        if self._executing_intent(chat_id, any_state=True) is Intent.MULTIVERTICAL_REPORT:
            self.mark_completed(chat_id)

    def clear_op_zones_state(self, chat_id: str) -> None:
        if self._executing_intent(chat_id, any_state=True) is Intent.ZONE_REPORT:
            self.mark_completed(chat_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_open_context(self, chat_id: str) -> bool:
        return self.get(chat_id) is not None

    def has_state(self, chat_id: str) -> bool:
        """True when the chat has a live context that is not idle."""
        context = self.get(chat_id)
        return context is not None and context.current_state is not ConversationState.IDLE

    def is_executing(self, chat_id: str) -> bool:
        context = self.get(chat_id)
        return context is not None and context.current_state is ConversationState.EXECUTING

    def executing_workflow(self, chat_id: str) -> Intent | None:
        """Workflow intent of a context in EXECUTING state, if any."""
        return self._executing_intent(chat_id)

    def is_analyzing_mltv(self, chat_id: str) -> bool:
        return self.executing_workflow(chat_id) is Intent.MULTIVERTICAL_REPORT

    def is_analyzing_op_zones(self, chat_id: str) -> bool:
        return self.executing_workflow(chat_id) is Intent.ZONE_REPORT

    def is_generating_charts(self, chat_id: str) -> bool:
        return self.executing_workflow(chat_id) is Intent.CHARTS

    def snapshot(self) -> list[dict[str, Any]]:
        return [context.to_dict() for context in self._contexts.values()]

    def _executing_intent(self, chat_id: str, any_state: bool = False) -> Intent | None:
        context = self.get(chat_id)
        if context is None or context.current_intent is None:
            return None
        if not any_state and context.current_state is not ConversationState.EXECUTING:
            return None
        intent = context.current_intent.intencion
        return intent if intent.is_workflow else None
