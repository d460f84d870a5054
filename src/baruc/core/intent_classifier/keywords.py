"""
Keyword Classifier - Fallback determinista sin Gemini.

Mismo contrato que IntentClassifier. Lee el último mensaje del usuario y,
si el contexto espera datos, completa la intención previa con ese mensaje
("2" responde a la pregunta de periodo).
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import replace

from baruc.core.conversation.store import ConversationContext, ConversationState
from baruc.core.intent_classifier.schemas import Classification
from baruc.core.intents import (
    DEFAULT_PERIOD_WEEKS,
    ChartVariable,
    Intent,
    IntentRecord,
    ReportType,
    clamp_period,
)

CHARTS_MARKERS = ("grafica", "grafico", "chart", "tabla")
MLTV_MARKERS = ("mltv", "multivertical")
ZONES_MARKERS = ("zona", "zones", "op zone")
GREETING_MARKERS = ("hola", "buenas", "buen dia", "hey", "que tal")

ORDERS_MARKERS = ("orden", "orders", "pedido")
EXPENSES_MARKERS = ("gasto", "expense")

WEEKLY_MARKERS = ("semanal", "weekly")
MONTHLY_MARKERS = ("mensual", "monthly")

NUMBER_WORDS = {"una": 1, "uno": 1, "un": 1, "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5, "seis": 6, "ocho": 8}
FULL_WINDOW_MARKERS = ("mes", "trimestre", "maximo", "todo")

_NUMBER_RE = re.compile(r"-?\d+")
_WORD_RE = re.compile(r"[a-z]+")


def normalize(text: str) -> str:
    """Minúsculas y sin acentos."""
    decomposed = unicodedata.normalize("NFKD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


def _contains(text: str, markers: tuple[str, ...]) -> bool:
    return any(marker in text for marker in markers)


def detect_intent(text: str) -> Intent | None:
    if _contains(text, MLTV_MARKERS):
        return Intent.MULTIVERTICAL_REPORT
    if _contains(text, ZONES_MARKERS):
        return Intent.ZONE_REPORT
    if _contains(text, CHARTS_MARKERS) or detect_variable(text) is not None:
        return Intent.CHARTS
    return None


def detect_variable(text: str) -> ChartVariable | None:
    if _contains(text, EXPENSES_MARKERS):
        return ChartVariable.EXPENSES
    if _contains(text, ORDERS_MARKERS):
        return ChartVariable.ORDERS
    return None


def detect_report_type(text: str) -> ReportType | None:
    if _contains(text, WEEKLY_MARKERS):
        return ReportType.WEEKLY
    if _contains(text, MONTHLY_MARKERS):
        return ReportType.MONTHLY
    return None


def detect_period(text: str, bare_allowed: bool = False) -> int | None:
    """
    Extrae el periodo en semanas, ya acotado a [1, 4].

    Con bare_allowed (esperando "periodo") un número suelto o una palabra
    numérica basta; si no, se exige "semana" o una ventana completa ("mes").
    """
    mentions_weeks = "semana" in text or "sem" in text.split()
    if mentions_weeks or bare_allowed:
        match = _NUMBER_RE.search(text)
        if match:
            return clamp_period(int(match.group(0)))
        for word in _WORD_RE.findall(text):
            if word in NUMBER_WORDS:
                return clamp_period(NUMBER_WORDS[word])
    if _contains(text, FULL_WINDOW_MARKERS) and "mensual" not in text:
        return DEFAULT_PERIOD_WEEKS
    return None


class KeywordClassifier:
    """Clasificador por palabras clave (sin red)."""

    def __init__(self, wake_word: str = "baruc"):
        self.wake_word = normalize(wake_word)

    def classify(self, context: ConversationContext) -> Classification:
        text = normalize(context.last_user_message())
        if not text:
            return Classification.unparseable("Mensaje vacío")

        pending = None
        if (
            context.current_state is ConversationState.WAITING_DATA
            and context.current_intent is not None
            and context.current_intent.intencion.is_workflow
        ):
            pending = context.current_intent

        detected = detect_intent(text)

        if detected is not None:
            if pending is not None and pending.intencion is detected:
                record = replace(pending)
            else:
                record = IntentRecord(intencion=detected)
        elif pending is not None:
            record = replace(pending)
        elif self.wake_word in text or _contains(text, GREETING_MARKERS):
            return Classification(intent=IntentRecord(intencion=Intent.GREETING), summary="Saludo")
        else:
            return Classification(intent=IntentRecord(intencion=Intent.UNKNOWN), summary="Sin intención reconocible")

        self._fill_slots(record, text, waiting_for=context.waiting_for if pending else None)

        return Classification(
            intent=record,
            should_execute=True,
            summary=f"{record.intencion.value}: {record.to_dict()}",
        ).normalized()

    def _fill_slots(self, record: IntentRecord, text: str, waiting_for: str | None) -> None:
        if record.intencion is Intent.CHARTS:
            variable = detect_variable(text)
            if variable is not None:
                record.variable = variable
            period = detect_period(text, bare_allowed=waiting_for == "periodo")
            if period is not None:
                record.periodo = period
        else:
            report_type = detect_report_type(text)
            if report_type is not None:
                record.tipo_reporte = report_type
