"""Vocabularies and reply templates (Spanish, WhatsApp formatting)."""

import random

from baruc.core.intents import ChartVariable, Intent, IntentRecord

CANCELLATION_MAX_LENGTH = 10

CANCELLATION_WORDS = (
    "cancelar", "cancel", "parar", "stop", "salir", "exit", "nada",
    "no necesito", "no quiero", "no gracias", "gracias", "ok", "vale",
    "listo", "terminamos", "ya", "suficiente", "basta",
)

END_OF_CONVERSATION_WORDS = ("nada", "no", "gracias", "ok", "listo", "ya")


def is_cancellation(message: str) -> bool:
    """Short messages (<= 10 chars) containing a cancellation word."""
    text = message.strip().lower()
    if len(text) > CANCELLATION_MAX_LENGTH:
        return False
    return any(word in text for word in CANCELLATION_WORDS)


def is_end_of_conversation(message: str) -> bool:
    text = message.strip().lower()
    return any(text == word or word in text for word in END_OF_CONVERSATION_WORDS)


CANCELLED_REPLY = (
    '👋 Entendido! Conversación cancelada. Si necesitas algo más, solo menciona "{wake}" de nuevo.'
)
CLOSING_REPLY = '👍 ¡Perfecto! Si necesitas algo más, solo menciona "{wake}" de nuevo.'

GREETINGS = (
    "¡Hola! Soy Baruc, tu asistente de datos 🤖\n"
    "Puedo ayudarte con gráficas (1-4 semanas), análisis MLTV y reportes de zonas.\n"
    "¿En qué puedo ayudarte?",
    "¡Hola! 👋 Soy Baruc.\n"
    "Puedo generar gráficas de órdenes/gasto (1-4 semanas), análisis MLTV y reportes de zonas.\n"
    "¿Qué necesitas?",
    "Hola! Soy Baruc, especialista en datos de Rappi 📊\n"
    "¿Te ayudo con gráficas (máximo 4 semanas) o análisis?",
)

CAPABILITIES_MENU = (
    "No entendí lo que necesitas. Puedo ayudarte con:\n"
    "• Gráficas de órdenes o gasto (1-4 semanas)\n"
    "• Análisis MLTV\n"
    "• Reportes de zonas operativas\n\n"
    "¿Qué te gustaría hacer? 🤔"
)

CANCEL_HINT = '_Escribe "cancelar" si no necesitas nada_'

FIELD_QUESTIONS = {
    "variable": f"¿Qué tipo de gráficas quieres ver? 📊\n• Órdenes\n• Gasto\n\n{CANCEL_HINT}",
    "periodo": (
        "¿Cuántas semanas de datos quieres ver? 📅\n"
        "• 1 semana\n• 2 semanas\n• 3 semanas\n• 4 semanas (_máximo disponible_)\n\n"
        f"{CANCEL_HINT}"
    ),
}
MLTV_REPORT_TYPE_QUESTION = f"¿Qué tipo de análisis MLTV necesitas? 📊\n• Semanal\n• Mensual\n\n{CANCEL_HINT}"
ZONES_REPORT_TYPE_QUESTION = f"¿Qué tipo de reporte de zonas quieres? 🗺️\n• Semanal\n• Mensual\n\n{CANCEL_HINT}"
GENERIC_QUESTION = f"¿Puedes darme más detalles?\n\n{CANCEL_HINT}"

CHARTS_ACK_PREFIX = "Haré las gráficas de"


def random_greeting() -> str:
    return random.choice(GREETINGS)


def question_for(intent: IntentRecord, missing_field: str | None) -> str:
    if missing_field == "tipo_reporte":
        if intent.intencion is Intent.MULTIVERTICAL_REPORT:
            return MLTV_REPORT_TYPE_QUESTION
        return ZONES_REPORT_TYPE_QUESTION
    return FIELD_QUESTIONS.get(missing_field or "", GENERIC_QUESTION)


def execution_message(intent: IntentRecord) -> str:
    if intent.intencion is Intent.CHARTS:
        variable = intent.variable or ChartVariable.ORDERS
        period = f" de {plural_weeks(intent.periodo)}" if intent.periodo else ""
        return f"{CHARTS_ACK_PREFIX} {variable.label}{period} por ti, dame un minuto 📊"
    if intent.intencion is Intent.MULTIVERTICAL_REPORT:
        return "Voy a generar el análisis MLTV, dame un momento... 📊"
    if intent.intencion is Intent.ZONE_REPORT:
        return "Voy a generar el análisis de zonas operativas, dame un momento... 🗺️"
    return "Procesando tu solicitud..."


def plural_weeks(period: int) -> str:
    return f"{period} semana{'s' if period > 1 else ''}"
