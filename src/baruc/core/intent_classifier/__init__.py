"""
Intent Classifier - Clasificador de intención conversacional

Responsabilidad:
- Recibir el contexto completo (historial acotado + estado actual)
- Clasificar en Intent (taxonomía cerrada) y detectar datos faltantes
- NO mutar el contexto
- NO ejecutar workflows

Input: ConversationContext
Output: Classification (resolved | unparseable)

Usa Gemini solo para clasificación. Sin API key usa el clasificador
determinista por palabras clave.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from baruc.core.conversation.store import ConversationContext
from baruc.core.intent_classifier.keywords import KeywordClassifier
from baruc.core.intent_classifier.schemas import Classification, RawAnalysis
from baruc.core.intents import IntentRecord

logger = logging.getLogger(__name__)


_FENCE_RE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)


def parse_classification(text: str) -> Classification:
    """
    Parsea la salida textual del modelo.

    Quita ```json fences, extrae el primer objeto JSON y lo valida. Cualquier
    fallo retorna Classification.unparseable.
    """
    cleaned = (text or "").strip()
    fence = _FENCE_RE.match(cleaned)
    if fence:
        cleaned = fence.group(1).strip()

    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        return Classification.unparseable("Respuesta sin JSON")

    try:
        payload = json.loads(cleaned[start:end + 1])
        raw = RawAnalysis.model_validate(payload)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Unparseable classification: {e}")
        return Classification.unparseable("JSON inválido")

    missing = raw.missingField
    if isinstance(missing, str) and missing.strip().lower() in ("", "null", "none"):
        missing = None

    try:
        intent = IntentRecord.from_dict(raw.intent)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Unparseable intent fields: {e}")
        return Classification.unparseable("Intención inválida")

    return Classification(
        intent=intent,
        needs_more_info=raw.needsMoreInfo,
        missing_field=missing,
        should_execute=raw.shouldExecute,
        summary=raw.contextSummary,
    ).normalized()


def build_prompt(context: ConversationContext) -> str:
    previous = json.dumps(context.current_intent.to_dict() if context.current_intent else {}, ensure_ascii=False)

    return f"""
Eres un analista experto de conversaciones para un asistente de datos de Rappi llamado Baruc.

ANALIZA esta conversación completa y determina:
1. La intención del usuario
2. Si necesita más información
3. Si está listo para ejecutar la acción

INTENCIONES DISPONIBLES:
- "graficas": Generar gráficas (requiere: variable [ordenes/gasto], periodo [1-4 semanas MÁXIMO])
- "mltv": Análisis de multiverticalidad (requiere: tipo_reporte [semanal/mensual])
- "op_zones": Análisis de zonas operativas (requiere: tipo_reporte [semanal/mensual])
- "saludo": Solo saluda o conversación casual
- "desconocido": No se puede determinar

IMPORTANTE PARA GRÁFICAS:
- El período máximo disponible es 4 semanas
- Si el usuario pide más de 4 semanas, limitarlo a 4 ("1 mes" = 4, "trimestre" = 4)
- El período es acumulativo (incluye hoy, ayer y las semanas hacia atrás)

IMPORTANTE PARA CANCELACIÓN:
- Si el usuario dice "nada", "no", "gracias", "ok", "listo" → marcar como desconocido
- Si la conversación ya completó una tarea, no insistir con más opciones

CONVERSACIÓN:
{context.history_text()}

CONTEXTO ACTUAL:
- Estado: {context.current_state.value}
- Intención previa: {previous}
- Esperando: {context.waiting_for or 'nada'}
- Recién completado: {str(context.just_completed).lower()}

REGLAS DE ANÁLISIS:
1. Si el usuario menciona "gráficas" + "órdenes"/"gasto" → intención "graficas"
2. Si falta información, identificar qué campo específico falta
3. Si toda la información está completa, marcar shouldExecute como true
4. Mantener contexto de mensajes anteriores en la misma conversación
5. Si el usuario saluda al inicio, responder el saludo pero estar atento a la siguiente solicitud
6. Si el usuario responde solo un número mientras se espera "periodo", ese número es el periodo

FORMATO DE RESPUESTA (JSON):
{{
  "intent": {{
    "intencion": "graficas|mltv|op_zones|saludo|desconocido",
    "variable": "ordenes|gasto|null",
    "periodo": "número(1-4)|null",
    "tipo_reporte": "semanal|mensual|null"
  }},
  "needsMoreInfo": true|false,
  "missingField": "variable|periodo|tipo_reporte|null",
  "shouldExecute": true|false,
  "contextSummary": "Resumen breve de lo que el usuario quiere"
}}

Analiza la conversación completa y responde SOLO con JSON válido:
"""


class IntentClassifier:
    """
    Clasifica la conversación usando Gemini.

    NO lanza excepciones: errores del modelo y respuestas ilegibles
    degradan a Classification.unparseable.
    """

    def __init__(self, gemini=None, fallback=None, temperature: float = 0.2):
        self.gemini = gemini
        self.fallback = fallback or KeywordClassifier()
        self.temperature = temperature

    @property
    def backend(self) -> str:
        return "gemini" if self.gemini is not None else "keywords"

    async def classify(self, context: ConversationContext) -> Classification:
        if self.gemini is None:
            return self.fallback.classify(context)

        try:
            text = await self.gemini.generate(build_prompt(context), temperature=self.temperature)
        except Exception as e:
            logger.error(f"Conversation analysis failed: {e}")
            return Classification.unparseable("Error en análisis")

        classification = parse_classification(text)
        logger.info(
            f"Classified {context.chat_id}: {classification.intent.intencion.value} "
            f"(kind={classification.kind}, missing={classification.missing_field}, "
            f"execute={classification.should_execute})"
        )
        return classification


__all__ = ["Classification", "IntentClassifier", "KeywordClassifier", "build_prompt", "parse_classification"]
