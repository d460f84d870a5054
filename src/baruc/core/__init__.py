"""
Baruc Core - Núcleo conversacional

Componentes:
- intents: Taxonomía cerrada de intenciones y registro estructurado
- intent_classifier: Convierte historial + estado en intención (Gemini / palabras clave)
- conversation: Contextos por chat y máquina de estados del diálogo
- dedupe: Caché de mensajes ya procesados
- periodic: Tareas de fondo con ciclo de vida explícito
- gemini: Gemini Developer API integration

El core NO sabe de WhatsApp, Sheets ni Cloudinary.
"""

from baruc.core.intents import ChartVariable, Intent, IntentRecord, ReportType, clamp_period

__all__ = [
    "ChartVariable",
    "Intent",
    "IntentRecord",
    "ReportType",
    "clamp_period",
]
