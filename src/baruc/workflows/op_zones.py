"""
OP ZONES workflow - Gemini only formats numbers already computed from Sheets.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

from baruc.core.gemini import GeminiService
from baruc.providers.sheets import GoogleSheetsProvider

logger = logging.getLogger(__name__)

OP_ZONES_TEMPERATURE = 0.1


def build_op_zones_prompt(analysis: dict[str, Any]) -> str:
    return f"""
Eres un analista de datos de Rappi. Te daré un objeto JSON con los resultados del análisis semanal de OP ZONES.
Tu única tarea es formatear estos datos en un reporte amigable para WhatsApp, siguiendo el ejemplo.

REQUISITOS DEL FORMATO:
- Usa un saludo inicial breve y amigable.
- El título debe ser "📊 Actualización semanal - Zonas".
- Separa el reporte en "🔹 Zonas 0" y "🔹 Zonas 2".
- Para cada zona, lista la "Variación WoW de bases" y luego las "Órdenes" por país.
- Usa emojis de banderas para cada país (🇦🇷, 🇨🇱, 🇨🇴, 🇪🇨, 🇲🇽, 🇵🇪, 🇺🇾).
- Muestra los porcentajes de variación WoW con dos decimales.
- Incluye una sección "📍Top ciudades por volumen" para cada zona.
- Si para un país o zona no hay datos en el JSON, no lo incluyas en el reporte.
- Sé conciso y claro.

DATOS JSON (ya calculados):
{json.dumps(analysis, indent=2, ensure_ascii=False)}

EJEMPLO DE FORMATO DE SALIDA:

Hola Team! ¿Cómo están?

📊 Actualización semanal - Zonas

🔹 Zonas 0
Variación WoW de bases:
🇦🇷 AR: +0.52%
...
🔸 Órdenes:
🇨🇴 CO: +5.20%
...
📍Top ciudades por volumen:
🇦🇷 AR: Buenos Aires (6k), Neuquén (3k)
...

🔹 Zonas 2
...
"""


class OpZonesService:
    def __init__(self, gemini: GeminiService, sheets: GoogleSheetsProvider):
        self.gemini = gemini
        self.sheets = sheets

    async def generate_analysis(self, today: date | None = None) -> str:
        analysis = await self.sheets.get_op_zones_analysis(today)
        logger.info(f"OP ZONES aggregated for {len(analysis)} countries")
        return await self.gemini.generate(build_op_zones_prompt(analysis), temperature=OP_ZONES_TEMPERATURE)
