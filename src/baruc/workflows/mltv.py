"""
MLTV workflow - Reporte semanal de multiverticalidad redactado por Gemini.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from baruc.core.gemini import GeminiService
from baruc.providers.sheets import GoogleSheetsProvider, js_weekday

logger = logging.getLogger(__name__)

SPANISH_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

MLTV_TEMPERATURE = 0.3


def format_spanish_date(day: date) -> str:
    """16 de junio de 2025."""
    return f"{day.day:02d} de {SPANISH_MONTHS[day.month - 1]} de {day.year}"


def report_weeks(today: date) -> tuple[date, date, date, date]:
    """(last week start, last week end, previous week start, previous week end), Monday-Sunday."""
    current_week_start = today - timedelta(days=js_weekday(today) - 1)
    last_week_start = current_week_start - timedelta(days=7)
    last_week_end = last_week_start + timedelta(days=6)
    prev_week_end = last_week_start - timedelta(days=1)
    prev_week_start = prev_week_end - timedelta(days=6)
    return last_week_start, last_week_end, prev_week_start, prev_week_end


def build_mltv_prompt(mltv_data: str, today: date) -> tuple[str, str]:
    """Returns (analysed week label, prompt)."""
    last_start, last_end, prev_start, prev_end = report_weeks(today)
    week_label = f"{format_spanish_date(last_start)} al {format_spanish_date(last_end)}"

    prompt = f"""
Eres un analista de datos de Rappi. Genera un reporte semanal para el equipo, en formato de mensaje de WhatsApp, usando los datos proporcionados de MLTV.

REQUISITOS:
- Compara la última semana cerrada ({format_spanish_date(last_start)} a {format_spanish_date(last_end)}) contra la semana anterior ({format_spanish_date(prev_start)} a {format_spanish_date(prev_end)}).
- Segmenta el análisis por tipo de zona (0 y 2), país y ciudad.
- Muestra la variación WoW (week over week) de bases de usuarios y de órdenes para cada país y zona.
- Incluye un resumen de crecimiento o caída por país y zona.
- Presenta el top 3 ciudades por volumen para cada país y zona.
- Usa emojis de banderas para países y bullets para separar secciones.
- Usa un saludo inicial breve y amigable.
- Usa títulos claros para cada sección (ej: "🔹 Zonas 0", "🔹 Zonas 2", "📍Top ciudades por volumen").
- Sé conciso, máximo 350 palabras.
- Si falta información para algún país o zona, indícalo brevemente.

DATOS:
{mltv_data}

EJEMPLO DE FORMATO ESPERADO:

Hola Team! ¿Cómo están?

📊 Actualización semanal - Zonas
Comparativo semana cerrada del 16 de junio vs LW

🔹 Zonas 0

Variación WoW de bases:
🇦🇷 AR: +0.52%
🇨🇱 CL: +0.18%
...

🔸 Órdenes:
Zonas 0 mostraron crecimiento en 🇨🇴 CO (+5.2%) y 🇦🇷 AR (+2.7%), mientras 🇨🇱 CL presentó una leve baja (-0.4%).

📍Top ciudades por volumen:
🇦🇷 AR: Buenos Aires (6k), Neuquén (3k), Mar del Plata (3k)
...

Recuerda seguir este formato y estructura, adaptando los datos reales.
"""
    return week_label, prompt


class MLTVService:
    def __init__(self, gemini: GeminiService, sheets: GoogleSheetsProvider):
        self.gemini = gemini
        self.sheets = sheets

    async def generate_analysis(self, today: date | None = None) -> str:
        today = today or date.today()
        mltv_data = await self.sheets.get_mltv_data_for_analysis(today)
        logger.info(f"MLTV data ready: {len(mltv_data)} chars")

        week_label, prompt = build_mltv_prompt(mltv_data, today)
        analysis = await self.gemini.generate(prompt, temperature=MLTV_TEMPERATURE)
        return f"📊 **REPORTE MLTV**\n**Semana analizada: {week_label}**\n\n{analysis}"
