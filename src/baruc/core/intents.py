"""
Intents - Taxonomía cerrada de intenciones.

Los valores de los enums son los mismos que usa el prompt de clasificación
(en español), así el JSON del modelo se mapea sin traducciones.
"""

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

MIN_PERIOD_WEEKS = 1
MAX_PERIOD_WEEKS = 4
DEFAULT_PERIOD_WEEKS = 4


class Intent(str, Enum):
    """Intenciones soportadas."""
    CHARTS = "graficas"
    MULTIVERTICAL_REPORT = "mltv"
    ZONE_REPORT = "op_zones"
    GREETING = "saludo"
    UNKNOWN = "desconocido"

    @property
    def is_workflow(self) -> bool:
        return self in WORKFLOW_INTENTS


WORKFLOW_INTENTS = frozenset({Intent.CHARTS, Intent.MULTIVERTICAL_REPORT, Intent.ZONE_REPORT})


class ChartVariable(str, Enum):
    ORDERS = "ordenes"
    EXPENSES = "gasto"

    @property
    def label(self) -> str:
        return "órdenes" if self is ChartVariable.ORDERS else "gasto"


class ReportType(str, Enum):
    WEEKLY = "semanal"
    MONTHLY = "mensual"


def clamp_period(value: int) -> int:
    """Limita el periodo a [1, 4] semanas (la hoja solo tiene 4 semanas acumuladas)."""
    return max(MIN_PERIOD_WEEKS, min(MAX_PERIOD_WEEKS, int(value)))


def parse_intent(value: Any) -> Intent:
    try:
        return Intent(str(value).strip().lower())
    except ValueError:
        return Intent.UNKNOWN


def parse_variable(value: Any) -> ChartVariable | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ("gastos", "expenses"):
        return ChartVariable.EXPENSES
    if text in ("órdenes", "orders"):
        return ChartVariable.ORDERS
    try:
        return ChartVariable(text)
    except ValueError:
        return None


def parse_report_type(value: Any) -> ReportType | None:
    if value is None:
        return None
    try:
        return ReportType(str(value).strip().lower())
    except ValueError:
        return None


def parse_period(value: Any) -> int | None:
    """Convierte el periodo del modelo (int, "2", "null", None) a int ya acotado."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return clamp_period(value)
    text = str(value).strip()
    if not text or text.lower() in ("null", "none"):
        return None
    try:
        number = float(text)
        if not math.isfinite(number):
            return None
        return clamp_period(int(number))
    except (ValueError, OverflowError):
        return None


@dataclass
class IntentRecord:
    """Interpretación estructurada de un mensaje."""
    intencion: Intent = Intent.UNKNOWN
    variable: ChartVariable | None = None
    periodo: int | None = None
    tipo_reporte: ReportType | None = None

    def __post_init__(self) -> None:
        # A period is never stored out of range.
        if self.periodo is not None:
            self.periodo = clamp_period(self.periodo)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "IntentRecord":
        data = data or {}
        return cls(
            intencion=parse_intent(data.get("intencion")),
            variable=parse_variable(data.get("variable")),
            periodo=parse_period(data.get("periodo")),
            tipo_reporte=parse_report_type(data.get("tipo_reporte")),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Enum):
                data[key] = value.value
        return data

    def missing_field(self) -> str | None:
        """Primer campo requerido que falta para ejecutar, o None si está completo."""
        if self.intencion is Intent.CHARTS:
            if self.variable is None:
                return "variable"
            if self.periodo is None:
                return "periodo"
        elif self.intencion in (Intent.MULTIVERTICAL_REPORT, Intent.ZONE_REPORT):
            if self.tipo_reporte is None:
                return "tipo_reporte"
        return None
