"""
Schemas del clasificador de intención.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

from baruc.core.intents import Intent, IntentRecord


@dataclass
class Classification:
    """Resultado de clasificar una conversación."""
    intent: IntentRecord = field(default_factory=IntentRecord)
    needs_more_info: bool = False
    missing_field: str | None = None
    should_execute: bool = False
    summary: str = ""
    kind: Literal["resolved", "unparseable"] = "resolved"

    @classmethod
    def unparseable(cls, reason: str) -> "Classification":
        """Fallback uniforme: intención desconocida, sin ejecutar."""
        return cls(
            intent=IntentRecord(intencion=Intent.UNKNOWN),
            needs_more_info=False,
            missing_field=None,
            should_execute=False,
            summary=reason,
            kind="unparseable",
        )

    @property
    def is_unparseable(self) -> bool:
        return self.kind == "unparseable"

    def normalized(self) -> "Classification":
        """
        Alinea needs_more_info/should_execute con los campos realmente resueltos.

        El modelo a veces marca shouldExecute con un campo aún vacío; en ese caso
        se pregunta por el campo en lugar de ejecutar.
        """
        if not self.intent.intencion.is_workflow:
            self.needs_more_info = False
            self.should_execute = False
            self.missing_field = None
            return self

        missing = self.intent.missing_field()
        if missing is not None:
            self.needs_more_info = True
            self.should_execute = False
            self.missing_field = missing
        elif self.needs_more_info or self.should_execute:
            self.needs_more_info = False
            self.should_execute = True
            self.missing_field = None
        return self


class RawAnalysis(BaseModel):
    """Forma esperada del JSON del modelo."""
    intent: dict[str, Any]
    needsMoreInfo: bool = False
    missingField: str | None = None
    shouldExecute: bool = False
    contextSummary: str = Field(default="")
