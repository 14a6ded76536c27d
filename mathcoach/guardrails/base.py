"""
Clases base para el motor de guardrails.

Todos los guardrails son deterministas y sin estado: el mismo texto
produce siempre el mismo resultado, por lo que pueden compartirse entre
sesiones y tareas concurrentes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from mathcoach.core.types import Category
from mathcoach.guardrails.patterns import LEAK_CATEGORIES, PatternTaxonomy, get_default_taxonomy
from mathcoach.utils.logging import get_logger, log_guardrail_check


# =============================================================================
# Resultado de Guardrail
# =============================================================================

@dataclass(frozen=True)
class GuardrailCheckResult:
    """
    Resultado de aplicar un guardrail a un texto.

    Attributes:
        category: Categoría asignada (Category.NONE si nada coincidió).
        matched_patterns: Patrones que coincidieron, para auditoría.
        details: Información adicional para debugging.
    """

    category: Category
    matched_patterns: tuple[str, ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.category != Category.NONE

    @property
    def matched_pattern(self) -> str | None:
        return self.matched_patterns[0] if self.matched_patterns else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "matched_patterns": list(self.matched_patterns),
            "details": self.details,
        }


# =============================================================================
# Base Guardrail
# =============================================================================

class BaseGuardrail(ABC):
    """
    Clase base abstracta para los guardrails.

    Attributes:
        name: Nombre único del guardrail.
        taxonomy: Taxonomía de patrones que consulta.
        logger: Logger estructurado para el guardrail.
    """

    def __init__(self, name: str, taxonomy: PatternTaxonomy | None = None) -> None:
        self.name = name
        self.taxonomy = taxonomy or get_default_taxonomy()
        self.logger = get_logger(f"guardrail.{name}")

    @abstractmethod
    def check(self, text: str) -> GuardrailCheckResult:
        """
        Aplica el guardrail al texto.

        Args:
            text: Texto a evaluar.

        Returns:
            Resultado con la categoría asignada.
        """

    def _create_result(
        self,
        category: Category,
        matched_patterns: tuple[str, ...] = (),
        **details: Any,
    ) -> GuardrailCheckResult:
        """Construye el resultado y lo registra."""
        result = GuardrailCheckResult(
            category=category,
            matched_patterns=matched_patterns,
            details=details,
        )
        log_guardrail_check(
            self.logger,
            self.name,
            category.value,
            result.is_match,
            matched_patterns,
            alert=category in LEAK_CATEGORIES,
            **details,
        )
        return result


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "GuardrailCheckResult",
    "BaseGuardrail",
]
