"""
Escáner de fugas en respuestas generadas.

Toda respuesta del generador pasa por aquí antes de llegar al
estudiante, sin excepciones: no existe flag para desactivarlo.

Los patrones de fuga se aplican al texto completo y a cada oración o
línea por separado, tras quitar énfasis markdown y delimitadores LaTeX,
para que "**x = 5**" o "x = 5. What next?" también se detecten.
"""

from __future__ import annotations

from dataclasses import dataclass

from mathcoach.core.types import Category
from mathcoach.guardrails.base import BaseGuardrail, GuardrailCheckResult
from mathcoach.guardrails.patterns import (
    LEAK_CATEGORIES,
    PatternTaxonomy,
    normalize_text,
    split_sentences,
    strip_markup,
)


@dataclass(frozen=True)
class LeakScanResult:
    """
    Resultado del escaneo de una respuesta generada.

    Attributes:
        leaked: Si la respuesta debe suprimirse.
        categories: Categorías de fuga que coincidieron.
        matched_patterns: Patrones que coincidieron.
        formula_dump: Si además vuelca una fórmula.
    """

    leaked: bool
    categories: tuple[Category, ...] = ()
    matched_patterns: tuple[str, ...] = ()
    formula_dump: bool = False

    @property
    def primary_category(self) -> Category:
        return self.categories[0] if self.categories else Category.NONE


class ResponseScanner(BaseGuardrail):
    """Detector de fugas de respuesta y de confirmación."""

    def __init__(self, taxonomy: PatternTaxonomy | None = None) -> None:
        super().__init__(name="response_scanner", taxonomy=taxonomy)

    def check(self, text: str) -> GuardrailCheckResult:
        """Primera categoría de fuga que aplica, o Category.NONE."""
        scan = self.scan(text)
        return GuardrailCheckResult(
            category=scan.primary_category,
            matched_patterns=scan.matched_patterns,
            details={"formula_dump": scan.formula_dump},
        )

    def scan(self, text: str) -> LeakScanResult:
        segments = self._segments(text)
        if not segments:
            return LeakScanResult(leaked=False)

        categories: list[Category] = []
        matched: list[str] = []
        for category in LEAK_CATEGORIES:
            pattern = self._match_any_segment(segments, category)
            if pattern is not None:
                categories.append(category)
                matched.append(pattern)

        formula_dump = self._match_any_segment(segments, Category.FORMULA_DUMP) is not None
        result = LeakScanResult(
            leaked=bool(categories),
            categories=tuple(categories),
            matched_patterns=tuple(matched),
            formula_dump=formula_dump,
        )

        if result.leaked or formula_dump:
            self._create_result(
                result.primary_category if result.leaked else Category.FORMULA_DUMP,
                result.matched_patterns,
                leak_categories=[c.value for c in result.categories],
                formula_dump=formula_dump,
                response_preview=text[:100],
            )
        return result

    def scan_for_leak(self, text: str) -> bool:
        """True si la respuesta revela la respuesta o confirma un resultado."""
        return self.scan(text).leaked

    def detect_formula_dump(self, text: str) -> bool:
        segments = self._segments(text)
        return self._match_any_segment(segments, Category.FORMULA_DUMP) is not None

    def _match_any_segment(self, segments: list[str], category: Category) -> str | None:
        for segment in segments:
            recognizer = self.taxonomy.first_match(segment, category)
            if recognizer is not None:
                return recognizer.pattern.pattern
        return None

    @staticmethod
    def _segments(text: str) -> list[str]:
        if not text or not text.strip():
            return []
        cleaned = strip_markup(normalize_text(text))
        return [cleaned, *split_sentences(cleaned)]


__all__ = ["LeakScanResult", "ResponseScanner"]
