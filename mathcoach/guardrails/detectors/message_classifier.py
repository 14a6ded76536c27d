"""
Clasificador de mensajes del estudiante.

Asigna a cada mensaje como máximo una categoría, recorriendo las
categorías en orden de prioridad:

    AnswerSeeking > ConfirmationSeeking > NearFinal > Stuck

El primer reconocedor que coincide decide. Si un mensaje encaja en
varias categorías gana siempre la de mayor prioridad; la ambigüedad
nunca se propaga al llamador.
"""

from __future__ import annotations

from mathcoach.core.types import Category
from mathcoach.guardrails.base import BaseGuardrail, GuardrailCheckResult
from mathcoach.guardrails.patterns import (
    REASONING_INDICATOR_PATTERNS,
    STUDENT_PRIORITY,
    PatternTaxonomy,
    check_any_pattern,
    compile_patterns,
    normalize_text,
    strip_markup,
)

# Categoría asignada más el patrón que la decidió
ClassificationResult = GuardrailCheckResult


class MessageClassifier(BaseGuardrail):
    """
    Clasificador determinista de mensajes del estudiante.

    Example:
        ```python
        classifier = MessageClassifier()
        classifier.classify("I'm stuck, just tell me the answer")
        # Category.ANSWER_SEEKING
        ```
    """

    def __init__(self, taxonomy: PatternTaxonomy | None = None) -> None:
        super().__init__(name="message_classifier", taxonomy=taxonomy)
        self._reasoning_patterns = compile_patterns(
            REASONING_INDICATOR_PATTERNS,
            "reasoning_indicators",
        )

    def check(self, text: str) -> GuardrailCheckResult:
        prepared = self._prepare(text)
        if not prepared:
            return GuardrailCheckResult(category=Category.NONE)

        for category in STUDENT_PRIORITY:
            recognizer = self.taxonomy.first_match(prepared, category)
            if recognizer is not None:
                return self._create_result(
                    category,
                    (recognizer.pattern.pattern,),
                    text_length=len(prepared),
                )

        return self._create_result(Category.NONE, text_length=len(prepared))

    def classify(self, text: str) -> Category:
        """
        Devuelve la categoría del mensaje, o Category.NONE.

        Texto vacío o solo espacios es siempre Category.NONE.
        """
        return self.check(text).category

    def classify_detailed(self, text: str) -> ClassificationResult:
        """Como classify, pero con el patrón que decidió (para auditoría)."""
        return self.check(text)

    def is_bare_guess(self, text: str) -> bool:
        """
        True si el mensaje no muestra razonamiento más allá de una conjetura.

        "is 42 correct?" es una conjetura; "I subtracted 7 from 22 and got 15,
        is that right?" muestra trabajo.
        """
        prepared = self._prepare(text)
        matched, _, _ = check_any_pattern(prepared, self._reasoning_patterns)
        return not matched

    @staticmethod
    def _prepare(text: str) -> str:
        if not text:
            return ""
        return strip_markup(normalize_text(text))


__all__ = ["MessageClassifier", "ClassificationResult"]
