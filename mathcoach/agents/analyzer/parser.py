"""
Parser defensivo de las respuestas JSON del generador.

El generador devuelve análisis de problemas y reflexiones de sesión como
JSON, pero a menudo con texto alrededor o dentro de bloques de código
markdown. Este módulo extrae el objeto, lo valida contra los modelos
tipados y, si no lo consigue, devuelve un resultado de respaldo en lugar
de propagar el error.
"""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError

from mathcoach.core.exceptions import JSONParsingError
from mathcoach.core.types import ProblemAnalysis, ProblemType, SessionReflection
from mathcoach.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Valores de respaldo
# =============================================================================

FALLBACK_CONFIDENCE = 0.7
FALLBACK_TOPICS = ["Mathematics"]
FALLBACK_CONCEPTS = ["Problem Solving"]

FALLBACK_REFLECTION_CONCEPTS = ["Problem Solving", "Mathematical Reasoning"]
FALLBACK_STRATEGIES = [
    "Working through the problem step by step",
    "Asking clarifying questions",
]
FALLBACK_REFLECTION_QUESTIONS = [
    "What was the key insight that helped you understand this problem?",
    "Where else might you use this type of thinking?",
    "What would you do differently if you saw a similar problem?",
]


def _first_present(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Primer valor presente entre varias claves (camelCase o snake_case)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v) for v in value if str(v).strip()]
    return []


class AnalysisParser:
    """
    Convierte respuestas del generador en ProblemAnalysis o SessionReflection.

    Maneja JSON puro, JSON dentro de bloques ```json``` y JSON rodeado de
    texto. Nunca lanza: ante una respuesta inservible devuelve el valor
    de respaldo correspondiente.
    """

    # =========================================================================
    # Análisis del problema
    # =========================================================================

    def parse_analysis(self, raw_response: str, source_text: str | None = None) -> ProblemAnalysis:
        """
        Parsea el análisis de un problema.

        Args:
            raw_response: Respuesta del generador.
            source_text: Texto escrito por el estudiante, si el análisis fue
                de texto. Prevalece sobre el texto extraído por el modelo.

        Returns:
            ProblemAnalysis validado, o el de respaldo.
        """
        try:
            data = self.load_json(raw_response)
            extracted = source_text or _first_present(data, "extractedText", "extracted_text")
            if not extracted:
                raise JSONParsingError(raw_response, "Falta el campo extractedText")

            return ProblemAnalysis(
                extracted_text=str(extracted),
                confidence=_first_present(
                    data, "confidence", default=1.0 if source_text else FALLBACK_CONFIDENCE
                ),
                topics=_as_str_list(data.get("topics")),
                concepts=_as_str_list(data.get("concepts")),
                grade_estimate=str(_first_present(data, "gradeEstimate", "grade_estimate", default="Unknown")),
                safe_rephrase=str(_first_present(data, "safeRephrase", "safe_rephrase", default="")),
                problem_type=_first_present(data, "problemType", "problem_type", default="other"),
            )
        except (JSONParsingError, ValidationError) as e:
            logger.warning(
                "analysis_parse_fallback",
                error=str(e),
                response_preview=raw_response[:100],
            )
            return self.fallback_analysis(source_text or raw_response)

    @staticmethod
    def fallback_analysis(content: str) -> ProblemAnalysis:
        """Análisis de respaldo: el contenido tal cual, sin clasificar."""
        return ProblemAnalysis(
            extracted_text=content,
            confidence=FALLBACK_CONFIDENCE,
            topics=list(FALLBACK_TOPICS),
            concepts=list(FALLBACK_CONCEPTS),
            grade_estimate="Unknown",
            safe_rephrase=content,
            problem_type=ProblemType.OTHER,
        )

    # =========================================================================
    # Reflexión de sesión
    # =========================================================================

    def parse_reflection(
        self,
        raw_response: str,
        problem_concepts: list[str] | None = None,
    ) -> SessionReflection:
        """
        Parsea la reflexión de fin de sesión.

        Args:
            raw_response: Respuesta del generador.
            problem_concepts: Conceptos del análisis, usados en el respaldo.
        """
        try:
            data = self.load_json(raw_response)
        except JSONParsingError as e:
            logger.warning("reflection_parse_fallback", error=str(e))
            return self.fallback_reflection(problem_concepts)

        questions = _as_str_list(_first_present(data, "reflectionQuestions", "reflection_questions"))
        if not questions:
            logger.warning("reflection_parse_fallback", error="sin preguntas de reflexión")
            return self.fallback_reflection(problem_concepts)

        return SessionReflection(
            concepts_practiced=_as_str_list(
                _first_present(data, "conceptsPracticed", "concepts_practiced")
            ),
            strategies_used=_as_str_list(_first_present(data, "strategiesUsed", "strategies_used")),
            reflection_questions=questions,
        )

    @staticmethod
    def fallback_reflection(problem_concepts: list[str] | None = None) -> SessionReflection:
        return SessionReflection(
            concepts_practiced=list(problem_concepts or FALLBACK_REFLECTION_CONCEPTS),
            strategies_used=list(FALLBACK_STRATEGIES),
            reflection_questions=list(FALLBACK_REFLECTION_QUESTIONS),
        )

    # =========================================================================
    # Extracción de JSON
    # =========================================================================

    def load_json(self, response: str) -> dict[str, Any]:
        """
        Extrae y decodifica el objeto JSON de la respuesta.

        Raises:
            JSONParsingError: Si no hay un objeto JSON válido.
        """
        json_str = self._extract_json(response)
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise JSONParsingError(response, str(e)) from e
        if not isinstance(data, dict):
            raise JSONParsingError(response, "El JSON no es un objeto")
        return data

    def _extract_json(self, response: str) -> str:
        """
        Extrae JSON de una respuesta que puede contener texto adicional.

        Maneja casos como:
        - JSON puro
        - JSON en bloques de código markdown
        - JSON con texto antes/después
        """
        response = response.strip()

        if response.startswith("{"):
            return self._find_json_object(response)

        code_block_pattern = r"```(?:json)?\s*\n?(.*?)\n?```"
        for match in re.findall(code_block_pattern, response, re.DOTALL):
            if match.strip().startswith("{"):
                return match.strip()

        # Objetos con un nivel de anidamiento; el más grande suele ser el correcto
        json_pattern = r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}"
        matches = re.findall(json_pattern, response, re.DOTALL)
        if matches:
            return max(matches, key=len)

        raise JSONParsingError(response, "No se encontró JSON en la respuesta")

    def _find_json_object(self, text: str) -> str:
        """Encuentra un objeto JSON completo al inicio del texto."""
        depth = 0
        in_string = False
        escape_next = False

        for i, char in enumerate(text):
            if escape_next:
                escape_next = False
                continue
            if char == "\\":
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if not in_string:
                if char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth == 0:
                        return text[: i + 1]

        # JSON truncado por max_tokens
        return text + "}" * depth


__all__ = [
    "AnalysisParser",
    "FALLBACK_REFLECTION_QUESTIONS",
    "FALLBACK_STRATEGIES",
]
