"""
Analizador de problemas.

Extrae el enunciado de una foto (modelo de visión) o analiza un enunciado
escrito (modelo de análisis) y devuelve un ProblemAnalysis tipado con
temas, conceptos, curso estimado, reformulación segura y tipo de problema.

La confianza de la extracción solo sirve para que la UI pida revisar el
texto; nunca condiciona los guardrails.
"""

from __future__ import annotations

import asyncio
from typing import Any

from config.settings import ModelRole, Settings, get_settings
from mathcoach.core.exceptions import ModelError, ModelTimeoutError
from mathcoach.core.types import ProblemAnalysis
from mathcoach.models.base import BaseModelAdapter
from mathcoach.models.factory import ModelFactory
from mathcoach.utils.logging import get_logger
from mathcoach.utils.metrics import get_metrics

from .parser import AnalysisParser
from .prompts import IMAGE_ANALYSIS_PROMPT, format_text_analysis_prompt, image_data_url

logger = get_logger(__name__)
metrics = get_metrics()


class ProblemAnalyzer:
    """
    Analiza problemas de matemáticas sin resolverlos.

    Attributes:
        text_model: Generador para enunciados escritos.
        vision_model: Generador con soporte de imágenes.
        parser: Parser defensivo de la respuesta JSON.

    Example:
        ```python
        analyzer = ProblemAnalyzer.create()
        analysis = await analyzer.analyze(text="If 3x + 7 = 22, what is x?")
        analysis.problem_type     # ProblemType.ALGEBRA
        analysis.confidence_band  # ConfidenceBand.HIGH
        ```
    """

    def __init__(
        self,
        text_model: BaseModelAdapter,
        vision_model: BaseModelAdapter | None = None,
        parser: AnalysisParser | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1000,
        timeout_seconds: float = 45.0,
    ) -> None:
        self.text_model = text_model
        self.vision_model = vision_model or text_model
        self.parser = parser or AnalysisParser()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

    @classmethod
    def create(cls, settings: Settings | None = None) -> "ProblemAnalyzer":
        """Construye el analizador con los modelos configurados."""
        settings = settings or get_settings()
        defaults = settings.model_defaults
        return cls(
            text_model=ModelFactory.for_role(ModelRole.ANALYSIS),
            vision_model=ModelFactory.for_role(ModelRole.VISION),
            temperature=defaults.analysis_temperature,
            max_tokens=defaults.analysis_max_tokens,
            timeout_seconds=settings.generation.analysis_timeout_seconds,
        )

    async def analyze(
        self,
        text: str | None = None,
        image_base64: str | None = None,
    ) -> ProblemAnalysis:
        """
        Analiza un problema escrito o fotografiado.

        Args:
            text: Enunciado escrito por el estudiante.
            image_base64: Foto del problema (base64 o data URL).

        Returns:
            ProblemAnalysis. Si el generador devuelve algo inservible se usa
            el análisis de respaldo.

        Raises:
            ValueError: Si no se proporciona ni texto ni imagen.
            ModelError: Si el generador falla analizando una imagen (sin
                texto no hay respaldo posible).
        """
        if image_base64:
            return await self._analyze_image(image_base64)
        if text and text.strip():
            return await self._analyze_text(text.strip())
        raise ValueError("Se requiere text o image_base64")

    async def _analyze_image(self, image_base64: str) -> ProblemAnalysis:
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": image_data_url(image_base64)}},
                    {"type": "text", "text": IMAGE_ANALYSIS_PROMPT},
                ],
            }
        ]
        raw = await self._generate(self.vision_model, messages)
        analysis = self.parser.parse_analysis(raw)
        self._record(analysis, source="image")
        return analysis

    async def _analyze_text(self, text: str) -> ProblemAnalysis:
        messages = [{"role": "user", "content": format_text_analysis_prompt(text)}]
        try:
            raw = await self._generate(self.text_model, messages)
        except ModelError as e:
            logger.warning("analysis_generator_unavailable", error=e.message)
            metrics.increment("analysis_fallbacks", labels={"reason": type(e).__name__})
            analysis = self.parser.fallback_analysis(text)
            # El texto lo escribió el estudiante: no hay incertidumbre de extracción
            return analysis.model_copy(update={"confidence": 1.0})

        analysis = self.parser.parse_analysis(raw, source_text=text)
        self._record(analysis, source="text")
        return analysis

    async def _generate(self, model: BaseModelAdapter, messages: list[dict[str, Any]]) -> str:
        try:
            with metrics.timer("analysis_model_call_ms"):
                response = await asyncio.wait_for(
                    model.generate(
                        messages,
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                    ),
                    timeout=self.timeout_seconds,
                )
        except asyncio.TimeoutError as e:
            raise ModelTimeoutError(model.model_id, self.timeout_seconds) from e
        return response.content

    def _record(self, analysis: ProblemAnalysis, source: str) -> None:
        metrics.increment(
            "problems_analyzed",
            labels={"source": source, "problem_type": analysis.problem_type.value},
        )
        logger.info(
            "problem_analyzed",
            source=source,
            problem_type=analysis.problem_type.value,
            confidence=analysis.confidence,
            confidence_band=analysis.confidence_band.value,
        )

    def get_model_info(self) -> dict[str, Any]:
        return {
            "text_model": self.text_model.model_id,
            "vision_model": self.vision_model.model_id,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


__all__ = ["ProblemAnalyzer"]
