"""
Reflexión de fin de sesión.

Resume qué conceptos se practicaron y qué estrategias probó el estudiante,
y propone preguntas de reflexión. Nunca juzga si la respuesta final era
correcta. Si el generador falla o devuelve algo inservible se usa una
reflexión fija.
"""

from __future__ import annotations

import asyncio

from mathcoach.agents.analyzer.parser import AnalysisParser
from mathcoach.core.exceptions import ModelError
from mathcoach.core.types import CoachSession, SessionReflection
from mathcoach.models.base import BaseModelAdapter
from mathcoach.utils.logging import get_logger, log_model_call
from mathcoach.utils.metrics import CoachMetrics, get_coach_metrics

logger = get_logger(__name__)


REFLECTION_SYSTEM_PROMPT = """Generate a session summary for this tutoring conversation. DO NOT confirm if the student got the final answer correct.

Return ONLY a JSON object with:
{
  "conceptsPracticed": ["concept1", "concept2"] - actual concepts from this session,
  "strategiesUsed": ["strategy1", "strategy2"] - specific strategies the student tried,
  "reflectionQuestions": [
    "Question about what the student learned",
    "Question connecting to other problems",
    "Question about the approach used"
  ]
}

Focus on the LEARNING PROCESS, not correctness of answers. Be specific to what actually happened in the conversation."""


def format_reflection_request(session: CoachSession) -> str:
    conversation = "\n".join(
        f"{turn.role.value}: {turn.content}" for turn in session.transcript.turns
    )
    return f"Problem: {session.problem_text or 'Unknown problem'}\n\nConversation:\n{conversation}"


class SessionReflector:
    """Genera la reflexión de una sesión terminada."""

    def __init__(
        self,
        model: BaseModelAdapter,
        parser: AnalysisParser | None = None,
        temperature: float = 0.5,
        max_tokens: int = 600,
        timeout_seconds: float = 30.0,
        metrics: CoachMetrics | None = None,
    ) -> None:
        self.model = model
        self.parser = parser or AnalysisParser()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics or get_coach_metrics()

    async def reflect(self, session: CoachSession) -> SessionReflection:
        concepts = session.analysis.concepts if session.analysis else None
        messages = [
            {"role": "system", "content": REFLECTION_SYSTEM_PROMPT},
            {"role": "user", "content": format_reflection_request(session)},
        ]

        log_model_call(logger, self.model.model_id, "session_reflection", messages)
        try:
            response = await asyncio.wait_for(
                self.model.generate(
                    messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except (ModelError, asyncio.TimeoutError) as e:
            reason = type(e).__name__
            logger.warning("reflection_generator_unavailable", reason=reason)
            self.metrics.record_generator_fallback(reason)
            return self.parser.fallback_reflection(concepts)

        return self.parser.parse_reflection(response.content, concepts)


__all__ = ["SessionReflector", "REFLECTION_SYSTEM_PROMPT", "format_reflection_request"]
