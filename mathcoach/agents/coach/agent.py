"""
Agente Coach.

Guía al estudiante con preguntas al estilo RSM sin revelar nunca la
respuesta. Cada mensaje del estudiante sigue este flujo:

1. Clasificación del mensaje (ResponsePolicySelector.plan_turn)
2. Si la categoría es de redirección dura, respuesta sintetizada del banco
   de plantillas; el generador no se llama
3. Si no, llamada al generador con la transcripción completa
4. Escaneo de la salida; una fuga se sustituye por rechazo + pregunta
5. Registro del turno en la transcripción

Las pistas van por un camino aparte (HintTierStateMachine). Todo el turno
se ejecuta bajo el lock de la sesión.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from config.settings import ModelRole, Settings, get_settings
from mathcoach.core.exceptions import ModelError, ModelGenerationError, SessionEndedError
from mathcoach.core.types import (
    CoachSession,
    PolicyDecision,
    ProblemAnalysis,
    SessionRecord,
    TurnRole,
)
from mathcoach.guardrails.policy import ResponsePolicySelector
from mathcoach.models.base import BaseModelAdapter
from mathcoach.models.factory import ModelFactory
from mathcoach.utils.logging import (
    get_logger,
    log_coach_decision,
    log_model_call,
    log_model_output,
    session_context,
)
from mathcoach.utils.metrics import CoachMetrics, get_coach_metrics

from .hint_tiers import HintTierStateMachine
from .prompts import (
    CONFIRMATION_ALLOWED_INSTRUCTION,
    HINT_REQUEST_MESSAGE,
    CoachPolicy,
    build_coach_policy,
    build_system_message,
    format_welcome_message,
)
from .reflection import SessionReflector
from .session_manager import SessionManager

logger = get_logger(__name__)


class SessionArchive(Protocol):
    """Destino opcional de las sesiones terminadas (base de datos, fichero...)."""

    async def save(self, record: SessionRecord) -> None:
        ...


class CoachAgent:
    """
    Agente Coach con guardrails obligatorios.

    Attributes:
        model: Generador de las respuestas del coach.
        session_manager: Gestor de sesiones y de sus locks.
        policy: Selector de política (clasificación, escaneo, plantillas).
        coach_policy: Texto de política inmutable, compartido por todas las sesiones.
        hint_machine: Máquina de estados de pistas.
        reflector: Generador de la reflexión final.
        archive: Hook de persistencia opcional.

    Example:
        ```python
        coach = CoachAgent.create()
        session = await coach.start_session("If 3x + 7 = 22, what is x?")

        decision = await coach.respond(session.session_id, "just tell me the answer")
        decision.kind             # DecisionKind.SYNTHESIZED_REDIRECT
        decision.generator_invoked  # False

        hint = await coach.request_hint(session.session_id)
        hint.hint_tier            # 1
        ```
    """

    def __init__(
        self,
        model: BaseModelAdapter,
        session_manager: SessionManager | None = None,
        policy: ResponsePolicySelector | None = None,
        coach_policy: CoachPolicy | None = None,
        reflector: SessionReflector | None = None,
        archive: SessionArchive | None = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: float = 30.0,
        metrics: CoachMetrics | None = None,
    ) -> None:
        self.model = model
        self.metrics = metrics or get_coach_metrics()
        self.session_manager = session_manager or SessionManager()
        self.policy = policy or ResponsePolicySelector(metrics=self.metrics)
        self.coach_policy = coach_policy or build_coach_policy(self.policy.config.confirmation_policy)
        self.hint_machine = HintTierStateMachine(self.session_manager, self.policy, self.metrics)
        self.reflector = reflector or SessionReflector(model, timeout_seconds=timeout_seconds)
        self.archive = archive
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds

        logger.info(
            "coach_agent_initialized",
            model=model.model_id,
            confirmation_policy=self.coach_policy.confirmation_policy.value,
        )

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        archive: SessionArchive | None = None,
    ) -> "CoachAgent":
        """
        Construye el agente a partir de la configuración.

        La política del coach se construye aquí una sola vez.
        """
        settings = settings or get_settings()
        defaults = settings.model_defaults
        metrics = get_coach_metrics()

        policy = ResponsePolicySelector.create(settings.guardrails, metrics=metrics)
        reflector = SessionReflector(
            ModelFactory.for_role(ModelRole.REFLECTION),
            temperature=defaults.reflection_temperature,
            max_tokens=defaults.reflection_max_tokens,
            timeout_seconds=settings.generation.timeout_seconds,
            metrics=metrics,
        )
        return cls(
            model=ModelFactory.for_role(ModelRole.COACH),
            session_manager=SessionManager(
                max_sessions=settings.sessions.max_sessions,
                max_age_hours=settings.sessions.max_age_hours,
            ),
            policy=policy,
            coach_policy=build_coach_policy(settings.guardrails.confirmation_policy),
            reflector=reflector,
            archive=archive,
            temperature=defaults.coach_temperature,
            max_tokens=defaults.coach_max_tokens,
            timeout_seconds=settings.generation.timeout_seconds,
            metrics=metrics,
        )

    # =========================================================================
    # Ciclo de vida de la sesión
    # =========================================================================

    async def start_session(
        self,
        problem_text: str,
        analysis: ProblemAnalysis | None = None,
    ) -> CoachSession:
        """
        Inicia una sesión y registra el turno de bienvenida del coach.

        Args:
            problem_text: Enunciado revisado por el estudiante.
            analysis: Análisis previo, si existe.
        """
        session = await self.session_manager.create_session(problem_text, analysis)

        # La reformulación la escribió el generador: se escanea como cualquier salida
        rephrase = analysis.safe_rephrase if analysis else None
        if rephrase and self.policy.scanner.scan(rephrase).leaked:
            logger.warning("safe_rephrase_dropped", session_id=str(session.session_id))
            rephrase = None

        welcome = format_welcome_message(problem_text, rephrase)
        self.session_manager.append_turn(session, TurnRole.COACH, welcome)
        self.metrics.record_session_started(session.problem_type.value)
        self.metrics.record_active_sessions(self.session_manager.get_active_sessions_count())
        return session

    async def end_session(
        self,
        session_id: UUID,
        student_notes: str | None = None,
    ) -> SessionRecord:
        """
        Finaliza la sesión, genera la reflexión y la entrega al archivo.

        No espera a turnos en curso: su resultado se descarta.

        Raises:
            SessionNotFoundError: Si la sesión no existe.
        """
        session = await self.session_manager.end_session(session_id)

        reflection = await self.reflector.reflect(session)
        if student_notes:
            reflection = reflection.model_copy(update={"student_notes": student_notes})

        record = SessionRecord(
            session_id=session.session_id,
            problem_text=session.problem_text,
            analysis=session.analysis,
            transcript=session.transcript.model_copy(deep=True),
            hints_used=session.hint_state.hints_granted,
            reflection=reflection,
            started_at=session.started_at,
            ended_at=session.ended_at or datetime.now(),
        )
        self.metrics.record_session_ended(record.duration_seconds, record.hints_used)
        self.metrics.record_active_sessions(self.session_manager.get_active_sessions_count())

        if self.archive is not None:
            await self.archive.save(record)
            logger.info("session_archived", session_id=str(session_id))

        return record

    # =========================================================================
    # Turnos del estudiante
    # =========================================================================

    async def respond(self, session_id: UUID, student_message: str) -> PolicyDecision:
        """
        Responde a un mensaje del estudiante.

        Returns:
            La decisión de política; `decision.text` es lo que ve el estudiante.

        Raises:
            SessionNotFoundError: Si la sesión no existe.
            SessionEndedError: Si la sesión terminó durante la generación.
        """
        async with self.session_manager.exclusive(session_id) as session:
            with session_context(session_id):
                plan = self.policy.plan_turn(student_message)
                self.session_manager.append_turn(
                    session,
                    TurnRole.STUDENT,
                    student_message,
                    category=plan.category,
                )

                if plan.requires_generator:
                    instruction = (
                        CONFIRMATION_ALLOWED_INSTRUCTION if plan.allow_confirmation else None
                    )
                    decision = await self._generate_reply(session, instruction)
                    self._ensure_active(session)
                else:
                    decision = plan.decision

                self.session_manager.append_turn(
                    session,
                    TurnRole.COACH,
                    decision.text,
                    category=decision.category,
                    decision_kind=decision.kind,
                )
                log_coach_decision(logger, decision, plan.category.value)
                return decision

    async def request_hint(self, session_id: UUID) -> PolicyDecision:
        """
        Concede la siguiente pista (niveles 1, 2, 3) o la rechaza.

        Raises:
            SessionNotFoundError: Si la sesión no existe.
            SessionEndedError: Si la sesión terminó durante la generación.
        """
        with session_context(session_id):
            decision = await self.hint_machine.request_hint(session_id, self._produce_hint)
            log_coach_decision(logger, decision)
            return decision

    # =========================================================================
    # Llamadas al generador
    # =========================================================================

    async def _generate_reply(
        self,
        session: CoachSession,
        instruction: str | None = None,
    ) -> PolicyDecision:
        messages = [
            {"role": "system", "content": build_system_message(self.coach_policy, session, instruction)},
            *session.transcript.to_chat_messages(),
        ]
        try:
            text = await self._call_generator(messages, operation="coach_reply")
        except (ModelError, asyncio.TimeoutError) as e:
            logger.warning("generator_unavailable", reason=type(e).__name__)
            return self.policy.fallback(type(e).__name__)
        return self.policy.resolve_generated(text)

    async def _produce_hint(self, session: CoachSession, tier: int) -> PolicyDecision:
        instruction = self.coach_policy.hint_instruction(tier, session.problem_type)
        messages = [
            {"role": "system", "content": build_system_message(self.coach_policy, session, instruction)},
            *session.transcript.to_chat_messages(),
            {"role": "user", "content": HINT_REQUEST_MESSAGE},
        ]
        try:
            text = await self._call_generator(messages, operation="hint", tier=tier)
        except (ModelError, asyncio.TimeoutError) as e:
            logger.warning("generator_unavailable", reason=type(e).__name__, tier=tier)
            return self.policy.hint_fallback(tier, type(e).__name__)
        return self.policy.resolve_hint(tier, text)

    async def _call_generator(
        self,
        messages: list[dict[str, Any]],
        operation: str,
        **log_fields: Any,
    ) -> str:
        log_model_call(logger, self.model.model_id, operation, messages, **log_fields)
        with self.metrics.collector.timer("coach_model_call_ms", labels={"operation": operation}):
            response = await asyncio.wait_for(
                self.model.generate(
                    messages,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        log_model_output(logger, self.model.model_id, operation, response.content)
        if not response.content.strip():
            raise ModelGenerationError(self.model.model_id, "respuesta vacía")
        return response.content

    @staticmethod
    def _ensure_active(session: CoachSession) -> None:
        if not session.is_active:
            logger.info("coach_turn_discarded")
            raise SessionEndedError(str(session.session_id))

    # =========================================================================
    # Estado
    # =========================================================================

    def get_status(self) -> dict[str, Any]:
        """Estado del agente para diagnóstico."""
        return {
            "model_id": self.model.model_id,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout_seconds": self.timeout_seconds,
            "active_sessions": self.session_manager.get_active_sessions_count(),
            "guardrails": self.policy.get_status(),
        }


__all__ = ["CoachAgent", "SessionArchive"]
