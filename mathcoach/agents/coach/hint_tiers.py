"""
Máquina de estados de niveles de pista.

Cada sesión concede como máximo tres pistas, de menos a más concretas:

1. Concepto amplio (qué tipo de problema es, qué idea aplica)
2. Transformación más acotada (cómo reorganizar o representar el problema)
3. Paso concreto pero incompleto (el estudiante hace el último paso)

    0 ──pista──> 1 ──pista──> 2 ──pista──> 3 (terminal)

La lectura del estado, la generación, el escaneo y el avance se hacen bajo
el lock de la sesión, así que N peticiones concurrentes sobre una sesión
nueva conceden exactamente min(N, 3) pistas con niveles 1, 2 y 3.
"""

from __future__ import annotations

from typing import Awaitable, Callable
from uuid import UUID

from mathcoach.agents.coach.session_manager import SessionManager
from mathcoach.core.exceptions import SessionEndedError
from mathcoach.core.types import CoachSession, DecisionKind, HintState, PolicyDecision, TurnRole
from mathcoach.guardrails.policy import ResponsePolicySelector
from mathcoach.utils.logging import get_logger
from mathcoach.utils.metrics import CoachMetrics, get_coach_metrics

logger = get_logger(__name__)

# Produce la pista (ya escaneada) de un nivel para una sesión
HintProducer = Callable[[CoachSession, int], Awaitable[PolicyDecision]]

TIER_DESCRIPTIONS: dict[int, str] = {
    1: "broad_concept",
    2: "narrower_transformation",
    3: "concrete_incomplete_step",
}


class HintTierStateMachine:
    """
    Concede pistas respetando el orden de niveles y el tope de tres.

    Attributes:
        session_manager: Fuente de sesiones y de sus locks.
        policy: Selector usado para las respuestas de rechazo.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        policy: ResponsePolicySelector,
        metrics: CoachMetrics | None = None,
    ) -> None:
        self.session_manager = session_manager
        self.policy = policy
        self.metrics = metrics or get_coach_metrics()

    @staticmethod
    def transition(state: HintState) -> tuple[HintState, int] | None:
        """
        Transición pura: nuevo estado y nivel concedido, o None si no quedan pistas.
        """
        tier = state.next_tier
        if tier is None:
            return None
        return state.advance(), tier

    async def request_hint(self, session_id: UUID, produce: HintProducer) -> PolicyDecision:
        """
        Solicita la siguiente pista de la sesión.

        Args:
            session_id: ID de la sesión.
            produce: Corrutina que genera y escanea la pista del nivel dado.

        Returns:
            PolicyDecision HINT (o GENERATOR_FALLBACK con nivel) si se concede,
            HINT_REJECTED si ya se usaron las tres.

        Raises:
            SessionNotFoundError: Si la sesión no existe.
            SessionEndedError: Si la sesión terminó durante la generación.
        """
        async with self.session_manager.exclusive(session_id) as session:
            transition = self.transition(session.hint_state)

            if transition is None:
                decision = self.policy.hint_rejected()
                self.session_manager.append_turn(
                    session,
                    TurnRole.COACH,
                    decision.text,
                    decision_kind=decision.kind,
                )
                logger.info("hint_rejected", session_id=str(session_id))
                return decision

            new_state, tier = transition
            decision = await produce(session, tier)

            if not session.is_active:
                logger.info("hint_discarded", session_id=str(session_id), tier=tier)
                raise SessionEndedError(str(session_id))

            session.hint_state = new_state
            self.session_manager.append_turn(
                session,
                TurnRole.COACH,
                decision.text,
                hint_tier=tier,
                decision_kind=decision.kind,
            )
            self.metrics.record_hint(tier)
            logger.info(
                "hint_granted",
                session_id=str(session_id),
                tier=tier,
                tier_kind=TIER_DESCRIPTIONS[tier],
                from_fallback=decision.kind == DecisionKind.GENERATOR_FALLBACK,
                hints_granted=new_state.hints_granted,
            )
            return decision


__all__ = ["HintTierStateMachine", "HintProducer", "TIER_DESCRIPTIONS"]
