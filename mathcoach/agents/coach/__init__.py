"""
Agente Coach de mathcoach.

Exporta el agente y sus piezas: gestor de sesiones, máquina de estados de
pistas, política del coach y reflexión de fin de sesión.

Ejemplo de uso:
    ```python
    import asyncio
    from mathcoach.agents.coach import CoachAgent

    async def main():
        coach = CoachAgent.create()
        session = await coach.start_session("A train travels 180 miles in 3 hours...")

        reply = await coach.respond(session.session_id, "I'm stuck")
        print(reply.text)  # nudge de persistencia, sin llamar al generador

        hint = await coach.request_hint(session.session_id)
        print(hint.hint_tier)  # 1

        record = await coach.end_session(session.session_id)
        print(record.reflection.reflection_questions)

    asyncio.run(main())
    ```
"""

from mathcoach.agents.coach.agent import CoachAgent, SessionArchive
from mathcoach.agents.coach.hint_tiers import TIER_DESCRIPTIONS, HintProducer, HintTierStateMachine
from mathcoach.agents.coach.prompts import (
    COACH_SYSTEM_PROMPT,
    CONFIRMATION_ALLOWED_INSTRUCTION,
    HINT_TIER_TEMPLATES,
    AgeTone,
    CoachPolicy,
    build_coach_policy,
    build_system_message,
    format_problem_context,
    format_welcome_message,
    get_age_tone,
)
from mathcoach.agents.coach.reflection import SessionReflector
from mathcoach.agents.coach.session_manager import SessionManager

__all__ = [
    # Agente principal
    "CoachAgent",
    "SessionArchive",
    # Sesiones y pistas
    "SessionManager",
    "HintTierStateMachine",
    "HintProducer",
    "TIER_DESCRIPTIONS",
    # Política y prompts
    "CoachPolicy",
    "build_coach_policy",
    "COACH_SYSTEM_PROMPT",
    "CONFIRMATION_ALLOWED_INSTRUCTION",
    "HINT_TIER_TEMPLATES",
    "AgeTone",
    "get_age_tone",
    "format_problem_context",
    "build_system_message",
    "format_welcome_message",
    # Reflexión
    "SessionReflector",
]
