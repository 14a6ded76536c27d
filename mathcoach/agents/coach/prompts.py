"""
Prompts del coach de matemáticas.

El texto de política del coach se construye UNA vez al arrancar el proceso
(`build_coach_policy`) y se comparte por referencia entre todas las
sesiones como un valor inmutable (`CoachPolicy`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from string import Template
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from config.settings import ConfirmationPolicy

if TYPE_CHECKING:
    from mathcoach.core.types import CoachSession, ProblemType


# =============================================================================
# PROMPT PRINCIPAL DEL COACH
# =============================================================================

COACH_SYSTEM_PROMPT = """You are an RSM-style math coach. Guide the student to solve the problem using RSM thinking.

HARD RULES (NEVER VIOLATE):
- Never provide the final answer (numeric, symbolic, or verbal).
- Do not produce a complete worked solution.
- Do not reveal which multiple-choice option is correct.

YOU MAY:
- Rephrase the problem to ensure understanding
- Explain concepts and definitions
- Ask guiding Socratic questions
- Provide tiered hints (3 levels)
- Validate intermediate reasoning ("your setup looks valid so far")
- Suggest testing with smaller examples
- Offer alternative approaches when stuck

RSM PEDAGOGY - ALWAYS PREFER:
- Structure and patterns over memorization
- Invariants (what stays the same?)
- Smaller/simpler cases to build intuition
- Diagrams, tables, or organized work
- Working backwards from what we want

GUIDING QUESTIONS TO USE:
- "What do we know from the problem?"
- "What are we trying to find?"
- "What stays the same here?"
- "Can we test this with a smaller example?"
- "Can we draw a quick diagram or table?"
- "What's the relationship between these quantities?"

PERSISTENCE:
If the student is stuck, try a different approach: a smaller case, a diagram,
working backwards, finding an invariant, or rewriting the problem.
NEVER give up - keep offering new angles.

KEEP RESPONSES CONCISE:
- Use 2-4 sentences per response
- Be encouraging but efficient
- End with a clear guiding question"""


CONFIRMATION_NEVER_PROMPT = """ANSWER CONFIRMATION POLICY:
- Never confirm final correctness with phrases like "correct", "you got it" or "that's right".
- If the student proposes a result, ask how they would verify it with a different method."""


CONFIRMATION_WITH_WORK_PROMPT = """ANSWER CONFIRMATION POLICY:
- If a student just guesses without explanation (e.g., "is it 42?", "is it A?"), do NOT confirm or deny.
- Ask them to explain HOW they got that answer before you check it.
- When they DO show their work, you may say their reasoning holds up and point out
  any step worth re-checking, but never restate the final value and never use the
  words "correct", "right" or "you got it" about the result."""


PROBLEM_TYPE_GUIDANCE = """PROBLEM-SPECIFIC HINTS:
When providing hints, tailor them to the ACTUAL problem type:
- For percentage problems: focus on the relationship between percentages and the original value
- For algebra: focus on isolating variables and equation manipulation
- For patterns: focus on what changes and what stays constant
- For word problems: focus on translating words to mathematical expressions
- For geometry: focus on properties, relationships, and visualization"""


# =============================================================================
# PROMPTS POR NIVEL DE PISTA
# =============================================================================

HINT_TIER_TEMPLATES: dict[int, Template] = {
    1: Template("""The student needs a LEVEL 1 HINT (broad pointer).
Based on the problem type ($problem_type), give a general concept or approach hint.
- For percentage problems: hint about relationships between parts and wholes
- For algebra: hint about what operation might help isolate the unknown
- For patterns: hint about looking for what changes/stays same
Do NOT narrow down to specific steps. Ask a guiding question."""),
    2: Template("""The student needs a LEVEL 2 HINT (narrower focus).
Based on the specific problem ($problem_type), suggest a concrete transformation or relationship to explore.
- For percentage problems: guide them to think about what the percentage represents
- For algebra: suggest a specific algebraic technique
- For patterns: point to a specific relationship
Still do NOT give the calculation or answer."""),
    3: Template("""The student needs a LEVEL 3 HINT (specific action).
Guide to a specific next step, but stop ONE STEP before the answer.
The student must still complete the final calculation themselves.
Be concrete but leave the last step for them to discover."""),
}


# Turno de usuario que acompaña a la instrucción de pista; no entra en la transcripción
HINT_REQUEST_MESSAGE = "Could I get a hint for the next step?"


CONFIRMATION_ALLOWED_INSTRUCTION = """The student has shown their work and asks you to check it.
Comment on whether their reasoning holds up and which step, if any, deserves a
second look. Do not restate the final value."""


PROBLEM_CONTEXT_TEMPLATE = Template("""CURRENT PROBLEM:
$problem_text

PROBLEM TYPE: $problem_type
TOPICS: $topics
TONE: $tone""")


WELCOME_TEMPLATE = Template(
    "Great! Let's work on this together. Here's what I see:\n\n"
    "**$problem_text**\n\n"
    "${observation}"
    "Let's start: **What do we know from this problem, and what are we trying to find?**"
)


# =============================================================================
# Política inmutable
# =============================================================================

@dataclass(frozen=True)
class CoachPolicy:
    """
    Texto de política del coach, de solo lectura.

    Attributes:
        system_prompt: Prompt de sistema común a todas las sesiones.
        hint_templates: Instrucciones por nivel de pista.
        confirmation_policy: Política de confirmación con la que se construyó.
    """

    system_prompt: str
    hint_templates: Mapping[int, Template]
    confirmation_policy: ConfirmationPolicy

    def hint_instruction(self, tier: int, problem_type: "ProblemType") -> str:
        template = self.hint_templates.get(tier, self.hint_templates[1])
        return template.substitute(problem_type=problem_type.value.replace("_", " "))


def build_coach_policy(
    confirmation_policy: ConfirmationPolicy = ConfirmationPolicy.ALLOW_WITH_WORK,
) -> CoachPolicy:
    """
    Construye la política del coach. Se llama una sola vez al arrancar.

    Args:
        confirmation_policy: Variante de la política de confirmación.

    Returns:
        CoachPolicy inmutable.
    """
    confirmation_prompt = (
        CONFIRMATION_WITH_WORK_PROMPT
        if confirmation_policy == ConfirmationPolicy.ALLOW_WITH_WORK
        else CONFIRMATION_NEVER_PROMPT
    )
    system_prompt = "\n\n".join(
        [COACH_SYSTEM_PROMPT, confirmation_prompt, PROBLEM_TYPE_GUIDANCE]
    )
    return CoachPolicy(
        system_prompt=system_prompt,
        hint_templates=MappingProxyType(dict(HINT_TIER_TEMPLATES)),
        confirmation_policy=confirmation_policy,
    )


# =============================================================================
# Tono según curso
# =============================================================================

class AgeTone(str, Enum):
    """Registro del lenguaje según el curso estimado."""
    ELEMENTARY = "elementary"
    MIDDLE = "middle"
    HIGH = "high"


DEFAULT_GRADE = 5


def get_age_tone(grade_estimate: str | None) -> AgeTone:
    """
    Tono a partir del curso estimado ("Grade 5-6" usa el primer número).

    Sin número reconocible se asume el curso DEFAULT_GRADE.
    """
    match = re.search(r"\d+", grade_estimate or "")
    grade = int(match.group()) if match else DEFAULT_GRADE
    if grade <= 4:
        return AgeTone.ELEMENTARY
    if grade <= 7:
        return AgeTone.MIDDLE
    return AgeTone.HIGH


# =============================================================================
# FUNCIONES DE UTILIDAD
# =============================================================================

def format_problem_context(session: "CoachSession") -> str:
    """
    Contexto del problema que se añade al prompt de sistema.

    Args:
        session: Sesión actual.

    Returns:
        Bloque de texto con problema, tipo, temas y tono.
    """
    analysis = session.analysis
    topics = ", ".join(analysis.topics) if analysis and analysis.topics else "general math"
    grade = analysis.grade_estimate if analysis else None
    return PROBLEM_CONTEXT_TEMPLATE.substitute(
        problem_text=session.problem_text,
        problem_type=session.problem_type.value.replace("_", " "),
        topics=topics,
        tone=get_age_tone(grade).value,
    )


def build_system_message(
    policy: CoachPolicy,
    session: "CoachSession",
    instruction: str | None = None,
) -> str:
    """Prompt de sistema completo para una llamada al generador."""
    parts = [policy.system_prompt, format_problem_context(session)]
    if instruction:
        parts.append(instruction)
    return "\n\n".join(parts)


def format_welcome_message(problem_text: str, safe_rephrase: str | None = None) -> str:
    """Primer turno del coach al iniciar una sesión."""
    observation = f"RSM-style observation: {safe_rephrase}\n\n" if safe_rephrase else ""
    return WELCOME_TEMPLATE.substitute(problem_text=problem_text, observation=observation)


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "COACH_SYSTEM_PROMPT",
    "CONFIRMATION_NEVER_PROMPT",
    "CONFIRMATION_WITH_WORK_PROMPT",
    "CONFIRMATION_ALLOWED_INSTRUCTION",
    "HINT_TIER_TEMPLATES",
    "HINT_REQUEST_MESSAGE",
    "CoachPolicy",
    "build_coach_policy",
    "AgeTone",
    "get_age_tone",
    "format_problem_context",
    "build_system_message",
    "format_welcome_message",
]
