"""
Banco de plantillas de respuestas sintetizadas.

Frases fijas y revisadas que el motor usa cuando no debe (o no puede)
llamar al generador. La selección aleatoria usa una fuente `random.Random`
inyectada, de modo que una semilla fija hace la selección reproducible.

Las frases pueden sustituirse desde un YAML con la misma estructura que
DEFAULT_TEMPLATES; cada conjunto debe quedar no vacío.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Any

import yaml

from mathcoach.core.exceptions import TemplateBankError
from mathcoach.core.types import MAX_HINT_TIERS
from mathcoach.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Frases por defecto
# =============================================================================

REFUSAL_TEMPLATES: list[str] = [
    "I'm here to help you discover the answer yourself! Let's think through this together.",
    "Great question! Rather than giving you the answer, let me help you figure it out step by step.",
    "I want you to have that 'aha!' moment. Let's work through the reasoning together.",
    "Finding the answer yourself will make it stick better. Here's what to think about next...",
]

PERSISTENCE_TEMPLATES: list[str] = [
    "I hear you! Let's try a different angle. What if we used smaller numbers to see the pattern?",
    "Being stuck is part of learning! Can we draw a quick diagram or table to organize what we know?",
    "That's okay, let's step back. What stays the same in this problem? Finding an invariant often helps.",
    "Let's try working backwards. What would the answer need to look like?",
    "Here's an idea: let's rewrite the problem in a different form. Sometimes that reveals a path forward.",
]

ANSWER_REDIRECT_QUESTION = (
    "Let's focus on the approach. What's the first thing you notice about this problem?"
)

LEAK_REDIRECT_QUESTION = (
    "Let me guide you to the next step instead. What have you figured out so far?"
)

JUSTIFICATION_REQUEST = (
    "Before I can check that, walk me through how you arrived at that answer. "
    "Can you verify it using a different method, or plug it back into the "
    "original problem to see if it makes sense?"
)

NEAR_FINAL_NUDGE = (
    "You're very close! Now, can you complete that last calculation yourself? "
    "What value do you get? Try it and tell me what you find."
)

GENERATOR_FALLBACK = (
    "I'm having trouble responding. Let's try again - what part of the problem "
    "would you like to explore?"
)

NO_HINT_AVAILABLE = (
    "No hint available: you've already used all three hints for this problem. "
    "Let's keep reasoning together. What have you tried so far?"
)

FALLBACK_HINTS: dict[int, str] = {
    1: (
        "Before calculating anything, think about what type of problem this is. "
        "Have you seen a problem like this before, and what idea did it rely on?"
    ),
    2: (
        "Try organizing the quantities in the problem as a table or an equation. "
        "What does each part represent, and how are they related?"
    ),
    3: (
        "Write the relationship using the specific values from the problem, then "
        "isolate the unknown one step at a time. What do you get when you do the "
        "last step yourself?"
    ),
}

DEFAULT_TEMPLATES: dict[str, Any] = {
    "refusals": REFUSAL_TEMPLATES,
    "persistence": PERSISTENCE_TEMPLATES,
    "answer_redirect_question": ANSWER_REDIRECT_QUESTION,
    "leak_redirect_question": LEAK_REDIRECT_QUESTION,
    "justification_request": JUSTIFICATION_REQUEST,
    "near_final_nudge": NEAR_FINAL_NUDGE,
    "generator_fallback": GENERATOR_FALLBACK,
    "no_hint_available": NO_HINT_AVAILABLE,
    "fallback_hints": FALLBACK_HINTS,
}


# =============================================================================
# Banco de Plantillas
# =============================================================================

class TemplateBank:
    """
    Fuente de todo el texto sintetizado por el motor.

    Attributes:
        refusals: Frases de rechazo (se elige una uniformemente).
        persistence: Frases para estudiantes bloqueados.
        rng: Fuente aleatoria usada para las selecciones.
    """

    def __init__(
        self,
        templates: dict[str, Any] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        merged = {**DEFAULT_TEMPLATES, **(templates or {})}
        self._validate(merged)

        self.refusals: tuple[str, ...] = tuple(merged["refusals"])
        self.persistence: tuple[str, ...] = tuple(merged["persistence"])
        self.answer_redirect_question: str = merged["answer_redirect_question"]
        self.leak_redirect_question: str = merged["leak_redirect_question"]
        self.justification_request: str = merged["justification_request"]
        self.near_final_nudge: str = merged["near_final_nudge"]
        self.generator_fallback: str = merged["generator_fallback"]
        self.no_hint_available: str = merged["no_hint_available"]
        self.fallback_hints: dict[int, str] = {
            int(tier): text for tier, text in merged["fallback_hints"].items()
        }
        self.rng = rng or random.Random()

    @classmethod
    def from_yaml(cls, path: str | Path, rng: random.Random | None = None) -> "TemplateBank":
        """
        Carga frases desde un YAML; las claves ausentes usan los valores por defecto.

        Raises:
            TemplateBankError: Si el archivo no existe o no es un mapeo.
        """
        path = Path(path)
        if not path.exists():
            raise TemplateBankError(f"no existe el archivo {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise TemplateBankError("el YAML debe ser un mapeo de conjuntos")

        logger.info("template_bank_loaded", path=str(path), sets=sorted(data))
        return cls(templates=data, rng=rng)

    @classmethod
    def seeded(cls, seed: int, templates: dict[str, Any] | None = None) -> "TemplateBank":
        return cls(templates=templates, rng=random.Random(seed))

    # =========================================================================
    # Selección
    # =========================================================================

    def refusal(self) -> str:
        return self.rng.choice(self.refusals)

    def persistence_nudge(self) -> str:
        return self.rng.choice(self.persistence)

    def answer_redirect(self) -> str:
        """Rechazo aleatorio seguido de la pregunta de reenfoque fija."""
        return f"{self.refusal()}\n\n{self.answer_redirect_question}"

    def leak_replacement(self) -> str:
        """Texto que sustituye a una respuesta generada con fuga."""
        return f"{self.refusal()}\n\n{self.leak_redirect_question}"

    def fallback_hint(self, tier: int) -> str:
        """Pista determinista para el nivel dado."""
        return self.fallback_hints[tier]

    # =========================================================================
    # Validación
    # =========================================================================

    @staticmethod
    def _validate(templates: dict[str, Any]) -> None:
        for key in ("refusals", "persistence"):
            values = templates.get(key)
            if not isinstance(values, (list, tuple)) or not values:
                raise TemplateBankError("el conjunto debe ser una lista no vacía", key)
            if not all(isinstance(v, str) and v.strip() for v in values):
                raise TemplateBankError("todas las frases deben ser texto no vacío", key)

        for key in (
            "answer_redirect_question",
            "leak_redirect_question",
            "justification_request",
            "near_final_nudge",
            "generator_fallback",
            "no_hint_available",
        ):
            value = templates.get(key)
            if not isinstance(value, str) or not value.strip():
                raise TemplateBankError("la frase debe ser texto no vacío", key)

        hints = templates.get("fallback_hints")
        if not isinstance(hints, dict):
            raise TemplateBankError("debe ser un mapeo nivel -> pista", "fallback_hints")
        try:
            tiers = {int(tier) for tier in hints}
        except (TypeError, ValueError) as e:
            raise TemplateBankError("los niveles deben ser enteros (1, 2, 3)", "fallback_hints") from e
        if any(not isinstance(text, str) or not text.strip() for text in hints.values()):
            raise TemplateBankError("la pista debe ser texto no vacío", "fallback_hints")
        missing = set(range(1, MAX_HINT_TIERS + 1)) - tiers
        if missing:
            raise TemplateBankError(
                f"faltan pistas para los niveles {sorted(missing)}",
                "fallback_hints",
            )


__all__ = [
    "REFUSAL_TEMPLATES",
    "PERSISTENCE_TEMPLATES",
    "ANSWER_REDIRECT_QUESTION",
    "LEAK_REDIRECT_QUESTION",
    "JUSTIFICATION_REQUEST",
    "NEAR_FINAL_NUDGE",
    "GENERATOR_FALLBACK",
    "NO_HINT_AVAILABLE",
    "FALLBACK_HINTS",
    "DEFAULT_TEMPLATES",
    "TemplateBank",
]
