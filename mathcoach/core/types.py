"""
Tipos y estructuras de datos de mathcoach.

Este módulo define los tipos centrales usados en todo el sistema:
categorías de la taxonomía de guardrails, turnos y transcripciones,
estado de pistas, decisiones de política y análisis de problemas.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_HINT_TIERS = 3


# =============================================================================
# Enumeraciones
# =============================================================================

class Category(str, Enum):
    """Categorías de la taxonomía de patrones."""
    # Mensajes del estudiante
    ANSWER_SEEKING = "answer_seeking"
    CONFIRMATION_SEEKING = "confirmation_seeking"
    NEAR_FINAL = "near_final"
    STUCK = "stuck"
    # Respuestas generadas
    ANSWER_LEAK = "answer_leak"
    CONFIRMATION_LEAK = "confirmation_leak"
    FORMULA_DUMP = "formula_dump"
    NONE = "none"


class TurnRole(str, Enum):
    """Autor de un turno."""
    STUDENT = "student"
    COACH = "coach"


class MessageRole(str, Enum):
    """Roles en el formato de chat de los generadores."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class DecisionKind(str, Enum):
    """Tipo de decisión tomada por el selector de política."""
    SYNTHESIZED_REDIRECT = "synthesized_redirect"
    PASS_THROUGH = "pass_through"
    SYNTHESIZED_LEAK_REPLACEMENT = "synthesized_leak_replacement"
    HINT = "hint"
    HINT_REJECTED = "hint_rejected"
    GENERATOR_FALLBACK = "generator_fallback"


class ProblemType(str, Enum):
    """Tipos de problema que reconoce el analizador."""
    ALGEBRA = "algebra"
    ARITHMETIC = "arithmetic"
    GEOMETRY = "geometry"
    WORD_PROBLEM = "word_problem"
    PERCENTAGE = "percentage"
    RATIO = "ratio"
    PATTERN = "pattern"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "ProblemType":
        """Convierte valores libres del modelo ("word-problem", "Algebra") al enum."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class ConfidenceBand(str, Enum):
    """Banda de confianza de una extracción (solo para la UI)."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# =============================================================================
# Transcripción
# =============================================================================

class Turn(BaseModel):
    """Un turno de la conversación entre estudiante y coach."""
    role: TurnRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.now)
    hint_tier: int | None = Field(default=None, ge=1, le=MAX_HINT_TIERS)

    # Auditoría
    category: Category | None = None
    decision_kind: DecisionKind | None = None


class Transcript(BaseModel):
    """
    Secuencia ordenada de turnos de una sesión.

    Solo admite añadir turnos; nunca se reescriben ni se eliminan.
    """
    turns: list[Turn] = Field(default_factory=list)

    def append(self, turn: Turn) -> None:
        """Añade un turno al final."""
        self.turns.append(turn)

    def __len__(self) -> int:
        return len(self.turns)

    def student_turns(self) -> list[Turn]:
        """Turnos escritos por el estudiante."""
        return [t for t in self.turns if t.role == TurnRole.STUDENT]

    def hint_turns(self) -> list[Turn]:
        """Turnos del coach que entregaron una pista."""
        return [t for t in self.turns if t.hint_tier is not None]

    def to_chat_messages(self) -> list[dict[str, str]]:
        """Convierte a formato chat (coach → assistant, student → user)."""
        return [
            {
                "role": (
                    MessageRole.ASSISTANT.value
                    if t.role == TurnRole.COACH
                    else MessageRole.USER.value
                ),
                "content": t.content,
            }
            for t in self.turns
        ]


# =============================================================================
# Estado de Pistas
# =============================================================================

class HintState(BaseModel):
    """
    Número de pistas concedidas en una sesión.

    Inmutable: avanzar devuelve un estado nuevo. Al llegar a MAX_HINT_TIERS
    el estado es terminal y avanzar no tiene efecto.
    """
    model_config = ConfigDict(frozen=True)

    hints_granted: int = Field(default=0, ge=0, le=MAX_HINT_TIERS)

    @property
    def is_exhausted(self) -> bool:
        return self.hints_granted >= MAX_HINT_TIERS

    @property
    def next_tier(self) -> int | None:
        """Nivel de la próxima pista, o None si ya no quedan."""
        if self.is_exhausted:
            return None
        return self.hints_granted + 1

    def advance(self) -> "HintState":
        if self.is_exhausted:
            return self
        return HintState(hints_granted=self.hints_granted + 1)


# =============================================================================
# Decisiones de Política
# =============================================================================

class PolicyDecision(BaseModel):
    """
    Respuesta que recibirá el estudiante y cómo se obtuvo.

    Attributes:
        kind: Tipo de decisión.
        text: Texto final para el estudiante.
        category: Categoría que motivó la decisión.
        hint_tier: Nivel de pista (solo para pistas).
        generator_invoked: Si se llamó al generador externo.
    """
    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    text: str
    category: Category = Category.NONE
    hint_tier: int | None = Field(default=None, ge=1, le=MAX_HINT_TIERS)
    generator_invoked: bool = False

    @classmethod
    def redirect(cls, category: Category, text: str) -> "PolicyDecision":
        return cls(kind=DecisionKind.SYNTHESIZED_REDIRECT, text=text, category=category)

    @classmethod
    def pass_through(cls, text: str) -> "PolicyDecision":
        return cls(kind=DecisionKind.PASS_THROUGH, text=text, generator_invoked=True)

    @classmethod
    def leak_replacement(cls, text: str, category: Category) -> "PolicyDecision":
        return cls(
            kind=DecisionKind.SYNTHESIZED_LEAK_REPLACEMENT,
            text=text,
            category=category,
            generator_invoked=True,
        )

    @classmethod
    def hint(cls, tier: int, text: str) -> "PolicyDecision":
        return cls(kind=DecisionKind.HINT, text=text, hint_tier=tier, generator_invoked=True)

    @classmethod
    def hint_rejected(cls, text: str) -> "PolicyDecision":
        return cls(kind=DecisionKind.HINT_REJECTED, text=text)

    @classmethod
    def fallback(cls, text: str, hint_tier: int | None = None) -> "PolicyDecision":
        return cls(
            kind=DecisionKind.GENERATOR_FALLBACK,
            text=text,
            hint_tier=hint_tier,
            generator_invoked=True,
        )

    @property
    def is_synthesized(self) -> bool:
        """True si el texto proviene del banco de plantillas."""
        return self.kind in (
            DecisionKind.SYNTHESIZED_REDIRECT,
            DecisionKind.SYNTHESIZED_LEAK_REPLACEMENT,
            DecisionKind.HINT_REJECTED,
            DecisionKind.GENERATOR_FALLBACK,
        )


# =============================================================================
# Análisis del Problema
# =============================================================================

class ProblemAnalysis(BaseModel):
    """Resultado del análisis (texto o imagen) de un problema."""
    extracted_text: str
    confidence: float = 1.0
    topics: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)
    grade_estimate: str = "Unknown"
    safe_rephrase: str = ""
    problem_type: ProblemType = ProblemType.OTHER

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> float:
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, value))

    @field_validator("problem_type", mode="before")
    @classmethod
    def coerce_problem_type(cls, v: Any) -> ProblemType:
        return ProblemType.parse(v)

    @property
    def confidence_band(self) -> ConfidenceBand:
        if self.confidence > 0.9:
            return ConfidenceBand.HIGH
        if self.confidence > 0.7:
            return ConfidenceBand.MEDIUM
        return ConfidenceBand.LOW


# =============================================================================
# Sesión de Coaching
# =============================================================================

class SessionReflection(BaseModel):
    """Reflexión generada al cerrar una sesión."""
    concepts_practiced: list[str] = Field(default_factory=list)
    strategies_used: list[str] = Field(default_factory=list)
    reflection_questions: list[str] = Field(default_factory=list)
    student_notes: str | None = None


class CoachSession(BaseModel):
    """Sesión de coaching sobre un único problema."""
    session_id: UUID = Field(default_factory=uuid4)

    problem_text: str
    analysis: ProblemAnalysis | None = None

    transcript: Transcript = Field(default_factory=Transcript)
    hint_state: HintState = Field(default_factory=HintState)

    started_at: datetime = Field(default_factory=datetime.now)
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None

    @property
    def problem_type(self) -> ProblemType:
        if self.analysis is None:
            return ProblemType.OTHER
        return self.analysis.problem_type


class SessionRecord(BaseModel):
    """Registro final que se entrega al hook de persistencia."""
    session_id: UUID
    problem_text: str
    analysis: ProblemAnalysis | None = None
    transcript: Transcript
    hints_used: int
    reflection: SessionReflection
    started_at: datetime
    ended_at: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()


# =============================================================================
# Respuesta del Modelo (genérica)
# =============================================================================

class ModelResponse(BaseModel):
    """Respuesta genérica de un generador de texto."""
    content: str
    model: str

    # Métricas de generación
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    # Timing
    generation_time_ms: float | None = None
    tokens_per_second: float | None = None

    # Información adicional del backend
    finish_reason: str | None = None
    raw_response: dict[str, Any] | None = None


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "MAX_HINT_TIERS",
    # Enums
    "Category",
    "TurnRole",
    "MessageRole",
    "DecisionKind",
    "ProblemType",
    "ConfidenceBand",
    # Transcript
    "Turn",
    "Transcript",
    # Guardrails
    "HintState",
    "PolicyDecision",
    # Analysis
    "ProblemAnalysis",
    # Session
    "SessionReflection",
    "CoachSession",
    "SessionRecord",
    # Model
    "ModelResponse",
]
