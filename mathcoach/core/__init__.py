"""
Módulo core de mathcoach.

Contiene tipos, estructuras de datos y excepciones fundamentales.
"""

from mathcoach.core.exceptions import (
    BackendNotSupportedError,
    CoachError,
    ConfigurationError,
    InvalidModelIdError,
    JSONParsingError,
    ModelConnectionError,
    ModelError,
    ModelGenerationError,
    ModelNotFoundError,
    ModelQuotaExceededError,
    ModelRateLimitError,
    ModelTimeoutError,
    ParsingError,
    SessionEndedError,
    SessionError,
    SessionLimitError,
    SessionNotFoundError,
    TemplateBankError,
)
from mathcoach.core.types import (
    MAX_HINT_TIERS,
    Category,
    CoachSession,
    ConfidenceBand,
    DecisionKind,
    HintState,
    MessageRole,
    ModelResponse,
    PolicyDecision,
    ProblemAnalysis,
    ProblemType,
    SessionRecord,
    SessionReflection,
    Transcript,
    Turn,
    TurnRole,
)

__all__ = [
    # Exceptions
    "CoachError",
    "ModelError",
    "ModelNotFoundError",
    "ModelConnectionError",
    "ModelGenerationError",
    "ModelTimeoutError",
    "ModelRateLimitError",
    "ModelQuotaExceededError",
    "ConfigurationError",
    "InvalidModelIdError",
    "BackendNotSupportedError",
    "TemplateBankError",
    "SessionError",
    "SessionNotFoundError",
    "SessionEndedError",
    "SessionLimitError",
    "ParsingError",
    "JSONParsingError",
    # Types
    "MAX_HINT_TIERS",
    "Category",
    "TurnRole",
    "MessageRole",
    "DecisionKind",
    "ProblemType",
    "ConfidenceBand",
    "Turn",
    "Transcript",
    "HintState",
    "PolicyDecision",
    "ProblemAnalysis",
    "SessionReflection",
    "CoachSession",
    "SessionRecord",
    "ModelResponse",
]
