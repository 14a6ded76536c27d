"""
Router del coach: análisis del problema, sesión, chat, pistas y cierre.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from mathcoach.agents.analyzer import ProblemAnalyzer
from mathcoach.agents.coach import CoachAgent
from mathcoach.core.exceptions import (
    CoachError,
    ModelError,
    ModelQuotaExceededError,
    ModelRateLimitError,
    SessionEndedError,
    SessionLimitError,
    SessionNotFoundError,
)
from mathcoach.core.types import (
    MAX_HINT_TIERS,
    Category,
    ConfidenceBand,
    DecisionKind,
    PolicyDecision,
    ProblemAnalysis,
    ProblemType,
    SessionReflection,
)

router = APIRouter()

# Instancias globales; las sesiones viven en memoria del proceso
_coach_agent: CoachAgent | None = None
_problem_analyzer: ProblemAnalyzer | None = None


# =============================================================================
# Esquemas
# =============================================================================

class AnalyzeRequest(BaseModel):
    text: str | None = None
    image_base64: str | None = None


class AnalyzeResponse(BaseModel):
    analysis: ProblemAnalysis
    confidence_band: ConfidenceBand


class SessionRequest(BaseModel):
    problem_text: str = Field(min_length=1)
    analysis: ProblemAnalysis | None = None


class SessionResponse(BaseModel):
    session_id: UUID
    problem_type: ProblemType
    welcome_message: str


class ChatRequest(BaseModel):
    session_id: UUID
    message: str = Field(min_length=1)


class HintRequest(BaseModel):
    session_id: UUID


class CoachReply(BaseModel):
    content: str
    kind: DecisionKind
    category: Category
    hint_tier: int | None = None
    generator_invoked: bool


class HintReply(CoachReply):
    hints_used: int
    hints_remaining: int


class EndSessionRequest(BaseModel):
    student_notes: str | None = None


class EndSessionResponse(BaseModel):
    session_id: UUID
    hints_used: int
    duration_seconds: float
    transcript_length: int
    reflection: SessionReflection


# =============================================================================
# Dependencias y errores
# =============================================================================

async def get_coach_agent() -> CoachAgent:
    """Obtiene o crea el agente Coach singleton."""
    global _coach_agent
    if _coach_agent is None:
        _coach_agent = CoachAgent.create()
    return _coach_agent


async def get_problem_analyzer() -> ProblemAnalyzer:
    """Obtiene o crea el analizador singleton."""
    global _problem_analyzer
    if _problem_analyzer is None:
        _problem_analyzer = ProblemAnalyzer.create()
    return _problem_analyzer


def _to_http_error(error: CoachError) -> HTTPException:
    if isinstance(error, SessionNotFoundError):
        status_code = 404
    elif isinstance(error, SessionEndedError):
        status_code = 409
    elif isinstance(error, ModelRateLimitError):
        status_code = 429
    elif isinstance(error, ModelQuotaExceededError):
        status_code = 402
    elif isinstance(error, (ModelError, SessionLimitError)):
        status_code = 503
    else:
        status_code = 500
    return HTTPException(status_code=status_code, detail=error.to_dict())


def _reply(decision: PolicyDecision) -> CoachReply:
    return CoachReply(
        content=decision.text,
        kind=decision.kind,
        category=decision.category,
        hint_tier=decision.hint_tier,
        generator_invoked=decision.generator_invoked,
    )


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_problem(
    request: AnalyzeRequest,
    analyzer: ProblemAnalyzer = Depends(get_problem_analyzer),
):
    """Extrae y clasifica el problema (texto o foto) sin resolverlo."""
    try:
        analysis = await analyzer.analyze(text=request.text, image_base64=request.image_base64)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CoachError as e:
        raise _to_http_error(e)
    return AnalyzeResponse(analysis=analysis, confidence_band=analysis.confidence_band)


@router.post("/session", response_model=SessionResponse)
async def start_session(
    request: SessionRequest,
    coach: CoachAgent = Depends(get_coach_agent),
):
    """Inicia una sesión de coaching."""
    try:
        session = await coach.start_session(request.problem_text, request.analysis)
    except CoachError as e:
        raise _to_http_error(e)
    return SessionResponse(
        session_id=session.session_id,
        problem_type=session.problem_type,
        welcome_message=session.transcript.turns[-1].content,
    )


@router.post("/chat", response_model=CoachReply)
async def chat(
    request: ChatRequest,
    coach: CoachAgent = Depends(get_coach_agent),
):
    """Envía un mensaje del estudiante al coach."""
    try:
        decision = await coach.respond(request.session_id, request.message)
    except CoachError as e:
        raise _to_http_error(e)
    return _reply(decision)


@router.post("/hint", response_model=HintReply)
async def request_hint(
    request: HintRequest,
    coach: CoachAgent = Depends(get_coach_agent),
):
    """Pide la siguiente pista de la sesión."""
    try:
        decision = await coach.request_hint(request.session_id)
    except CoachError as e:
        raise _to_http_error(e)

    hints_used = decision.hint_tier or MAX_HINT_TIERS
    return HintReply(
        **_reply(decision).model_dump(),
        hints_used=hints_used,
        hints_remaining=MAX_HINT_TIERS - hints_used,
    )


@router.post("/session/{session_id}/end", response_model=EndSessionResponse)
async def end_session(
    session_id: UUID,
    request: EndSessionRequest | None = None,
    coach: CoachAgent = Depends(get_coach_agent),
):
    """Finaliza la sesión y devuelve la reflexión."""
    notes = request.student_notes if request else None
    try:
        record = await coach.end_session(session_id, student_notes=notes)
    except CoachError as e:
        raise _to_http_error(e)
    return EndSessionResponse(
        session_id=record.session_id,
        hints_used=record.hints_used,
        duration_seconds=record.duration_seconds,
        transcript_length=len(record.transcript),
        reflection=record.reflection,
    )
