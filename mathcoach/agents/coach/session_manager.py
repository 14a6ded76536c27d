"""
Gestor de sesiones de coaching.

Este módulo gestiona el ciclo de vida de las sesiones: creación, acceso
serializado por sesión y finalización.

Cada sesión tiene su propio asyncio.Lock. Los turnos del estudiante y las
peticiones de pista de una misma sesión se ejecutan de uno en uno; sesiones
distintas nunca se bloquean entre sí.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator
from uuid import UUID

from mathcoach.core.exceptions import SessionEndedError, SessionLimitError, SessionNotFoundError
from mathcoach.core.types import CoachSession, ProblemAnalysis, Turn, TurnRole
from mathcoach.utils.logging import get_logger


class SessionManager:
    """
    Gestor de sesiones de coaching en memoria.

    Attributes:
        max_sessions: Máximo de sesiones concurrentes.
        max_age_hours: Edad a partir de la cual una sesión se considera abandonada.
    """

    def __init__(self, max_sessions: int = 1000, max_age_hours: int = 24) -> None:
        self._sessions: dict[UUID, CoachSession] = {}
        self._locks: dict[UUID, asyncio.Lock] = {}
        self.max_sessions = max_sessions
        self.max_age_hours = max_age_hours
        self.logger = get_logger("coach.session_manager")

    async def create_session(
        self,
        problem_text: str,
        analysis: ProblemAnalysis | None = None,
    ) -> CoachSession:
        """
        Crea una nueva sesión de coaching.

        Args:
            problem_text: Texto del problema (ya revisado por el estudiante).
            analysis: Análisis previo del problema, si existe.

        Returns:
            Nueva sesión con estado de pistas a cero.

        Raises:
            SessionLimitError: Si se excede el límite de sesiones.
        """
        if len(self._sessions) >= self.max_sessions:
            self._cleanup_old_sessions()
            if len(self._sessions) >= self.max_sessions:
                raise SessionLimitError(self.max_sessions)

        session = CoachSession(problem_text=problem_text, analysis=analysis)
        self._sessions[session.session_id] = session
        self._locks[session.session_id] = asyncio.Lock()

        self.logger.info(
            "session_created",
            session_id=str(session.session_id),
            problem_type=session.problem_type.value,
        )
        return session

    async def get_session(self, session_id: UUID) -> CoachSession | None:
        return self._sessions.get(session_id)

    def require_session(self, session_id: UUID) -> CoachSession:
        """
        Obtiene una sesión activa.

        Raises:
            SessionNotFoundError: Si no existe.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        return session

    @asynccontextmanager
    async def exclusive(self, session_id: UUID) -> AsyncIterator[CoachSession]:
        """
        Acceso exclusivo a una sesión durante un turno completo.

        Raises:
            SessionNotFoundError: Si la sesión no existe al pedir el acceso.
            SessionEndedError: Si la sesión se cerró mientras se esperaba.

        Example:
            ```python
            async with manager.exclusive(session_id) as session:
                ...  # leer estado, generar, escanear, confirmar
            ```
        """
        self.require_session(session_id)
        lock = self._locks[session_id]
        async with lock:
            # La sesión pudo cerrarse mientras se esperaba el lock
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionEndedError(str(session_id))
            yield session

    def append_turn(
        self,
        session: CoachSession,
        role: TurnRole,
        content: str,
        **fields: Any,
    ) -> Turn:
        """Añade un turno a la transcripción de la sesión."""
        turn = Turn(role=role, content=content, **fields)
        session.transcript.append(turn)
        self.logger.debug(
            "turn_appended",
            session_id=str(session.session_id),
            role=role.value,
            transcript_length=len(session.transcript),
        )
        return turn

    async def end_session(self, session_id: UUID) -> CoachSession:
        """
        Finaliza una sesión y la retira de las activas.

        No espera a operaciones en curso: su resultado se descartará al
        comprobar que la sesión ya no está activa.

        Raises:
            SessionNotFoundError: Si la sesión no existe.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(str(session_id))
        self._locks.pop(session_id, None)

        session.ended_at = datetime.now()
        self.logger.info(
            "session_ended",
            session_id=str(session_id),
            duration_seconds=(session.ended_at - session.started_at).total_seconds(),
            hints_used=session.hint_state.hints_granted,
            turns=len(session.transcript),
        )
        return session

    def get_session_metrics(self, session: CoachSession) -> dict[str, Any]:
        """Métricas resumidas de una sesión."""
        end_time = session.ended_at or datetime.now()
        return {
            "session_id": str(session.session_id),
            "problem_type": session.problem_type.value,
            "hints_used": session.hint_state.hints_granted,
            "student_messages": len(session.transcript.student_turns()),
            "transcript_length": len(session.transcript),
            "duration_seconds": (end_time - session.started_at).total_seconds(),
            "started_at": session.started_at.isoformat(),
            "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        }

    def _cleanup_old_sessions(self) -> int:
        """Elimina sesiones más antiguas que max_age_hours."""
        now = datetime.now()
        max_age = timedelta(hours=self.max_age_hours)
        stale = [
            session_id
            for session_id, session in self._sessions.items()
            if (now - session.started_at) > max_age
        ]
        for session_id in stale:
            self._sessions.pop(session_id).ended_at = now
            self._locks.pop(session_id, None)

        if stale:
            self.logger.info("old_sessions_cleaned", removed_count=len(stale))
        return len(stale)

    def get_active_sessions_count(self) -> int:
        return len(self._sessions)


__all__ = ["SessionManager"]
