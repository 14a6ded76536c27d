"""
Interfaz abstracta para generadores de texto.

Este módulo define el contrato que todos los adaptadores de backend
deben implementar, permitiendo intercambiar el generador externo de forma
transparente. El motor de guardrails nunca confía en su salida: todo lo
que devuelven se escanea antes de llegar al estudiante.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Union

from mathcoach.core.exceptions import ModelGenerationError
from mathcoach.core.types import MessageRole, ModelResponse

# El contenido puede ser texto o una lista de partes (texto + imagen)
ChatMessage = dict[str, Any]
MessageContent = Union[str, list[dict[str, Any]]]


class BaseModelAdapter(ABC):
    """
    Clase base abstracta para adaptadores de generadores de texto.

    Attributes:
        model_name: Nombre del modelo específico.
        backend_name: Nombre del backend (ollama, openai_compatible).
        supports_vision: Si el backend acepta partes de imagen en los mensajes.
    """

    def __init__(
        self,
        model_name: str,
        backend_name: str,
        **kwargs: Any,
    ) -> None:
        self.model_name = model_name
        self.backend_name = backend_name
        self.supports_vision = False
        self._config = kwargs

    @property
    def model_id(self) -> str:
        """Identificador completo del modelo (backend/model_name)."""
        return f"{self.backend_name}/{self.model_name}"

    # =========================================================================
    # Métodos abstractos que deben implementar los adaptadores
    # =========================================================================

    @abstractmethod
    async def generate(
        self,
        messages: list[ChatMessage],
        *,
        temperature: float = 0.7,
        max_tokens: int = 500,
        stop: list[str] | None = None,
        **kwargs: Any,
    ) -> ModelResponse:
        """
        Genera una respuesta completa.

        Args:
            messages: Mensajes en formato chat ({"role", "content"}).
            temperature: Temperatura de sampling (0.0 - 2.0).
            max_tokens: Máximo de tokens a generar.
            stop: Secuencias de parada opcionales.
            **kwargs: Argumentos adicionales del backend.

        Returns:
            ModelResponse con el texto generado y métricas.

        Raises:
            ModelGenerationError: Si hay un error durante la generación.
            ModelTimeoutError: Si se excede el timeout.
            ModelRateLimitError: Si el backend limita la tasa de peticiones.
            ModelQuotaExceededError: Si el backend no tiene créditos.
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """True si el backend está disponible."""

    @abstractmethod
    async def get_model_info(self) -> dict[str, Any]:
        """Información del modelo servido por el backend."""

    async def close(self) -> None:
        """Libera recursos del adaptador (clientes HTTP, etc.)."""

    # =========================================================================
    # Métodos de utilidad
    # =========================================================================

    def _normalize_messages(self, messages: list[ChatMessage]) -> list[dict[str, Any]]:
        """
        Normaliza mensajes al formato {"role": str, "content": str | list}.

        Raises:
            ValueError: Si un mensaje no es un diccionario.
        """
        normalized = []
        for msg in messages:
            if not isinstance(msg, dict):
                raise ValueError(f"Formato de mensaje no soportado: {type(msg)}")
            role = msg.get("role", MessageRole.USER.value)
            if isinstance(role, MessageRole):
                role = role.value
            normalized.append({"role": role, "content": msg.get("content", "")})
        return normalized

    def _create_response(
        self,
        content: str,
        *,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        generation_time_ms: float | None = None,
        finish_reason: str | None = None,
        raw_response: dict[str, Any] | None = None,
    ) -> ModelResponse:
        """Crea un ModelResponse estandarizado.

        Los contadores de tokens que no sean enteros se descartan: algunos
        gateways los omiten o los envían como texto.
        """
        prompt_tokens = _as_count(prompt_tokens)
        completion_tokens = _as_count(completion_tokens)
        if finish_reason is not None and not isinstance(finish_reason, str):
            finish_reason = str(finish_reason)

        total_tokens = None
        if prompt_tokens is not None and completion_tokens is not None:
            total_tokens = prompt_tokens + completion_tokens

        tokens_per_second = None
        if completion_tokens and generation_time_ms and generation_time_ms > 0:
            tokens_per_second = completion_tokens / (generation_time_ms / 1000)

        return ModelResponse(
            content=content,
            model=self.model_id,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            generation_time_ms=generation_time_ms,
            tokens_per_second=tokens_per_second,
            finish_reason=finish_reason,
            raw_response=raw_response,
        )

    def _json_object(self, response: Any) -> dict[str, Any]:
        """
        Decodifica el cuerpo de una respuesta 200 del backend.

        Raises:
            ModelGenerationError: Si el cuerpo no es JSON o no es un objeto.
        """
        try:
            data = response.json()
        except ValueError as e:
            raise ModelGenerationError(
                self.model_name, f"Respuesta no es JSON válido: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ModelGenerationError(
                self.model_name, f"Respuesta inesperada: {type(data).__name__}"
            )
        return data

    def _text_content(self, value: Any) -> str:
        """`null` equivale a texto vacío; cualquier otro tipo es un error."""
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ModelGenerationError(
                self.model_name, f"Contenido inesperado: {type(value).__name__}"
            )
        return value

    @asynccontextmanager
    async def _measure_time(self) -> AsyncGenerator[dict[str, float], None]:
        """Mide el bloque; deja el resultado en timing["elapsed_ms"]."""
        timing: dict[str, float] = {}
        start = time.perf_counter()
        try:
            yield timing
        finally:
            timing["elapsed_ms"] = (time.perf_counter() - start) * 1000

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model_id})"


def _as_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


ModelAdapterFactory = type[BaseModelAdapter]


__all__ = [
    "BaseModelAdapter",
    "ModelAdapterFactory",
    "ChatMessage",
    "MessageContent",
]
