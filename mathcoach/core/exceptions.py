"""
Excepciones personalizadas de mathcoach.

Este módulo define una jerarquía de excepciones que permite
un manejo de errores preciso y consistente en todo el sistema.
"""

from __future__ import annotations

from typing import Any


# =============================================================================
# Excepción Base
# =============================================================================

class CoachError(Exception):
    """
    Excepción base para todos los errores de mathcoach.

    Attributes:
        message: Mensaje descriptivo del error.
        details: Información adicional sobre el error.
        recoverable: Indica si el error es recuperable.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convierte la excepción a un diccionario serializable."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Errores de Modelo (generador externo)
# =============================================================================

class ModelError(CoachError):
    """Error relacionado con el generador de texto."""
    pass


class ModelNotFoundError(ModelError):
    """El modelo solicitado no fue encontrado."""

    def __init__(self, model_id: str, backend: str | None = None) -> None:
        details = {"model_id": model_id}
        if backend:
            details["backend"] = backend
        super().__init__(
            f"Modelo no encontrado: {model_id}",
            details=details,
            recoverable=False,
        )


class ModelConnectionError(ModelError):
    """Error de conexión con el backend del modelo."""

    def __init__(self, backend: str, base_url: str, cause: str | None = None) -> None:
        details = {"backend": backend, "base_url": base_url}
        if cause:
            details["cause"] = cause
        super().__init__(
            f"No se pudo conectar al backend {backend} en {base_url}",
            details=details,
            recoverable=True,
        )


class ModelGenerationError(ModelError):
    """Error durante la generación de texto."""

    def __init__(self, model: str, cause: str, prompt_preview: str | None = None) -> None:
        details = {"model": model, "cause": cause}
        if prompt_preview:
            details["prompt_preview"] = prompt_preview[:200] + "..."
        super().__init__(
            f"Error generando respuesta con {model}: {cause}",
            details=details,
            recoverable=True,
        )


class ModelTimeoutError(ModelError):
    """Timeout durante la generación."""

    def __init__(self, model: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Timeout de {timeout_seconds}s excedido para modelo {model}",
            details={"model": model, "timeout_seconds": timeout_seconds},
            recoverable=True,
        )


class ModelRateLimitError(ModelError):
    """El gateway rechazó la petición por límite de tasa (HTTP 429)."""

    def __init__(self, model: str, retry_after: str | None = None) -> None:
        details = {"model": model}
        if retry_after:
            details["retry_after"] = retry_after
        super().__init__(
            f"Límite de peticiones excedido para {model}",
            details=details,
            recoverable=True,
        )


class ModelQuotaExceededError(ModelError):
    """El gateway no tiene créditos disponibles (HTTP 402)."""

    def __init__(self, model: str) -> None:
        super().__init__(
            f"Créditos agotados para {model}",
            details={"model": model},
            recoverable=False,
        )


# =============================================================================
# Errores de Configuración
# =============================================================================

class ConfigurationError(CoachError):
    """Error de configuración del sistema."""

    def __init__(self, message: str, config_key: str | None = None) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, details=details, recoverable=False)


class InvalidModelIdError(ConfigurationError):
    """Formato de model_id inválido."""

    def __init__(self, model_id: str) -> None:
        super().__init__(
            f"Formato de model_id inválido: '{model_id}'. "
            f"Use el formato 'backend/model_name' (ej: 'ollama/llama3.1:8b')",
            config_key="model_id",
        )


class BackendNotSupportedError(ConfigurationError):
    """Backend no soportado."""

    def __init__(self, backend: str, supported_backends: list[str]) -> None:
        super().__init__(
            f"Backend '{backend}' no soportado. "
            f"Backends disponibles: {', '.join(supported_backends)}",
            config_key="backend",
        )


class TemplateBankError(ConfigurationError):
    """El banco de plantillas está incompleto o mal formado."""

    def __init__(self, reason: str, template_set: str | None = None) -> None:
        message = f"Banco de plantillas inválido: {reason}"
        if template_set:
            message = f"{message} (conjunto '{template_set}')"
        super().__init__(message, config_key="guardrails.templates_file")


# =============================================================================
# Errores de Sesión
# =============================================================================

class SessionError(CoachError):
    """Error relacionado con sesiones de coaching."""
    pass


class SessionNotFoundError(SessionError):
    """La sesión no existe o expiró."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Sesión no encontrada: {session_id}",
            details={"session_id": session_id},
            recoverable=False,
        )


class SessionEndedError(SessionError):
    """La sesión terminó mientras había una operación en curso."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"La sesión {session_id} ya ha finalizado",
            details={"session_id": session_id},
            recoverable=False,
        )


class SessionLimitError(SessionError):
    """Se alcanzó el número máximo de sesiones activas."""

    def __init__(self, max_sessions: int) -> None:
        super().__init__(
            f"Límite de sesiones activas alcanzado ({max_sessions})",
            details={"max_sessions": max_sessions},
            recoverable=True,
        )


# =============================================================================
# Errores de Parsing
# =============================================================================

class ParsingError(CoachError):
    """Error al parsear respuestas del modelo."""
    pass


class JSONParsingError(ParsingError):
    """Error al parsear JSON de la respuesta."""

    def __init__(self, response_preview: str, parse_error: str) -> None:
        super().__init__(
            f"Error parseando JSON: {parse_error}",
            details={
                "response_preview": response_preview[:200],
                "parse_error": parse_error,
            },
            recoverable=True,
        )


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Base
    "CoachError",
    # Model errors
    "ModelError",
    "ModelNotFoundError",
    "ModelConnectionError",
    "ModelGenerationError",
    "ModelTimeoutError",
    "ModelRateLimitError",
    "ModelQuotaExceededError",
    # Configuration errors
    "ConfigurationError",
    "InvalidModelIdError",
    "BackendNotSupportedError",
    "TemplateBankError",
    # Session errors
    "SessionError",
    "SessionNotFoundError",
    "SessionEndedError",
    "SessionLimitError",
    # Parsing errors
    "ParsingError",
    "JSONParsingError",
]
