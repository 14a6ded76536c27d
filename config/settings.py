"""
Configuración centralizada de mathcoach.

Este módulo proporciona una configuración tipada y validada usando Pydantic Settings.
Soporta carga desde variables de entorno y archivos .env.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Enumeraciones
# =============================================================================

class ModelBackend(str, Enum):
    """Backends de generación soportados."""
    OLLAMA = "ollama"
    OPENAI_COMPATIBLE = "openai_compatible"


class ModelRole(str, Enum):
    """Usos de modelo dentro del sistema."""
    COACH = "coach"
    ANALYSIS = "analysis"
    VISION = "vision"
    REFLECTION = "reflection"


class ConfirmationPolicy(str, Enum):
    """Política ante peticiones de confirmación del estudiante."""
    ALLOW_WITH_WORK = "allow_with_work"  # Se valida razonamiento si hay trabajo mostrado
    NEVER = "never"


class FormulaDumpAction(str, Enum):
    """Acción ante respuestas del coach que vuelcan una fórmula."""
    IGNORE = "ignore"
    AUDIT = "audit"
    REPLACE = "replace"


class LogLevel(str, Enum):
    """Niveles de logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# Modelos de Configuración
# =============================================================================

class OllamaConfig(BaseModel):
    """Configuración para backend Ollama."""
    base_url: str = "http://localhost:11434"
    timeout: int = 60

    model_config = {"extra": "allow"}


class OpenAICompatibleConfig(BaseModel):
    """Configuración para gateways compatibles con OpenAI Chat Completions."""
    base_url: str = "http://localhost:8000/v1"
    api_key: str = "not-needed"
    timeout: int = 60

    model_config = {"extra": "allow"}


class ModelDefaults(BaseModel):
    """Valores por defecto para modelos."""
    coach_model: str = "ollama/llama3.1:8b"
    analysis_model: str = "ollama/qwen2.5:7b"
    vision_model: str = "ollama/llava:13b"
    reflection_model: str = "ollama/llama3.1:8b"
    coach_temperature: float = 0.7
    analysis_temperature: float = 0.2
    reflection_temperature: float = 0.5
    coach_max_tokens: int = 500
    analysis_max_tokens: int = 1000
    reflection_max_tokens: int = 600


class GuardrailsConfig(BaseModel):
    """Configuración del motor de guardrails."""
    confirmation_policy: ConfirmationPolicy = ConfirmationPolicy.ALLOW_WITH_WORK
    formula_dump_action: FormulaDumpAction = FormulaDumpAction.AUDIT

    # Banco de plantillas
    templates_file: str | None = None  # YAML opcional que sustituye las frases por defecto
    template_seed: int | None = None

    @field_validator("templates_file")
    @classmethod
    def expand_templates_file(cls, v: str | None) -> str | None:
        """Expande ~ en la ruta del banco de plantillas."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class GenerationConfig(BaseModel):
    """Límites de las llamadas al generador."""
    timeout_seconds: float = 30.0
    analysis_timeout_seconds: float = 45.0


class SessionConfig(BaseModel):
    """Configuración de sesiones de coaching."""
    max_sessions: int = 1000
    max_age_hours: int = 24


class APIConfig(BaseModel):
    """Configuración del servicio HTTP."""
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Configuración de logging."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    include_timestamps: bool = True
    log_model_inputs: bool = False
    log_model_outputs: bool = False
    log_file: str | None = None


# =============================================================================
# Settings Principal
# =============================================================================

class Settings(BaseSettings):
    """
    Configuración principal de mathcoach.

    Los valores pueden ser sobrescritos mediante variables de entorno
    con el prefijo MATHCOACH_, por ejemplo:
    - MATHCOACH_DEBUG=true
    - MATHCOACH_OLLAMA__BASE_URL=http://192.168.1.100:11434
    - MATHCOACH_GUARDRAILS__CONFIRMATION_POLICY=never
    """

    model_config = SettingsConfigDict(
        env_prefix="MATHCOACH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Modo debug
    debug: bool = False

    # Rutas del proyecto
    project_root: Path = Field(default_factory=lambda: Path(__file__).parent.parent)
    config_dir: Path = Field(default_factory=lambda: Path(__file__).parent)

    # Configuraciones de subsistemas
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    openai_compatible: OpenAICompatibleConfig = Field(default_factory=OpenAICompatibleConfig)
    model_defaults: ModelDefaults = Field(default_factory=ModelDefaults)
    guardrails: GuardrailsConfig = Field(default_factory=GuardrailsConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_backend_config(self, backend: ModelBackend | str) -> dict[str, Any]:
        """
        Obtiene la configuración de un backend específico.

        Args:
            backend: Tipo de backend (ollama, openai_compatible)

        Returns:
            Diccionario con la configuración del backend.
        """
        if isinstance(backend, ModelBackend):
            backend = backend.value

        if backend == "ollama":
            return self.ollama.model_dump()
        elif backend == "openai_compatible":
            return self.openai_compatible.model_dump()
        else:
            raise ValueError(f"Backend desconocido: {backend}")


@lru_cache
def get_settings() -> Settings:
    """
    Obtiene la instancia singleton de Settings.

    Esta función usa caché para evitar recargar la configuración
    múltiples veces.

    Returns:
        Instancia de Settings configurada.
    """
    return Settings()


# =============================================================================
# Funciones de utilidad
# =============================================================================

def parse_model_id(model_id: str) -> tuple[str, str]:
    """
    Parsea un identificador de modelo en backend y nombre.

    Args:
        model_id: Identificador del modelo (ej: "ollama/llama3.1:8b")

    Returns:
        Tupla (backend, model_name)

    Raises:
        ValueError: Si el formato es inválido.
    """
    if "/" not in model_id:
        raise ValueError(
            f"Formato de model_id inválido: {model_id}. "
            f"Usa el formato 'backend/model_name' (ej: 'ollama/llama3.1:8b')"
        )

    parts = model_id.split("/", 1)
    return parts[0], parts[1]


def get_default_model(role: ModelRole) -> str:
    """
    Obtiene el modelo por defecto para un uso.

    Args:
        role: Uso del modelo (coach, analysis, vision, reflection)

    Returns:
        Identificador del modelo por defecto.
    """
    defaults = get_settings().model_defaults

    if role == ModelRole.COACH:
        return defaults.coach_model
    elif role == ModelRole.ANALYSIS:
        return defaults.analysis_model
    elif role == ModelRole.VISION:
        return defaults.vision_model
    elif role == ModelRole.REFLECTION:
        return defaults.reflection_model
    else:
        raise ValueError(f"Rol desconocido: {role}")


__all__ = [
    "Settings",
    "get_settings",
    "ModelBackend",
    "ModelRole",
    "ConfirmationPolicy",
    "FormulaDumpAction",
    "LogLevel",
    "OllamaConfig",
    "OpenAICompatibleConfig",
    "ModelDefaults",
    "GuardrailsConfig",
    "GenerationConfig",
    "SessionConfig",
    "APIConfig",
    "LoggingConfig",
    "parse_model_id",
    "get_default_model",
]
