"""
Módulo de configuración de mathcoach.
"""

from config.settings import (
    APIConfig,
    ConfirmationPolicy,
    FormulaDumpAction,
    GenerationConfig,
    GuardrailsConfig,
    LoggingConfig,
    LogLevel,
    ModelBackend,
    ModelDefaults,
    ModelRole,
    OllamaConfig,
    OpenAICompatibleConfig,
    SessionConfig,
    Settings,
    get_default_model,
    get_settings,
    parse_model_id,
)

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
