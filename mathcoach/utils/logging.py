"""
Logging estructurado del coach.

Todos los eventos se emiten con structlog, en JSON o en consola legible.
Los turnos se registran con el `session_id` ligado al contexto, así que
auditar una sesión es filtrar por ese campo. El texto de estudiantes y
del generador solo aparece recortado, en campos `*_preview`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, ContextManager, Mapping
from uuid import UUID

import structlog
from pydantic import ValidationError
from structlog.types import EventDict, Processor, WrappedLogger

from config.settings import LoggingConfig, LogLevel, get_settings
from mathcoach.core.types import PolicyDecision


PREVIEW_CHARS = 100

# Qué se vuelca de las llamadas al generador (ver LoggingConfig)
_model_io = {"inputs": False, "outputs": False}


# =============================================================================
# Configuración
# =============================================================================

def truncate_previews(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Procesador: aplana y recorta los campos `*_preview`."""
    for key, value in event_dict.items():
        if key.endswith("_preview") and isinstance(value, str):
            flat = " ".join(value.split())
            if len(flat) > PREVIEW_CHARS:
                flat = flat[:PREVIEW_CHARS] + "..."
            event_dict[key] = flat
    return event_dict


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configura structlog y el logging estándar a partir de `LoggingConfig`.

    Con `format="json"` cada evento es una línea JSON; cualquier otro valor
    usa el renderer de consola. `log_file` añade un handler de archivo.
    """
    config = config or LoggingConfig()
    level = config.level if isinstance(config.level, LogLevel) else LogLevel(str(config.level).upper())
    numeric_level = getattr(logging, level.value)

    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stdout)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        truncate_previews,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if config.include_timestamps:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        ))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _model_io["inputs"] = config.log_model_inputs
    _model_io["outputs"] = config.log_model_outputs

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setLevel(numeric_level)
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Obtiene un logger configurado.

    Example:
        ```python
        logger = get_logger(__name__)
        logger.info("hint_granted", tier=2)
        ```
    """
    return structlog.get_logger(name)


def session_context(session_id: UUID | str, **fields: Any) -> ContextManager[Mapping[str, Any]]:
    """
    Liga `session_id` (y otros campos) a todos los eventos emitidos dentro.

    Funciona a través de `await`: el contexto es por tarea de asyncio.
    """
    return structlog.contextvars.bound_contextvars(session_id=str(session_id), **fields)


# =============================================================================
# Eventos del dominio
# =============================================================================

def log_model_call(
    logger: structlog.BoundLogger,
    model_id: str,
    operation: str,
    messages: list[dict[str, Any]] | None = None,
    **kwargs: Any,
) -> None:
    """Registra una llamada al generador; el prompt solo si `log_model_inputs`."""
    if _model_io["inputs"] and messages:
        last = messages[-1].get("content")
        kwargs["prompt_preview"] = last if isinstance(last, str) else "[multiparte]"
    logger.info("model_call", model_id=model_id, operation=operation, **kwargs)


def log_model_output(
    logger: structlog.BoundLogger,
    model_id: str,
    operation: str,
    content: str,
) -> None:
    """Texto crudo del generador, antes del escaneo. Requiere `log_model_outputs`."""
    if not _model_io["outputs"]:
        return
    logger.debug(
        "model_output",
        model_id=model_id,
        operation=operation,
        output_preview=content,
        output_chars=len(content),
    )


def log_guardrail_check(
    logger: structlog.BoundLogger,
    detector: str,
    category: str,
    matched: bool,
    patterns: tuple[str, ...] = (),
    alert: bool = False,
    **details: Any,
) -> None:
    """
    Resultado de un detector.

    Sin coincidencia se registra en debug. Las fugas (`alert=True`) van a
    warning para que la auditoría las encuentre filtrando por nivel; el
    resto de categorías, a info.
    """
    if not matched:
        logger.debug("guardrail_clear", detector=detector)
        return
    log = logger.warning if alert else logger.info
    log(
        "guardrail_match",
        detector=detector,
        category=category,
        pattern=patterns[0] if patterns else None,
        pattern_count=len(patterns),
        **details,
    )


def log_coach_decision(
    logger: structlog.BoundLogger,
    decision: PolicyDecision,
    student_category: str | None = None,
) -> None:
    """Una línea por respuesta entregada al estudiante."""
    fields: dict[str, Any] = {
        "decision": decision.kind.value,
        "category": decision.category.value,
        "generator_invoked": decision.generator_invoked,
    }
    if student_category is not None:
        fields["student_category"] = student_category
    if decision.hint_tier is not None:
        fields["hint_tier"] = decision.hint_tier
    logger.info("coach_turn", **fields)


def _init_logging() -> None:
    try:
        configure_logging(get_settings().logging)
    except ValidationError:
        # Variables de entorno inválidas: valores por defecto hasta que se corrijan
        configure_logging()


_init_logging()


__all__ = [
    "PREVIEW_CHARS",
    "configure_logging",
    "get_logger",
    "session_context",
    "truncate_previews",
    "log_model_call",
    "log_model_output",
    "log_guardrail_check",
    "log_coach_decision",
]
