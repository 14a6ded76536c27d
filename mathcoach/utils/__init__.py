"""
Módulo de utilidades de mathcoach.

Incluye:
- Logging estructurado
- Recolección de métricas de auditoría
"""

from mathcoach.utils.logging import (
    configure_logging,
    get_logger,
    log_coach_decision,
    log_guardrail_check,
    log_model_call,
    log_model_output,
    session_context,
)
from mathcoach.utils.metrics import (
    CoachMetrics,
    MetricStats,
    MetricValue,
    MetricsCollector,
    get_coach_metrics,
    get_metrics,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "session_context",
    "log_model_call",
    "log_model_output",
    "log_guardrail_check",
    "log_coach_decision",
    # Metrics
    "MetricsCollector",
    "MetricValue",
    "MetricStats",
    "CoachMetrics",
    "get_metrics",
    "get_coach_metrics",
]
