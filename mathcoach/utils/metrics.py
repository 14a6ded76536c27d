"""
Métricas de mathcoach.

Recolección en memoria para auditar el comportamiento del motor:

- Redirecciones por categoría
- Fugas detectadas en respuestas generadas
- Pistas concedidas por nivel
- Fallos del generador y latencias
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from statistics import mean, median
from threading import Lock
from typing import Any, Generator


@dataclass
class MetricValue:
    """Valor de métrica con timestamp."""
    value: float
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class MetricStats:
    """Estadísticas agregadas de un histograma."""
    count: int
    sum: float
    min: float
    max: float
    mean: float
    median: float
    p95: float


class MetricsCollector:
    """
    Recolector de métricas en memoria, seguro entre hilos.

    Example:
        ```python
        metrics = MetricsCollector()
        metrics.increment("coach_redirects", labels={"category": "stuck"})
        with metrics.timer("generator_latency_ms", labels={"model": "llama3.1"}):
            await model.generate(...)
        stats = metrics.get_stats("generator_latency_ms", {"model": "llama3.1"})
        ```
    """

    def __init__(self, max_samples: int = 10000) -> None:
        self.max_samples = max_samples
        self._counters: dict[str, float] = defaultdict(float)
        self._gauges: dict[str, float] = {}
        self._histograms: dict[str, list[MetricValue]] = defaultdict(list)
        self._lock = Lock()

    def increment(
        self,
        name: str,
        value: float = 1.0,
        labels: dict[str, str] | None = None,
    ) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] += value

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        key = self._make_key(name, labels)
        with self._lock:
            self._gauges[key] = value

    def observe(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Registra una observación en un histograma (acotado a max_samples)."""
        key = self._make_key(name, labels)
        with self._lock:
            samples = self._histograms[key]
            samples.append(MetricValue(value=value))
            if len(samples) > self.max_samples:
                del samples[: len(samples) - self.max_samples]

    @contextmanager
    def timer(
        self,
        name: str,
        labels: dict[str, str] | None = None,
    ) -> Generator[None, None, None]:
        """Mide en milisegundos el bloque envuelto."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - start) * 1000, labels)

    def get_counter(
        self,
        name: str,
        labels: dict[str, str] | None = None,
    ) -> float:
        return self._counters.get(self._make_key(name, labels), 0.0)

    def get_gauge(
        self,
        name: str,
        labels: dict[str, str] | None = None,
    ) -> float | None:
        return self._gauges.get(self._make_key(name, labels))

    def get_stats(
        self,
        name: str,
        labels: dict[str, str] | None = None,
    ) -> MetricStats | None:
        """
        Obtiene estadísticas agregadas de un histograma.

        Returns:
            MetricStats o None si no hay muestras.
        """
        key = self._make_key(name, labels)
        with self._lock:
            values = [v.value for v in self._histograms.get(key, [])]

        if not values:
            return None

        sorted_values = sorted(values)
        return MetricStats(
            count=len(values),
            sum=sum(values),
            min=sorted_values[0],
            max=sorted_values[-1],
            mean=mean(values),
            median=median(values),
            p95=self._percentile(sorted_values, 95),
        )

    def get_all_metrics(self) -> dict[str, Any]:
        """Vuelca contadores, gauges y un resumen de cada histograma."""
        with self._lock:
            result: dict[str, Any] = {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "histograms": {},
            }
            for key, samples in self._histograms.items():
                if not samples:
                    continue
                sorted_vals = sorted(v.value for v in samples)
                result["histograms"][key] = {
                    "count": len(sorted_vals),
                    "mean": mean(sorted_vals),
                    "p95": self._percentile(sorted_vals, 95),
                }
            return result

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()

    @staticmethod
    def _make_key(name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    @staticmethod
    def _percentile(sorted_values: list[float], p: float) -> float:
        """Percentil p con interpolación lineal sobre una lista ordenada."""
        if not sorted_values:
            return 0.0
        n = len(sorted_values)
        k = (n - 1) * (p / 100)
        f = int(k)
        if f + 1 >= n:
            return sorted_values[-1]
        return sorted_values[f] + (k - f) * (sorted_values[f + 1] - sorted_values[f])


class CoachMetrics:
    """
    Métricas de auditoría del motor de coaching.

    Cada evento relevante para revisar offline (redirecciones, fugas,
    pistas y caídas del generador) queda contado con su etiqueta.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self.collector = collector or MetricsCollector()

    def record_classification(self, category: str) -> None:
        self.collector.increment("student_messages", labels={"category": category})

    def record_redirect(self, category: str) -> None:
        """Respuesta sintetizada sin llamar al generador."""
        self.collector.increment("coach_redirects", labels={"category": category})

    def record_leak(self, categories: list[str]) -> None:
        """Respuesta generada descartada por fuga."""
        self.collector.increment("leaks_detected")
        for category in categories:
            self.collector.increment("leaks_detected", labels={"category": category})

    def record_formula_dump(self, action: str) -> None:
        self.collector.increment("formula_dumps", labels={"action": action})

    def record_hint(self, tier: int) -> None:
        self.collector.increment("hints_given", labels={"tier": str(tier)})

    def record_hint_rejected(self) -> None:
        self.collector.increment("hints_rejected")

    def record_generator_fallback(self, reason: str) -> None:
        self.collector.increment("generator_fallbacks", labels={"reason": reason})

    def record_session_started(self, problem_type: str) -> None:
        self.collector.increment("sessions_started", labels={"type": problem_type})

    def record_active_sessions(self, count: int) -> None:
        self.collector.set_gauge("active_sessions", count)

    def record_session_ended(self, duration_seconds: float, hints_used: int) -> None:
        self.collector.increment("sessions_completed")
        self.collector.observe("session_duration_seconds", duration_seconds)
        self.collector.observe("hints_per_session", hints_used)

    def get_summary(self) -> dict[str, Any]:
        """Resumen legible de las métricas del coach."""
        return {
            "leaks_detected": self.collector.get_counter("leaks_detected"),
            "hints_rejected": self.collector.get_counter("hints_rejected"),
            "active_sessions": self.collector.get_gauge("active_sessions") or 0,
            "hints_by_tier": {
                str(tier): self.collector.get_counter("hints_given", {"tier": str(tier)})
                for tier in range(1, 4)
            },
            "session_duration": self.collector.get_stats("session_duration_seconds"),
            "hints_per_session": self.collector.get_stats("hints_per_session"),
        }


# Singletons globales
_metrics_collector: MetricsCollector | None = None
_coach_metrics: CoachMetrics | None = None


def get_metrics() -> MetricsCollector:
    """Obtiene el recolector de métricas global."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def get_coach_metrics() -> CoachMetrics:
    """Obtiene las métricas del coach globales."""
    global _coach_metrics
    if _coach_metrics is None:
        _coach_metrics = CoachMetrics(get_metrics())
    return _coach_metrics


__all__ = [
    "MetricsCollector",
    "MetricValue",
    "MetricStats",
    "CoachMetrics",
    "get_metrics",
    "get_coach_metrics",
]
