"""
Configuración y fixtures compartidos para tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

# Añadir el directorio raíz al path para imports
ROOT_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT_DIR))

from config.settings import GuardrailsConfig  # noqa: E402
from mathcoach.agents.coach.agent import CoachAgent  # noqa: E402
from mathcoach.agents.coach.reflection import SessionReflector  # noqa: E402
from mathcoach.core.types import ModelResponse  # noqa: E402
from mathcoach.guardrails.policy import ResponsePolicySelector  # noqa: E402
from mathcoach.guardrails.templates import TemplateBank  # noqa: E402
from mathcoach.utils.metrics import CoachMetrics  # noqa: E402


# =============================================================================
# Fixtures para mocking de respuestas de modelos
# =============================================================================

@pytest.fixture
def mock_ollama_response() -> dict[str, Any]:
    """Respuesta típica de Ollama."""
    return {
        "model": "llama3.1:8b",
        "message": {
            "role": "assistant",
            "content": "What do we know from the problem?"
        },
        "done": True,
        "done_reason": "stop",
        "prompt_eval_count": 50,
        "eval_count": 25,
    }


@pytest.fixture
def mock_openai_response() -> dict[str, Any]:
    """Respuesta típica de OpenAI API compatible."""
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "created": 1677652288,
        "model": "meta-llama/Llama-3.1-8B-Instruct",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": "What are we trying to find?"
                },
                "finish_reason": "stop"
            }
        ],
        "usage": {
            "prompt_tokens": 50,
            "completion_tokens": 25,
            "total_tokens": 75
        }
    }


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """Mensajes de ejemplo para pruebas."""
    return [
        {"role": "system", "content": "You are an RSM-style math coach."},
        {"role": "user", "content": "I don't know where to start."},
    ]


@pytest.fixture
def sample_math_problem() -> str:
    """Problema matemático de ejemplo."""
    return "If 3x + 7 = 22, what is x?"


# =============================================================================
# Fixtures del generador y del coach
# =============================================================================

def _make_model(*contents: str, model_id: str = "fake/coach") -> MagicMock:
    model = MagicMock()
    model.model_id = model_id
    responses = [ModelResponse(content=c, model=model_id) for c in contents]
    if len(responses) == 1:
        model.generate = AsyncMock(return_value=responses[0])
    else:
        model.generate = AsyncMock(side_effect=responses)
    return model


@pytest.fixture
def make_model() -> Callable[..., MagicMock]:
    """Generador falso que devuelve los textos indicados, en orden."""
    return _make_model


@pytest.fixture
def metrics() -> CoachMetrics:
    """Métricas aisladas del singleton global."""
    return CoachMetrics()


@pytest.fixture
def templates() -> TemplateBank:
    """Banco de plantillas con semilla fija."""
    return TemplateBank.seeded(42)


@pytest.fixture
def guardrails_config() -> GuardrailsConfig:
    return GuardrailsConfig()


@pytest.fixture
def policy(templates, guardrails_config, metrics) -> ResponsePolicySelector:
    return ResponsePolicySelector(
        templates=templates,
        config=guardrails_config,
        metrics=metrics,
    )


@pytest.fixture
def make_agent(metrics) -> Callable[..., CoachAgent]:
    """Construye un CoachAgent con plantillas sembradas y métricas aisladas."""

    def factory(
        model: MagicMock,
        config: GuardrailsConfig | None = None,
        reflection_model: MagicMock | None = None,
        **kwargs: Any,
    ) -> CoachAgent:
        policy = ResponsePolicySelector(
            templates=TemplateBank.seeded(42),
            config=config or GuardrailsConfig(),
            metrics=metrics,
        )
        reflector = SessionReflector(
            reflection_model or _make_model("{}", model_id="fake/reflection"),
            metrics=metrics,
        )
        return CoachAgent(
            model=model,
            policy=policy,
            reflector=reflector,
            metrics=metrics,
            **kwargs,
        )

    return factory


# =============================================================================
# Fixtures para tests de integración (requieren servicios reales)
# =============================================================================

@pytest.fixture
def ollama_available() -> bool:
    """Verifica si Ollama está disponible para tests de integración."""
    import httpx
    try:
        response = httpx.get("http://localhost:11434/api/tags", timeout=5)
        return response.status_code == 200
    except httpx.HTTPError:
        return False


@pytest.fixture
def skip_if_no_ollama(ollama_available: bool) -> None:
    """Skip test si Ollama no está disponible."""
    if not ollama_available:
        pytest.skip("Ollama no disponible - test de integración omitido")


# =============================================================================
# Markers personalizados
# =============================================================================

def pytest_configure(config: Any) -> None:
    """Configura markers personalizados."""
    config.addinivalue_line(
        "markers",
        "integration: test de integración que requiere servicios externos"
    )
    config.addinivalue_line(
        "markers",
        "slow: test lento que puede omitirse con --skip-slow"
    )
    config.addinivalue_line(
        "markers",
        "e2e: test del ciclo de vida completo"
    )


def pytest_collection_modifyitems(config: Any, items: list[Any]) -> None:
    """Modifica la colección de tests según opciones."""
    if config.getoption("--skip-slow", default=False):
        skip_slow = pytest.mark.skip(reason="--skip-slow especificado")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)
    if not config.getoption("--integration", default=False):
        skip_integration = pytest.mark.skip(reason="usa --integration para ejecutarlo")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_addoption(parser: Any) -> None:
    """Añade opciones de línea de comandos."""
    parser.addoption(
        "--skip-slow",
        action="store_true",
        default=False,
        help="Omitir tests marcados como lentos"
    )
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="Ejecutar tests de integración"
    )
