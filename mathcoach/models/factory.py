"""
Factory para crear adaptadores de generadores.

El backend se elige a partir del identificador "backend/model_name", de
forma que cambiar de Ollama a un gateway compatible con OpenAI solo
requiere cambiar la configuración.
"""

from __future__ import annotations

from typing import Any

from config.settings import ModelRole, Settings, get_default_model, get_settings, parse_model_id
from mathcoach.core.exceptions import BackendNotSupportedError, InvalidModelIdError
from mathcoach.models.base import BaseModelAdapter
from mathcoach.models.ollama_adapter import OllamaAdapter
from mathcoach.models.openai_compatible import OpenAICompatibleAdapter
from mathcoach.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_BACKENDS = ["ollama", "openai_compatible"]


class ModelFactory:
    """
    Factory para crear adaptadores de generadores.

    Ejemplos de identificador:
    - "ollama/llama3.1:8b"
    - "openai_compatible/meta-llama/Llama-3.1-8B-Instruct"

    Example:
        ```python
        adapter = ModelFactory.create("ollama/llama3.1:8b")
        adapter = ModelFactory.create(
            "openai_compatible/gpt-4o-mini",
            base_url="https://gateway.example.com/v1",
            api_key="...",
        )
        ```
    """

    # Cache de adaptadores (uno por model_id + kwargs)
    _cache: dict[str, BaseModelAdapter] = {}

    @staticmethod
    def create(
        model_id: str,
        *,
        use_cache: bool = True,
        **kwargs: Any,
    ) -> BaseModelAdapter:
        """
        Crea un adaptador a partir del identificador.

        Args:
            model_id: Identificador del modelo ("backend/model_name").
            use_cache: Si reutilizar el adaptador ya creado.
            **kwargs: Sobrescriben la configuración del backend.

        Raises:
            InvalidModelIdError: Si el formato del model_id es inválido.
            BackendNotSupportedError: Si el backend no está soportado.
        """
        cache_key = f"{model_id}:{hash(frozenset(kwargs.items()))}"
        if use_cache and cache_key in ModelFactory._cache:
            return ModelFactory._cache[cache_key]

        try:
            backend, model_name = parse_model_id(model_id)
        except ValueError as e:
            raise InvalidModelIdError(model_id) from e

        settings = get_settings()
        adapter: BaseModelAdapter
        if backend == "ollama":
            adapter = ModelFactory._create_ollama(model_name, settings, **kwargs)
        elif backend == "openai_compatible":
            adapter = ModelFactory._create_openai_compatible(model_name, settings, **kwargs)
        else:
            raise BackendNotSupportedError(backend, SUPPORTED_BACKENDS)

        logger.debug("model_adapter_created", model_id=model_id, backend=backend)
        if use_cache:
            ModelFactory._cache[cache_key] = adapter
        return adapter

    @staticmethod
    def _create_ollama(model_name: str, settings: Settings, **kwargs: Any) -> OllamaAdapter:
        base_url = kwargs.pop("base_url", settings.ollama.base_url)
        timeout = kwargs.pop("timeout", settings.ollama.timeout)
        return OllamaAdapter(model_name=model_name, base_url=base_url, timeout=timeout, **kwargs)

    @staticmethod
    def _create_openai_compatible(
        model_name: str,
        settings: Settings,
        **kwargs: Any,
    ) -> OpenAICompatibleAdapter:
        config = settings.openai_compatible
        return OpenAICompatibleAdapter(
            model_name=model_name,
            base_url=kwargs.pop("base_url", config.base_url),
            api_key=kwargs.pop("api_key", config.api_key),
            timeout=kwargs.pop("timeout", config.timeout),
            **kwargs,
        )

    @staticmethod
    def for_role(role: ModelRole, **kwargs: Any) -> BaseModelAdapter:
        """Adaptador del modelo configurado para un uso (coach, análisis...)."""
        return ModelFactory.create(get_default_model(role), **kwargs)

    @staticmethod
    def clear_cache() -> None:
        ModelFactory._cache.clear()

    @staticmethod
    async def cleanup_all() -> None:
        """Cierra los clientes HTTP de todos los adaptadores en caché."""
        for adapter in ModelFactory._cache.values():
            await adapter.close()
        ModelFactory._cache.clear()

    @staticmethod
    def list_cached() -> list[str]:
        return list(ModelFactory._cache.keys())


__all__ = ["ModelFactory", "SUPPORTED_BACKENDS"]
