"""
Adaptador para modelos de Ollama.

Este módulo implementa la interfaz BaseModelAdapter para el backend Ollama.
Los mensajes con partes de imagen (formato OpenAI) se convierten al campo
`images` que espera `/api/chat`.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mathcoach.core.exceptions import (
    ModelConnectionError,
    ModelGenerationError,
    ModelNotFoundError,
    ModelTimeoutError,
)
from mathcoach.core.types import ModelResponse
from mathcoach.models.base import BaseModelAdapter, ChatMessage


class OllamaAdapter(BaseModelAdapter):
    """
    Adaptador para modelos de Ollama.

    Attributes:
        base_url: URL base del servidor Ollama.
        timeout: Timeout para las peticiones HTTP.

    Example:
        ```python
        adapter = OllamaAdapter(model_name="llama3.1:8b")
        response = await adapter.generate([
            {"role": "user", "content": "What are we trying to find?"}
        ])
        print(response.content)
        ```
    """

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://localhost:11434",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(model_name=model_name, backend_name="ollama", **kwargs)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.supports_vision = True

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def _to_ollama_message(message: dict[str, Any]) -> dict[str, Any]:
        """Convierte contenido multiparte a texto + lista de imágenes base64."""
        content = message["content"]
        if isinstance(content, str):
            return message

        texts: list[str] = []
        images: list[str] = []
        for part in content:
            if part.get("type") == "text":
                texts.append(part.get("text", ""))
            elif part.get("type") == "image_url":
                url = part.get("image_url", {}).get("url", "")
                # data:image/jpeg;base64,XXXX -> XXXX
                images.append(url.split(",", 1)[1] if url.startswith("data:") else url)

        converted: dict[str, Any] = {"role": message["role"], "content": "\n".join(texts)}
        if images:
            converted["images"] = images
        return converted

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post_chat(self, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        return await client.post("/api/chat", json=payload)

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
        Genera una respuesta usando la API de chat de Ollama.

        Raises:
            ModelConnectionError: Si no se puede conectar a Ollama.
            ModelNotFoundError: Si el modelo no existe.
            ModelGenerationError: Si hay un error durante la generación.
            ModelTimeoutError: Si se excede el timeout.
        """
        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": [self._to_ollama_message(m) for m in self._normalize_messages(messages)],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if stop:
            payload["options"]["stop"] = stop
        for key, value in kwargs.items():
            payload["options"].setdefault(key, value)

        async with self._measure_time() as timing:
            try:
                response = await self._post_chat(payload)
                if response.status_code == 404:
                    raise ModelNotFoundError(self.model_name, "ollama")
                response.raise_for_status()
                data = self._json_object(response)
            except httpx.ConnectError as e:
                raise ModelConnectionError("ollama", self.base_url, str(e)) from e
            except httpx.TimeoutException as e:
                raise ModelTimeoutError(self.model_name, self.timeout) from e
            except httpx.TransportError as e:
                # Conexión cortada o protocolo roto a mitad de respuesta
                raise ModelConnectionError("ollama", self.base_url, str(e)) from e
            except httpx.HTTPStatusError as e:
                raise ModelGenerationError(
                    self.model_name,
                    f"HTTP {e.response.status_code}: {e.response.text}",
                ) from e
            except httpx.HTTPError as e:
                raise ModelGenerationError(self.model_name, str(e)) from e

        message = data.get("message")
        if message is not None and not isinstance(message, dict):
            raise ModelGenerationError(self.model_name, "Campo message inesperado")

        return self._create_response(
            content=self._text_content((message or {}).get("content")),
            prompt_tokens=data.get("prompt_eval_count"),
            completion_tokens=data.get("eval_count"),
            generation_time_ms=timing["elapsed_ms"],
            finish_reason=data.get("done_reason", "stop"),
            raw_response=data,
        )

    async def health_check(self) -> bool:
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def get_model_info(self) -> dict[str, Any]:
        """
        Obtiene información del modelo desde Ollama.

        Raises:
            ModelNotFoundError: Si Ollama no conoce el modelo.
        """
        client = await self._get_client()
        response = await client.post("/api/show", json={"name": self.model_name})
        if response.status_code == 404:
            raise ModelNotFoundError(self.model_name, "ollama")
        response.raise_for_status()
        data = response.json()

        details = data.get("details", {})
        return {
            "model": self.model_name,
            "backend": "ollama",
            "family": details.get("family"),
            "parameter_size": details.get("parameter_size"),
            "quantization": details.get("quantization_level"),
        }


__all__ = ["OllamaAdapter"]
