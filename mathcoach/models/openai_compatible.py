"""
Adaptador para gateways compatibles con la API de OpenAI.

Sirve para cualquier servidor que exponga `/chat/completions` (vLLM,
llama.cpp server, LM Studio, LocalAI o un gateway remoto). Acepta mensajes
con partes de imagen, por lo que también se usa para el análisis de fotos.
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
    ModelQuotaExceededError,
    ModelRateLimitError,
    ModelTimeoutError,
)
from mathcoach.core.types import ModelResponse
from mathcoach.models.base import BaseModelAdapter, ChatMessage

BACKEND_NAME = "openai_compatible"


class OpenAICompatibleAdapter(BaseModelAdapter):
    """
    Adaptador para servidores que implementan la API de OpenAI.

    Attributes:
        base_url: URL base del servidor (ej: "http://localhost:8000/v1").
        api_key: API key ("not-needed" para servidores locales sin auth).
        timeout: Timeout para las peticiones HTTP.

    Example:
        ```python
        adapter = OpenAICompatibleAdapter(
            model_name="meta-llama/Llama-3.1-8B-Instruct",
            base_url="http://localhost:8000/v1",
        )
        response = await adapter.generate([
            {"role": "user", "content": "What do we know from the problem?"}
        ])
        ```
    """

    def __init__(
        self,
        model_name: str,
        base_url: str = "http://localhost:8000/v1",
        api_key: str = "not-needed",
        timeout: float = 60.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(model_name=model_name, backend_name=BACKEND_NAME, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.supports_vision = True

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Obtiene o crea el cliente HTTP con headers de autenticación."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key and self.api_key != "not-needed":
                headers["Authorization"] = f"Bearer {self.api_key}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post_completion(self, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        return await client.post("/chat/completions", json=payload)

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
        Genera una respuesta usando la API de chat completions.

        Los errores de conexión se reintentan hasta tres veces con backoff
        exponencial; el resto se traduce a la jerarquía de ModelError.
        """
        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": self._normalize_messages(messages),
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        if stop:
            payload["stop"] = stop
        for key, value in kwargs.items():
            payload.setdefault(key, value)

        async with self._measure_time() as timing:
            try:
                response = await self._post_completion(payload)
                self._raise_for_status(response)
                data = self._json_object(response)
            except httpx.ConnectError as e:
                raise ModelConnectionError(BACKEND_NAME, self.base_url, str(e)) from e
            except httpx.TimeoutException as e:
                raise ModelTimeoutError(self.model_name, self.timeout) from e
            except httpx.TransportError as e:
                # Conexión cortada o protocolo roto a mitad de respuesta
                raise ModelConnectionError(BACKEND_NAME, self.base_url, str(e)) from e
            except httpx.HTTPStatusError as e:
                raise ModelGenerationError(
                    self.model_name,
                    f"HTTP {e.response.status_code}: {e.response.text}",
                ) from e
            except httpx.HTTPError as e:
                raise ModelGenerationError(self.model_name, str(e)) from e

        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise ModelGenerationError(
                self.model_name,
                "No se recibieron choices en la respuesta",
            )

        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise ModelGenerationError(self.model_name, "Choice sin message")

        content = self._text_content(message.get("content"))
        usage = data.get("usage")
        if not isinstance(usage, dict):
            usage = {}

        return self._create_response(
            content=content,
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
            generation_time_ms=timing["elapsed_ms"],
            finish_reason=choice.get("finish_reason"),
            raw_response=data,
        )

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Traduce los códigos del gateway a excepciones propias."""
        status = response.status_code
        if status == 404:
            raise ModelNotFoundError(self.model_name, BACKEND_NAME)
        if status == 429:
            raise ModelRateLimitError(self.model_name, response.headers.get("retry-after"))
        if status == 402:
            raise ModelQuotaExceededError(self.model_name)
        if status == 400:
            try:
                error_msg = response.json().get("error", {}).get("message", response.text)
            except (ValueError, AttributeError):
                error_msg = response.text
            raise ModelGenerationError(self.model_name, error_msg)
        response.raise_for_status()

    async def health_check(self) -> bool:
        """
        Verifica si el servidor está disponible listando sus modelos.
        """
        try:
            client = await self._get_client()
            response = await client.get("/models")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def get_model_info(self) -> dict[str, Any]:
        info: dict[str, Any] = {"model": self.model_name, "backend": BACKEND_NAME}
        client = await self._get_client()
        try:
            response = await client.get("/models")
        except httpx.HTTPError:
            return info

        if response.status_code != 200:
            return info

        models = response.json().get("data", [])
        for model in models:
            if model.get("id") == self.model_name:
                info["owned_by"] = model.get("owned_by")
                info["created"] = model.get("created")
                return info
        info["available_models"] = [m.get("id") for m in models]
        return info


__all__ = ["OpenAICompatibleAdapter"]
