"""
Tests para el adaptador de gateways compatibles con OpenAI API.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from mathcoach.core.exceptions import (
    ModelConnectionError,
    ModelGenerationError,
    ModelNotFoundError,
    ModelQuotaExceededError,
    ModelRateLimitError,
    ModelTimeoutError,
)
from mathcoach.core.types import ModelResponse
from mathcoach.models.openai_compatible import OpenAICompatibleAdapter


def _response(status_code: int, json_data: dict | None = None, headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    response.headers = headers or {}
    response.text = ""
    response.raise_for_status = MagicMock()
    return response


class TestOpenAICompatibleAdapter:
    """Tests para OpenAICompatibleAdapter."""

    def test_initialization(self):
        """Test de inicialización del adaptador."""
        adapter = OpenAICompatibleAdapter(
            model_name="llama-3.1-8b",
            base_url="http://localhost:8000/v1/",
            api_key="test-key",
            timeout=30.0,
        )

        assert adapter.model_name == "llama-3.1-8b"
        assert adapter.backend_name == "openai_compatible"
        assert adapter.base_url == "http://localhost:8000/v1"
        assert adapter.timeout == 30.0
        assert adapter.supports_vision is True
        assert adapter.model_id == "openai_compatible/llama-3.1-8b"

    @pytest.mark.asyncio
    async def test_generate_success(self, sample_messages, mock_openai_response):
        """Test de generación exitosa."""
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.return_value = _response(200, mock_openai_response)

            adapter = OpenAICompatibleAdapter(model_name="llama-3.1-8b")
            response = await adapter.generate(sample_messages, temperature=0.3, max_tokens=120)

            assert isinstance(response, ModelResponse)
            assert response.content == "What are we trying to find?"
            assert response.model == "openai_compatible/llama-3.1-8b"
            assert response.prompt_tokens == 50
            assert response.total_tokens == 75
            assert response.finish_reason == "stop"

            args = mock_client.post.call_args
            assert args.args[0] == "/chat/completions"
            payload = args.kwargs["json"]
            assert payload["temperature"] == 0.3
            assert payload["max_tokens"] == 120
            assert payload["stream"] is False

    @pytest.mark.asyncio
    async def test_auth_header(self):
        """Test de cabecera de autenticación."""
        with patch("httpx.AsyncClient") as mock_client_class:
            adapter = OpenAICompatibleAdapter(model_name="gpt-4o-mini", api_key="sk-test")
            await adapter._get_client()

            headers = mock_client_class.call_args.kwargs["headers"]
            assert headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_no_auth_header_for_local(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            adapter = OpenAICompatibleAdapter(model_name="local")
            await adapter._get_client()

            assert "Authorization" not in mock_client_class.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (404, ModelNotFoundError),
        (429, ModelRateLimitError),
        (402, ModelQuotaExceededError),
    ])
    async def test_gateway_errors(self, sample_messages, status, error):
        """Test de traducción de códigos HTTP del gateway."""
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.return_value = _response(status, headers={"retry-after": "30"})

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(error):
                await adapter.generate(sample_messages)

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.return_value = _response(429, headers={"retry-after": "30"})

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelRateLimitError) as exc_info:
                await adapter.generate(sample_messages)

            assert exc_info.value.details["retry_after"] == "30"
            assert exc_info.value.recoverable is True

    @pytest.mark.asyncio
    async def test_bad_request_message(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.return_value = _response(
                400, {"error": {"message": "context length exceeded"}}
            )

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelGenerationError) as exc_info:
                await adapter.generate(sample_messages)

            assert "context length exceeded" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            response = _response(500)
            response.text = "internal error"
            response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "server error", request=MagicMock(), response=response
            )
            mock_client.post.return_value = response

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelGenerationError) as exc_info:
                await adapter.generate(sample_messages)

            assert "HTTP 500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_choices(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.return_value = _response(200, {"choices": []})

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelGenerationError):
                await adapter.generate(sample_messages)

    @pytest.mark.asyncio
    async def test_read_timeout(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.side_effect = httpx.ReadTimeout("slow")

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelTimeoutError):
                await adapter.generate(sample_messages)

            assert mock_client.post.await_count == 1

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_connection_error_retried(self, sample_messages):
        """Los errores de conexión se reintentan antes de fallar."""
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.side_effect = httpx.ConnectError("refused")

            adapter = OpenAICompatibleAdapter(model_name="test")

            with pytest.raises(ModelConnectionError):
                await adapter.generate(sample_messages)

            assert mock_client.post.await_count == 3

    @pytest.mark.asyncio
    async def test_health_check(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.get.return_value = _response(200)

            adapter = OpenAICompatibleAdapter(model_name="test")

            assert await adapter.health_check() is True

            mock_client.get.side_effect = httpx.ConnectError("refused")
            assert await adapter.health_check() is False

    @pytest.mark.asyncio
    async def test_model_info(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.get.return_value = _response(200, {
                "data": [{"id": "test", "owned_by": "vllm", "created": 1}],
            })

            adapter = OpenAICompatibleAdapter(model_name="test")
            info = await adapter.get_model_info()

            assert info["owned_by"] == "vllm"
            assert info["backend"] == "openai_compatible"

    @pytest.mark.asyncio
    async def test_close(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False

            adapter = OpenAICompatibleAdapter(model_name="test")
            await adapter._get_client()
            await adapter.close()

            mock_client.aclose.assert_awaited_once()
            assert adapter._client is None


def _on_transport(handler) -> OpenAICompatibleAdapter:
    adapter = OpenAICompatibleAdapter(model_name="test", base_url="http://gateway.local/v1")
    adapter._client = httpx.AsyncClient(
        base_url=adapter.base_url,
        transport=httpx.MockTransport(handler),
    )
    return adapter


class TestOpenAICompatibleMalformedResponses:
    """Fallos de transporte y cuerpos inesperados se traducen a ModelError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_class", [httpx.ReadError, httpx.RemoteProtocolError, httpx.WriteError])
    async def test_transport_errors(self, sample_messages, error_class):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise error_class("connection dropped", request=request)

        adapter = _on_transport(handler)

        with pytest.raises(ModelConnectionError) as exc_info:
            await adapter.generate(sample_messages)

        assert exc_info.value.details["backend"] == "openai_compatible"
        assert len(calls) == 1
        await adapter.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>Bad gateway</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"choices": "none"}),
        httpx.Response(200, json={"choices": ["plain text"]}),
        httpx.Response(200, json={"choices": [{"message": {"content": 42}}]}),
    ])
    async def test_unexpected_bodies(self, sample_messages, response):
        adapter = _on_transport(lambda request: response)

        with pytest.raises(ModelGenerationError):
            await adapter.generate(sample_messages)

        await adapter.close()

    @pytest.mark.asyncio
    async def test_null_content_and_odd_usage(self, sample_messages):
        adapter = _on_transport(lambda request: httpx.Response(200, json={
            "choices": [{"message": {"role": "assistant", "content": None}, "finish_reason": None}],
            "usage": {"prompt_tokens": "n/a", "completion_tokens": 3},
        }))

        response = await adapter.generate(sample_messages)

        assert response.content == ""
        assert response.prompt_tokens is None
        assert response.completion_tokens == 3
        assert response.total_tokens is None
        await adapter.close()

    @pytest.mark.asyncio
    async def test_bad_request_with_non_object_error(self, sample_messages):
        adapter = _on_transport(lambda request: httpx.Response(400, json=["bad"]))

        with pytest.raises(ModelGenerationError):
            await adapter.generate(sample_messages)

        await adapter.close()
