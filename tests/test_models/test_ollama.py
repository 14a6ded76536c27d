"""
Tests para el adaptador de Ollama.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from mathcoach.core.exceptions import (
    ModelConnectionError,
    ModelGenerationError,
    ModelNotFoundError,
    ModelTimeoutError,
)
from mathcoach.core.types import ModelResponse
from mathcoach.models.ollama_adapter import OllamaAdapter


class TestOllamaAdapter:
    """Tests para OllamaAdapter."""

    def test_initialization(self):
        """Test de inicialización del adaptador."""
        adapter = OllamaAdapter(
            model_name="llama3.1:8b",
            base_url="http://localhost:11434/",
            timeout=30.0,
        )

        assert adapter.model_name == "llama3.1:8b"
        assert adapter.backend_name == "ollama"
        assert adapter.base_url == "http://localhost:11434"
        assert adapter.model_id == "ollama/llama3.1:8b"

    @pytest.mark.asyncio
    async def test_generate_success(self, sample_messages, mock_ollama_response):
        """Test de generación exitosa."""
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False

            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.json.return_value = mock_ollama_response
            mock_response.raise_for_status = MagicMock()
            mock_client.post.return_value = mock_response

            adapter = OllamaAdapter(model_name="llama3.1:8b")
            response = await adapter.generate(sample_messages, temperature=0.2, max_tokens=64)

            assert isinstance(response, ModelResponse)
            assert response.content == "What do we know from the problem?"
            assert response.model == "ollama/llama3.1:8b"
            assert response.prompt_tokens == 50
            assert response.completion_tokens == 25
            assert response.total_tokens == 75

            args = mock_client.post.call_args
            assert args.args[0] == "/api/chat"
            payload = args.kwargs["json"]
            assert payload["stream"] is False
            assert payload["options"] == {"temperature": 0.2, "num_predict": 64}

    @pytest.mark.asyncio
    async def test_model_not_found(self, sample_messages):
        """Test de error cuando el modelo no existe."""
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False

            mock_response = MagicMock()
            mock_response.status_code = 404
            mock_client.post.return_value = mock_response

            adapter = OllamaAdapter(model_name="nonexistent")

            with pytest.raises(ModelNotFoundError):
                await adapter.generate(sample_messages)

    @pytest.mark.asyncio
    async def test_timeout(self, sample_messages):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.post.side_effect = httpx.ReadTimeout("slow")

            adapter = OllamaAdapter(model_name="llama3.1:8b", timeout=5.0)

            with pytest.raises(ModelTimeoutError) as exc_info:
                await adapter.generate(sample_messages)

            assert exc_info.value.details["timeout_seconds"] == 5.0

    def test_image_parts_conversion(self):
        """Las partes de imagen se pasan al campo images sin el prefijo data URL."""
        message = {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,aGVsbG8="}},
                {"type": "text", "text": "Transcribe this problem."},
            ],
        }

        converted = OllamaAdapter._to_ollama_message(message)

        assert converted == {
            "role": "user",
            "content": "Transcribe this problem.",
            "images": ["aGVsbG8="],
        }

    def test_text_message_unchanged(self):
        message = {"role": "user", "content": "Hello"}

        assert OllamaAdapter._to_ollama_message(message) is message

    @pytest.mark.asyncio
    async def test_get_model_info(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False

            mock_response = MagicMock()
            mock_response.status_code = 200
            mock_response.raise_for_status = MagicMock()
            mock_response.json.return_value = {
                "details": {
                    "family": "llama",
                    "parameter_size": "8B",
                    "quantization_level": "Q4_0",
                },
            }
            mock_client.post.return_value = mock_response

            adapter = OllamaAdapter(model_name="llama3.1:8b")
            info = await adapter.get_model_info()

            assert info["family"] == "llama"
            assert info["quantization"] == "Q4_0"

    @pytest.mark.asyncio
    async def test_health_check_down(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client_class.return_value = mock_client
            mock_client.is_closed = False
            mock_client.get.side_effect = httpx.ConnectError("refused")

            adapter = OllamaAdapter(model_name="llama3.1:8b")

            assert await adapter.health_check() is False


def _on_transport(handler) -> OllamaAdapter:
    adapter = OllamaAdapter(model_name="llama3.1:8b")
    adapter._client = httpx.AsyncClient(
        base_url=adapter.base_url,
        transport=httpx.MockTransport(handler),
    )
    return adapter


class TestOllamaMalformedResponses:
    """Cortes de conexión y cuerpos raros no escapan como excepciones de httpx."""

    @pytest.mark.asyncio
    async def test_connection_reset(self, sample_messages):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadError("connection reset", request=request)

        adapter = _on_transport(handler)

        with pytest.raises(ModelConnectionError) as exc_info:
            await adapter.generate(sample_messages)

        assert exc_info.value.details["cause"] == "connection reset"
        await adapter.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>Bad gateway</html>"),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, json={"message": "just text"}),
    ])
    async def test_unexpected_bodies(self, sample_messages, response):
        adapter = _on_transport(lambda request: response)

        with pytest.raises(ModelGenerationError):
            await adapter.generate(sample_messages)

        await adapter.close()

    @pytest.mark.asyncio
    async def test_null_content(self, sample_messages):
        adapter = _on_transport(lambda request: httpx.Response(200, json={
            "message": {"role": "assistant", "content": None},
            "done": True,
        }))

        response = await adapter.generate(sample_messages)

        assert response.content == ""
        assert response.finish_reason == "stop"
        await adapter.close()


@pytest.mark.integration
class TestOllamaIntegration:
    """Tests de integración con un servidor Ollama real."""

    @pytest.mark.asyncio
    async def test_real_generation(self, skip_if_no_ollama):
        adapter = OllamaAdapter(model_name="llama3.1:8b")
        try:
            response = await adapter.generate(
                [{"role": "user", "content": "Ask me one question about fractions."}],
                max_tokens=40,
            )
            assert response.content
        finally:
            await adapter.close()
