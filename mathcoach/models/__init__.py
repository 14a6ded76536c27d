"""
Adaptadores de generadores de texto.

- **Ollama**: modelos locales via servidor Ollama
- **OpenAI compatible**: vLLM, llama.cpp, LM Studio o un gateway remoto

Ejemplo de uso básico:
    ```python
    from mathcoach.models import ModelFactory

    model = ModelFactory.create("ollama/llama3.1:8b")
    response = await model.generate([
        {"role": "user", "content": "What stays the same here?"}
    ])
    ```
"""

from mathcoach.models.base import (
    BaseModelAdapter,
    ChatMessage,
    MessageContent,
    ModelAdapterFactory,
)
from mathcoach.models.factory import SUPPORTED_BACKENDS, ModelFactory
from mathcoach.models.ollama_adapter import OllamaAdapter
from mathcoach.models.openai_compatible import OpenAICompatibleAdapter

__all__ = [
    "BaseModelAdapter",
    "ChatMessage",
    "MessageContent",
    "ModelAdapterFactory",
    "OllamaAdapter",
    "OpenAICompatibleAdapter",
    "ModelFactory",
    "SUPPORTED_BACKENDS",
]
