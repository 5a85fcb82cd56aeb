"""Factory functions for creating provider instances."""

import logging
import os
from enum import Enum

from dotenv import load_dotenv

from kbrag.constants import CHAT_MODEL_DEFAULTS, DEFAULT_OLLAMA_HOST
from kbrag.errors import ProviderError
from kbrag.llm.base import ChatProvider, EmbeddingProvider
from kbrag.llm.gemini import GeminiService
from kbrag.llm.ollama import OllamaService
from kbrag.llm.openai import OpenAICompatibleService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """Supported provider backends."""

    OLLAMA = "ollama"
    GEMINI = "gemini"
    OPENAI = "openai"

    @classmethod
    def parse(cls, value: "str | ProviderKind") -> "ProviderKind":
        try:
            return cls(str(value.value if isinstance(value, ProviderKind) else value).lower())
        except ValueError as e:
            raise ProviderError(f"Unsupported service type: {value}") from e


def _build(kind: ProviderKind, config: dict) -> OllamaService | GeminiService | OpenAICompatibleService:
    model = config.get("model", os.getenv("LLM_MODEL", CHAT_MODEL_DEFAULTS[kind.value]))
    embedding_model = config.get("embedding_model")

    if kind is ProviderKind.OLLAMA:
        host = config.get("host", os.getenv("OLLAMA_HOST", DEFAULT_OLLAMA_HOST))
        return OllamaService(host=host, model=model, embedding_model=embedding_model)
    if kind is ProviderKind.GEMINI:
        return GeminiService(model=model, embedding_model=embedding_model)
    return OpenAICompatibleService(
        model=model,
        api_key=config.get("api_key"),
        base_url=config.get("base_url"),
        embedding_model=embedding_model,
    )


def get_llm_service(config: dict | None = None) -> ChatProvider:
    """Factory function to create a chat provider.

    Args:
        config: Optional configuration dictionary. If None, uses environment variables.
                Expected keys:
                - 'service': Service type (default: from LLM_SERVICE env, or "ollama")
                - 'host': Ollama host URL (default: from OLLAMA_HOST env)
                - 'model': Model name (default: from LLM_MODEL env)
                - 'api_key' / 'base_url': OpenAI-compatible endpoint settings

    Returns:
        ChatProvider: An instance implementing the ChatProvider protocol.
    """
    config = config or {}
    kind = ProviderKind.parse(config.get("service", os.getenv("LLM_SERVICE", "ollama")))
    return _build(kind, config)


def get_embedding_provider(config: dict | None = None) -> EmbeddingProvider:
    """Factory function to create an embedding provider.

    The embedding backend can differ from the chat backend through
    EMBEDDING_SERVICE; it defaults to LLM_SERVICE.

    Args:
        config: Same keys as get_llm_service, plus 'embedding_model'.

    Returns:
        EmbeddingProvider: An instance implementing the EmbeddingProvider protocol.
    """
    config = config or {}
    default_service = os.getenv("EMBEDDING_SERVICE", os.getenv("LLM_SERVICE", "ollama"))
    kind = ProviderKind.parse(config.get("service", default_service))
    return _build(kind, config)
