"""Provider abstraction layer for kbrag.

This package provides one capability interface per concern and one
implementation per backend:
- EmbeddingProvider / ChatProvider: protocols used by the engine
- OllamaService: local models via Ollama
- GeminiService: Google Gemini API
- OpenAICompatibleService: any OpenAI-style REST endpoint

Usage:
    from kbrag.llm import get_embedding_provider, get_llm_service

    embedder = get_embedding_provider()
    chat = get_llm_service({"service": "gemini", "model": "gemini-2.5-flash"})
"""

from kbrag.llm.base import BatchFallbackMixin, ChatProvider, EmbeddingProvider
from kbrag.llm.factory import ProviderKind, get_embedding_provider, get_llm_service
from kbrag.llm.gemini import GeminiService
from kbrag.llm.ollama import OllamaService
from kbrag.llm.openai import OpenAICompatibleService

__all__ = [
    "BatchFallbackMixin",
    "ChatProvider",
    "EmbeddingProvider",
    "GeminiService",
    "OllamaService",
    "OpenAICompatibleService",
    "ProviderKind",
    "get_embedding_provider",
    "get_llm_service",
]
