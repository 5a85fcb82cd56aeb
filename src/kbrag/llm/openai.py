"""OpenAI-compatible chat and embedding provider over plain HTTP.

Works against any server exposing ``/chat/completions`` and ``/embeddings``
(OpenAI itself, DeepSeek, or a self-hosted gateway).
"""

import logging
import os
from typing import Any

import requests

from kbrag.constants import (
    DEFAULT_OPENAI_BASE_URL,
    OPENAI_EMBEDDING_DIMENSIONS,
    get_embedding_dimensions,
    get_embedding_model,
)
from kbrag.errors import EmbeddingFailure, ProviderError, SynthesisFailure
from kbrag.llm.base import BatchFallbackMixin, as_messages

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 60


class OpenAICompatibleService(BatchFallbackMixin):
    """Chat and embeddings through an OpenAI-compatible REST API."""

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        embedding_model: str | None = None,
        timeout: int = REQUEST_TIMEOUT,
    ) -> None:
        """Initialize the service.

        Args:
            model: Chat model name (e.g., "gpt-4o-mini")
            api_key: API key (defaults to OPENAI_API_KEY)
            base_url: API base URL (defaults to OPENAI_BASE_URL or the public endpoint)
            embedding_model: Embedding model name
            timeout: Per-request timeout in seconds
        """
        self.model = model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL)).rstrip("/")
        self.embedding_model = embedding_model or get_embedding_model("openai")
        self.timeout = timeout
        if not self.api_key:
            raise ProviderError("OPENAI_API_KEY is not set")
        logger.info(f"🤖 Initializing OpenAICompatibleService: base_url={self.base_url}, model={model}")

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = requests.post(
            f"{self.base_url}{path}",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    async def generate_response(
        self, messages: list[dict] | str, options: dict[str, Any] | None = None
    ) -> str:
        """Generate a chat completion.

        Args:
            messages: Message dictionaries or a bare prompt string.
            options: Generation parameters passed through as request fields.

        Returns:
            str: The generated response content.

        Raises:
            SynthesisFailure: If the request fails or the reply has no content.
        """
        payload: dict[str, Any] = {"model": self.model, "messages": as_messages(messages)}
        payload.update(options or {})
        logger.info(f"🗣️  Generating response with {self.model}")

        try:
            data = self._post("/chat/completions", payload)
            content = data["choices"][0]["message"]["content"] or ""
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.error(f"❌ Chat completion error: {e}", exc_info=True)
            raise SynthesisFailure(f"Chat completion failed: {e}") from e

        logger.info(f"✅ Response generated: {len(content)} characters")
        return content

    def _embeddings(self, texts: list[str]) -> list[list[float]]:
        data = self._post("/embeddings", {"model": self.embedding_model, "input": texts})
        rows = sorted(data["data"], key=lambda row: row.get("index", 0))
        return [list(row["embedding"]) for row in rows]

    def embed(self, text: str) -> list[float]:
        try:
            return self._embeddings([text])[0]
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.error(f"❌ Embedding request failed: {e}")
            raise EmbeddingFailure(f"Embedding request failed: {e}") from e

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            embeddings = self._embeddings(texts)
            if len(embeddings) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(embeddings)}")
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.warning(f"⚠️ Batch embedding failed, embedding one by one: {e}")
            embeddings = self.embed_sequentially(texts)
        logger.info(f"✅ Generated {len(embeddings)} embeddings with {self.embedding_model}")
        return embeddings

    def dimension(self) -> int:
        return OPENAI_EMBEDDING_DIMENSIONS.get(self.embedding_model, get_embedding_dimensions())
