"""Ollama chat and embedding provider."""

import logging
from typing import Any

import ollama

from kbrag.constants import get_embedding_dimensions, get_embedding_model
from kbrag.errors import EmbeddingFailure, SynthesisFailure
from kbrag.llm.base import BatchFallbackMixin, as_messages

logger = logging.getLogger(__name__)


def _to_ollama_options(options: dict[str, Any] | None) -> dict[str, Any]:
    """Map generic generation parameters onto Ollama option names."""
    if not options:
        return {}
    mapped: dict[str, Any] = {}
    for key, value in options.items():
        if key == "max_tokens":
            mapped["num_predict"] = value
        else:
            mapped[key] = value
    return mapped


class OllamaService(BatchFallbackMixin):
    """Ollama service implementation.

    Uses a local Ollama server for both chat completion and embeddings.
    Embedding batches use Ollama's native list input and fall back to one
    request per text if the batch request fails.
    """

    def __init__(self, host: str, model: str, embedding_model: str | None = None) -> None:
        """Initialize the Ollama service.

        Args:
            host: The Ollama server host URL (e.g., "http://localhost:11434")
            model: The chat model name to use (e.g., "llama3")
            embedding_model: Embedding model name (defaults to EMBEDDING_MODEL env
                or the Ollama default)
        """
        self.host = host
        self.model = model
        self.embedding_model = embedding_model or get_embedding_model("ollama")
        self._dimension: int | None = None
        logger.info(
            f"🤖 Initializing OllamaService: host={host}, model={model}, "
            f"embedding_model={self.embedding_model}"
        )
        self.client = ollama.Client(host=host)

    async def generate_response(
        self, messages: list[dict] | str, options: dict[str, Any] | None = None
    ) -> str:
        """Generate a response using Ollama.

        Args:
            messages: Message dictionaries or a bare prompt string.
            options: Generation parameters (max_tokens is sent as num_predict).

        Returns:
            str: The generated response content from the model.

        Raises:
            SynthesisFailure: If the Ollama API call fails.
        """
        chat_messages = as_messages(messages)
        logger.info(f"🗣️  Generating response with {self.model}")
        logger.debug(f"Messages: {len(chat_messages)} messages")

        try:
            chat_kwargs: dict[str, Any] = {"model": self.model, "messages": chat_messages}
            ollama_options = _to_ollama_options(options)
            if ollama_options:
                chat_kwargs["options"] = ollama_options

            response = self.client.chat(**chat_kwargs)
            content = response.message.content or ""
            logger.info(f"✅ Response generated: {len(content)} characters")
            return content

        except Exception as e:
            logger.error(f"❌ Ollama API error: {e}", exc_info=True)
            raise SynthesisFailure(f"Ollama chat failed: {e}") from e

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embed(model=self.embedding_model, input=text)
        except Exception as e:
            logger.error(f"❌ Ollama embedding error: {e}")
            raise EmbeddingFailure(f"Ollama embedding failed: {e}") from e
        vector = list(response["embeddings"][0])
        self._dimension = len(vector)
        return vector

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts in one Ollama request.

        Args:
            texts: List of text strings to embed

        Returns:
            list[list[float]]: List of embedding vectors
        """
        if not texts:
            return []
        try:
            response = self.client.embed(model=self.embedding_model, input=texts)
            embeddings = [list(vector) for vector in response["embeddings"]]
            if len(embeddings) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(embeddings)}")
        except Exception as e:
            logger.warning(f"⚠️ Ollama batch embedding failed, embedding one by one: {e}")
            embeddings = self.embed_sequentially(texts)

        if embeddings:
            self._dimension = len(embeddings[0])
        logger.info(f"✅ Generated {len(embeddings)} embeddings with {self.embedding_model}")
        return embeddings

    def dimension(self) -> int:
        return self._dimension or get_embedding_dimensions()
