"""Base classes and protocols for embedding and chat providers."""

import logging
from typing import Any, Protocol

from kbrag.errors import EmbeddingFailure

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Protocol for services that turn text into fixed-dimension vectors.

    Implementations must return vectors of length ``dimension()`` and raise
    EmbeddingFailure when the backend call fails.
    """

    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed

        Returns:
            list[float]: Embedding vector
        """
        ...

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving input order.

        Args:
            texts: Texts to embed

        Returns:
            list[list[float]]: One vector per input text
        """
        ...

    def dimension(self) -> int:
        """Number of dimensions of the vectors this provider returns."""
        ...


class ChatProvider(Protocol):
    """Protocol for chat-completion services used by synthesis and intent fallback."""

    async def generate_response(
        self, messages: list[dict] | str, options: dict[str, Any] | None = None
    ) -> str:
        """Generate a response from the model.

        Args:
            messages: List of message dictionaries with 'role' and 'content' keys,
                     or a bare prompt string sent as a single user message.
                     Example: [{"role": "user", "content": "Hello"}]
            options: Generation parameters (temperature, max_tokens,
                     frequency_penalty, presence_penalty).

        Returns:
            str: The generated response content.
        """
        ...


def as_messages(messages: list[dict] | str) -> list[dict]:
    """Wrap a bare prompt as a single user message."""
    if isinstance(messages, str):
        return [{"role": "user", "content": messages}]
    return list(messages)


class BatchFallbackMixin:
    """Mixin giving providers without native batching a sequential embed_batch.

    Subclasses implement ``embed``; ``embed_batch`` calls it once per text.
    Providers with a native batch call override ``embed_batch`` and may use
    ``embed_sequentially`` when the batch request fails.
    """

    def embed(self, text: str) -> list[float]:
        raise NotImplementedError

    def embed_sequentially(self, texts: list[str]) -> list[list[float]]:
        embeddings = []
        for i, text in enumerate(texts):
            try:
                embeddings.append(self.embed(text))
            except EmbeddingFailure:
                raise
            except Exception as e:
                logger.error(f"❌ Embedding failed for text {i + 1}/{len(texts)}: {e}")
                raise EmbeddingFailure(str(e)) from e
        return embeddings

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        embeddings = self.embed_sequentially(texts)
        logger.info(f"✅ Generated {len(embeddings)} embeddings sequentially")
        return embeddings
