"""Google Gemini chat and embedding provider."""

import logging
from typing import Any

from google import genai

from kbrag.constants import get_embedding_dimensions, get_embedding_model
from kbrag.errors import EmbeddingFailure, SynthesisFailure
from kbrag.llm.base import BatchFallbackMixin, as_messages

logger = logging.getLogger(__name__)


class GeminiService(BatchFallbackMixin):
    """Google Gemini service implementation.

    The API key is automatically retrieved from the GEMINI_API_KEY environment
    variable. Gemini embeddings are requested one text at a time, so batches
    go through the sequential fallback.
    """

    def __init__(self, model: str, embedding_model: str | None = None) -> None:
        """Initialize the Gemini service.

        Args:
            model: The model name to use (e.g., "gemini-2.5-flash")
            embedding_model: Embedding model name (defaults to EMBEDDING_MODEL env
                or the Gemini default)
        """
        self.model = model
        self.embedding_model = embedding_model or get_embedding_model("gemini")
        self._dimension: int | None = None
        logger.info(f"🤖 Initializing GeminiService: model={model}")
        # The client gets the API key from the GEMINI_API_KEY environment variable
        self.client = genai.Client()

    async def generate_response(
        self, messages: list[dict] | str, options: dict[str, Any] | None = None
    ) -> str:
        """Generate a response using Gemini.

        Args:
            messages: Message dictionaries or a bare prompt string. Gemini takes
                     plain contents, so message bodies are joined with newlines.
            options: Generation parameters (temperature, max_tokens, penalties).

        Returns:
            str: The generated response content from the model.

        Raises:
            SynthesisFailure: If the Gemini API call fails.
        """
        chat_messages = as_messages(messages)
        logger.info(f"🗣️  Generating response with {self.model}")

        try:
            contents = "\n".join([msg.get("content", "") for msg in chat_messages])
            generate_kwargs: dict[str, Any] = {"model": self.model, "contents": contents}

            if options:
                generate_kwargs["config"] = genai.types.GenerateContentConfig(
                    temperature=options.get("temperature"),
                    max_output_tokens=options.get("max_tokens"),
                    frequency_penalty=options.get("frequency_penalty"),
                    presence_penalty=options.get("presence_penalty"),
                )

            response = self.client.models.generate_content(**generate_kwargs)
            content = response.text or ""
            logger.info(f"✅ Response generated: {len(content)} characters")
            return content
        except Exception as e:
            logger.error(f"❌ Gemini API error: {e}", exc_info=True)
            raise SynthesisFailure(f"Gemini chat failed: {e}") from e

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.models.embed_content(model=self.embedding_model, contents=[text])
        except Exception as e:
            logger.error(f"❌ Gemini embedding error for text: {e}", exc_info=True)
            raise EmbeddingFailure(f"Gemini embedding failed: {e}") from e
        vector = list(response.embeddings[0].values)
        self._dimension = len(vector)
        return vector

    def dimension(self) -> int:
        return self._dimension or get_embedding_dimensions()
