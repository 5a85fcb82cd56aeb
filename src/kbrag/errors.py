"""Exception taxonomy for ingestion and query failures."""


class KnowledgeEngineError(Exception):
    """Base class for all engine errors."""


class FetchFailure(KnowledgeEngineError):
    """Every transport strategy failed to retrieve a URL."""

    def __init__(self, url: str, attempts: list[str] | None = None) -> None:
        self.url = url
        self.attempts = attempts or []
        detail = "; ".join(self.attempts) if self.attempts else "no strategy succeeded"
        super().__init__(f"Failed to fetch {url}: {detail}")


class ContentTooShort(KnowledgeEngineError):
    """Cleaned content is below the minimum length for ingestion."""

    def __init__(self, length: int, minimum: int, source: str = "") -> None:
        self.length = length
        self.minimum = minimum
        self.source = source
        where = f" from {source}" if source else ""
        super().__init__(
            f"Content{where} is too short: {length} characters (minimum {minimum})"
        )


class DuplicateRejected(KnowledgeEngineError):
    """A single-page URL was re-submitted over an existing single-page entry."""

    def __init__(self, url: str, document_id: str | None = None) -> None:
        self.url = url
        self.document_id = document_id
        super().__init__(f"URL already trained as a single page: {url}")


class EmbeddingFailure(KnowledgeEngineError):
    """An embedding provider call failed."""


class SynthesisFailure(KnowledgeEngineError):
    """A language-model call needed to produce an answer failed."""


class StoreUnavailable(KnowledgeEngineError):
    """The vector store or document repository cannot be reached."""


class ProviderError(KnowledgeEngineError):
    """A provider could not be configured or returned an unusable response."""
