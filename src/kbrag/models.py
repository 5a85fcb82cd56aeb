"""Data models shared by ingestion, storage and retrieval.

Persisted entities (KnowledgeDocument, KnowledgeChunk, VectorRecord) are
plain dataclasses with an ``Id`` field so they can be stored directly in a
RavenDB session. Everything else is transient and never persisted.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class IndexingStatus(str, Enum):
    """Lifecycle of a document's chunk/vector index."""

    NOT_INDEXED = "not_indexed"
    INDEXING = "indexing"
    COMPLETED = "completed"
    FAILED = "failed"


class TrainingMode(str, Enum):
    """How a URL document was trained."""

    SINGLE = "single"
    FULL_SITE = "full_site"


# =============================================================================
# Persisted entities
# =============================================================================


@dataclass(eq=False)
class KnowledgeDocument:
    """A knowledge-base entry.

    A document with ``source_url`` is re-ingestable and updated in place on
    re-ingestion. A document without one was authored manually (Q&A, free
    text) and is keyed by title instead.

    Note: eq=False keeps instances hashable by identity, which RavenDB's
    session entity tracking requires.

    Attributes:
        Id: Document ID
        title: Display title
        content: Cleaned, control-character-free text
        source: Free-text source label
        source_url: Original URL, if any
        category: e.g. "qa", "imported", "full_site", "manual"
        language: Language code
        author: Author, if known
        metadata: Open key/value map (training_mode, content_quality, update_count, ...)
        embedding: Whole-document vector
        indexing_status: One of IndexingStatus values
        chunks_count: Number of chunks currently indexed
    """

    Id: str | None = None
    title: str = ""
    content: str = ""
    source: str = ""
    source_url: str | None = None
    category: str = "imported"
    language: str = "az"
    author: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    embedding: list[float] = field(default_factory=list)
    indexing_status: str = IndexingStatus.NOT_INDEXED.value
    chunks_count: int = 0
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)
    last_indexed_at: str | None = None

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)

    def to_source(self, score: float = 0.0) -> dict[str, Any]:
        """Build the attribution entry returned alongside answers."""
        return {
            "id": self.Id,
            "title": self.title,
            "source_url": self.source_url,
            "category": self.category,
            "relevance_score": round(float(score), 4),
        }

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_embedding:
            data.pop("embedding", None)
        return data


@dataclass(eq=False)
class KnowledgeChunk:
    """A bounded span of a document, the unit of vector indexing.

    Attributes:
        Id: Chunk ID
        document_id: Owning KnowledgeDocument ID
        content: Sentence-trimmed chunk text
        chunk_index: 0-based position within the document
        char_count: Length of content
        vector_id: ID of the matching VectorRecord
    """

    Id: str | None = None
    document_id: str = ""
    content: str = ""
    chunk_index: int = 0
    char_count: int = 0
    vector_id: str | None = None

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)


@dataclass(eq=False)
class VectorRecord:
    """A vector row with its metadata, as held by a vector store."""

    Id: str
    embedding: list[float] = field(default_factory=list)
    document_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __hash__(self) -> int:
        """Hash by object identity for RavenDB session tracking."""
        return id(self)


# =============================================================================
# Transient results
# =============================================================================


@dataclass
class VectorMatch:
    """One ranked vector-store hit."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FetchedPage:
    """Raw content retrieved for a URL."""

    url: str
    final_url: str
    content: bytes
    status_code: int = 200
    content_type: str | None = None
    charset: str | None = None
    strategy: str = ""


@dataclass
class FetchError:
    """Typed failure returned when every fetch strategy failed."""

    url: str
    attempts: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "; ".join(self.attempts) if self.attempts else "no strategy succeeded"


@dataclass
class ExtractedContent:
    """Clean prose and metadata extracted from an HTML page."""

    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IngestResult:
    """Outcome of an ingest_url call."""

    success: bool
    pages_ingested: int = 0
    documents: list[KnowledgeDocument] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)
    stopped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "pages_ingested": self.pages_ingested,
            "documents": [
                {"id": d.Id, "title": d.title, "source_url": d.source_url} for d in self.documents
            ],
            "failures": self.failures,
            "stopped": self.stopped,
        }


@dataclass
class ContinueFrom:
    """Resume point for "continue reading" requests."""

    document_id: str
    after_index: int


@dataclass
class QueryOptions:
    """Per-query overrides for answer_query.

    None means "use the engine configuration".
    """

    top_k: int | None = None
    min_score: float | None = None
    allowed_hosts: list[str] | None = None
    restrict_to_document_id: str | None = None
    continue_from: ContinueFrom | None = None
    output_mode: str | None = None

    def cache_key_parts(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("continue_from", None)
        return data


@dataclass
class RetrievedChunk:
    """A resolved chunk with the document it belongs to and its score."""

    chunk: KnowledgeChunk
    document: KnowledgeDocument
    score: float


@dataclass
class RetrievalResult:
    """Context assembled for answer synthesis."""

    chunks: list[RetrievedChunk]
    context: str
    sources: list[dict[str, Any]]
    used_indices_by_document: dict[str, list[int]] = field(default_factory=dict)
    dominant_document_id: str | None = None
    top_score: float = 0.0
    lexical: bool = False
    anchor_excerpt: str = ""


@dataclass
class RetrievalEmpty:
    """Nothing survived any retrieval fallback."""

    reason: str = "no_results"


@dataclass
class QueryAnswer:
    """Final answer with attribution and diagnostics."""

    answer: str
    sources: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"answer": self.answer, "sources": self.sources, "metadata": self.metadata}
