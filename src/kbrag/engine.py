"""KnowledgeEngine: the facade the CLI and web app talk to.

It wires the ingestion pipeline and the query service to one repository,
one vector store and the configured providers.
"""

import logging
from typing import Any

from dotenv import load_dotenv

from kbrag.config import RAGConfig, VectorStoreKind, get_vector_store_kind
from kbrag.errors import StoreUnavailable
from kbrag.ingest.pipeline import IngestionPipeline, ProgressCallback, StopPredicate
from kbrag.llm.base import ChatProvider, EmbeddingProvider
from kbrag.llm.factory import get_embedding_provider, get_llm_service
from kbrag.models import ContinueFrom, IngestResult, KnowledgeDocument, QueryAnswer, QueryOptions
from kbrag.query.intent import Intent, QueryIntentClassifier
from kbrag.query.retrieval import RetrievalEngine
from kbrag.query.service import QueryService
from kbrag.query.synthesis import AnswerSynthesizer
from kbrag.service.database.operations import create_document_store, ensure_index_exists
from kbrag.service.database.repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
    RavenDBDocumentRepository,
)
from kbrag.service.database.vector_store import (
    InMemoryVectorStore,
    RavenDBVectorStore,
    VectorStore,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class KnowledgeEngine:
    """Ingestion and question answering over one knowledge base.

    Args:
        repository: Document and chunk storage
        vector_store: Vector storage
        embedder: Embedding provider (shared by ingestion and retrieval)
        chat: Optional chat provider for model-based answers and intent fallback
        config: Engine configuration
    """

    def __init__(
        self,
        repository: DocumentRepository,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        chat: ChatProvider | None = None,
        config: RAGConfig | None = None,
        pipeline: IngestionPipeline | None = None,
    ) -> None:
        self.config = config or RAGConfig()
        self.repository = repository
        self.vector_store = vector_store
        self.embedder = embedder
        self.chat = chat
        self.pipeline = pipeline or IngestionPipeline(repository, vector_store, embedder, self.config)
        self.classifier = QueryIntentClassifier(self.config, chat)
        self.retrieval = RetrievalEngine(repository, vector_store, embedder, self.config)
        self.queries = QueryService(
            retrieval=self.retrieval,
            synthesizer=AnswerSynthesizer(repository, chat, self.config),
            classifier=self.classifier,
            config=self.config,
        )

    @classmethod
    def from_env(cls, config: RAGConfig | None = None, with_chat: bool = True) -> "KnowledgeEngine":
        """Build an engine from environment variables.

        VECTOR_STORE selects RavenDB (default) or the in-memory backend;
        providers come from LLM_SERVICE / EMBEDDING_SERVICE.

        Args:
            config: Engine configuration (default: RAGConfig.from_env())
            with_chat: Create a chat provider as well as the embedder

        Returns:
            KnowledgeEngine: Ready-to-use engine
        """
        config = config or RAGConfig.from_env()
        embedder = get_embedding_provider()
        chat = get_llm_service() if with_chat else None

        kind = get_vector_store_kind()
        if kind is VectorStoreKind.MEMORY:
            logger.info("🔧 Using in-memory storage")
            repository, vector_store = InMemoryDocumentRepository(), InMemoryVectorStore()
        else:
            store = create_document_store()
            ensure_index_exists(store)
            repository, vector_store = RavenDBDocumentRepository(store), RavenDBVectorStore(store)
            logger.info("🔧 Using RavenDB storage")

        return cls(repository, vector_store, embedder, chat, config)

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest_url(
        self,
        url: str,
        single_page: bool = True,
        scope_url: str | None = None,
        max_depth: int | None = None,
        max_pages: int | None = None,
        category: str | None = None,
        should_stop: StopPredicate | None = None,
        progress: ProgressCallback | None = None,
        crawl_sibling: bool = False,
    ) -> IngestResult:
        """Ingest one page or crawl a site. See IngestionPipeline.ingest_url."""
        result = self.pipeline.ingest_url(
            url,
            single_page=single_page,
            scope_url=scope_url,
            max_depth=max_depth,
            max_pages=max_pages,
            category=category,
            should_stop=should_stop,
            progress=progress,
            crawl_sibling=crawl_sibling,
        )
        self.queries.cache.clear()
        return result

    def ingest_text(
        self,
        title: str,
        content: str,
        category: str | None = None,
        source: str | None = None,
        author: str | None = None,
        language: str | None = None,
    ) -> KnowledgeDocument:
        document = self.pipeline.ingest_text(title, content, category, source, author, language)
        self.queries.cache.clear()
        return document

    def ingest_qa(
        self,
        question: str,
        answer: str,
        category: str | None = None,
        source: str | None = None,
        author: str | None = None,
        language: str | None = None,
    ) -> KnowledgeDocument:
        document = self.pipeline.ingest_qa(question, answer, category, source, author, language)
        self.queries.cache.clear()
        return document

    def reindex_document(self, document_id: str) -> KnowledgeDocument | None:
        document = self.pipeline.reindex_document(document_id)
        self.queries.cache.clear()
        return document

    def delete_document(self, document_id: str) -> bool:
        deleted = self.pipeline.delete_document(document_id)
        self.queries.cache.clear()
        return deleted

    # =========================================================================
    # Query
    # =========================================================================

    async def answer_query(
        self,
        question: str,
        top_k: int | None = None,
        min_score: float | None = None,
        allowed_hosts: list[str] | None = None,
        restrict_to_document_id: str | None = None,
        continue_from: ContinueFrom | tuple[str, int] | None = None,
        output_mode: str | None = None,
    ) -> QueryAnswer:
        """Answer a question from the knowledge base.

        Args:
            question: User question
            top_k: Number of vector matches to consider
            min_score: Score threshold (relaxed when it would empty the results)
            allowed_hosts: Only use documents whose source URL host is listed
            restrict_to_document_id: Prefer chunks of this document
            continue_from: (document_id, after_index) to keep reading a document
            output_mode: extractive, constrained or generative

        Returns:
            QueryAnswer: Answer, sources and metadata
        """
        if isinstance(continue_from, tuple):
            continue_from = ContinueFrom(*continue_from)
        options = QueryOptions(
            top_k=top_k,
            min_score=min_score,
            allowed_hosts=allowed_hosts,
            restrict_to_document_id=restrict_to_document_id,
            continue_from=continue_from,
            output_mode=output_mode,
        )
        return await self.queries.answer_query(question, options)

    async def classify_intent(self, text: str) -> Intent:
        return await self.classifier.classify(text)

    def health(self) -> dict[str, Any]:
        """Report store status.

        Raises:
            StoreUnavailable: If the vector store cannot be reached
        """
        try:
            store = self.vector_store.health_check()
        except StoreUnavailable:
            logger.error("❌ Vector store health check failed")
            raise
        return {
            "status": "healthy",
            "vector_store": store,
            "documents": self.repository.count_documents(),
            "chat": self.chat is not None,
        }
