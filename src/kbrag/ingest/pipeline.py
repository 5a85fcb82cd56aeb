"""Ingestion pipeline: fetch, normalize, extract, chunk, embed and store.

Single-page ingestion raises on failure. Full-site ingestion crawls
breadth-first, records per-page failures and keeps going.
"""

import logging
import time
from collections.abc import Callable

from kbrag.config import RAGConfig
from kbrag.constants import (
    DOCUMENT_EMBEDDING_CHARS,
    MAX_CONTENT_CHARS,
    MIN_PAGE_CONTENT_CHARS,
    MIN_SITE_PAGE_CONTENT_CHARS,
    MIN_TEXT_CONTENT_CHARS,
    QA_DEFAULT_SOURCE,
    QA_TITLE_PREFIX,
)
from kbrag.errors import (
    ContentTooShort,
    DuplicateRejected,
    EmbeddingFailure,
    FetchFailure,
    KnowledgeEngineError,
)
from kbrag.ingest.chunker import TextChunker
from kbrag.ingest.crawler import CrawlFrontier, is_link_in_scope
from kbrag.ingest.encoding import EncodingNormalizer
from kbrag.ingest.extractor import HtmlTextExtractor, extract_links
from kbrag.ingest.fetcher import ContentFetcher
from kbrag.llm.base import EmbeddingProvider
from kbrag.models import (
    FetchError,
    IndexingStatus,
    IngestResult,
    KnowledgeChunk,
    KnowledgeDocument,
    TrainingMode,
    VectorRecord,
    utc_now,
)
from kbrag.service.database.repository import DocumentRepository
from kbrag.service.database.utils import new_id, vector_id_for
from kbrag.service.database.vector_store import VectorStore
from kbrag.text import host_of

logger = logging.getLogger(__name__)

StopPredicate = Callable[[], bool]
ProgressCallback = Callable[[int, str], None]  # (percent 0-100, url)


def content_quality(length: int) -> str:
    """Coarse quality label from content length."""
    if length < 500:
        return "low"
    if length < 2000:
        return "medium"
    if length < 5000:
        return "high"
    return "excellent"


class IngestionPipeline:
    """Orchestrates ingestion of URLs, free text and Q&A pairs.

    Args:
        repository: Document and chunk storage
        vector_store: Vector storage
        embedder: Embedding provider
        config: Engine configuration (chunk size, crawl limits)
        fetcher: Content fetcher (defaults to the three-strategy chain)
        sleep: Delay function between crawled pages
    """

    def __init__(
        self,
        repository: DocumentRepository,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        config: RAGConfig | None = None,
        fetcher: ContentFetcher | None = None,
        extractor: HtmlTextExtractor | None = None,
        normalizer: EncodingNormalizer | None = None,
        chunker: TextChunker | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repository = repository
        self.vector_store = vector_store
        self.embedder = embedder
        self.config = config or RAGConfig()
        self.fetcher = fetcher or ContentFetcher()
        self.extractor = extractor or HtmlTextExtractor()
        self.normalizer = normalizer or EncodingNormalizer()
        self.chunker = chunker or TextChunker(self.config.chunk_size, self.config.chunk_overlap)
        self.sleep = sleep

    # =========================================================================
    # URL ingestion
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
        """Ingest a single page or crawl a site.

        Args:
            url: Start URL
            single_page: Only ingest this page (no crawling)
            scope_url: URL whose host and path bound the crawl (defaults to url)
            max_depth: Link depth limit for crawling
            max_pages: Page limit for crawling
            category: Category stored on created documents
            should_stop: Polled before each page; returning True stops the crawl
            progress: Called after each page with (percent done, url)
            crawl_sibling: Allow sibling paths of the scope path

        Returns:
            IngestResult: Pages ingested, documents and recorded failures

        Raises:
            FetchFailure, ContentTooShort, DuplicateRejected: single-page failures
        """
        if single_page:
            document = self._ingest_single_page(url, category or "imported")
            return IngestResult(success=True, pages_ingested=1, documents=[document])

        return self._crawl_site(
            start_url=url,
            scope_url=scope_url or url,
            max_depth=self.config.max_depth if max_depth is None else max_depth,
            max_pages=max_pages or self.config.max_pages,
            category=category or "full_site",
            should_stop=should_stop,
            progress=progress,
            crawl_sibling=crawl_sibling,
        )

    def _fetch_html(self, url: str) -> tuple[str, str]:
        page = self.fetcher.fetch(url)
        if isinstance(page, FetchError):
            raise FetchFailure(url, page.attempts)
        return self.normalizer.normalize(page.content, page.charset), page.final_url

    def _ingest_single_page(self, url: str, category: str) -> KnowledgeDocument:
        logger.info(f"🌐 Ingesting single page {url}")
        html_text, final_url = self._fetch_html(url)
        return self._store_page(
            url, html_text, final_url, category, TrainingMode.SINGLE, MIN_PAGE_CONTENT_CHARS
        )

    def _crawl_site(
        self,
        start_url: str,
        scope_url: str,
        max_depth: int,
        max_pages: int,
        category: str,
        should_stop: StopPredicate | None,
        progress: ProgressCallback | None,
        crawl_sibling: bool,
    ) -> IngestResult:
        logger.info(
            f"🌐 Crawling {start_url} (scope={scope_url}, max_depth={max_depth}, max_pages={max_pages})"
        )
        result = IngestResult(success=False)
        frontier = CrawlFrontier(start_url, max_pages)

        while frontier:
            if should_stop and should_stop():
                logger.info("⚠️ Crawl stopped on request")
                result.stopped = True
                break

            page_url, depth = frontier.pop()
            fetched = self._crawl_page(page_url, category, result)

            if fetched is not None and depth < max_depth:
                html_text, final_url = fetched
                for link in extract_links(html_text, final_url):
                    if is_link_in_scope(link, scope_url, crawl_sibling):
                        frontier.push(link, depth + 1)

            if progress:
                progress(frontier.percent_done(), page_url)
            if frontier and self.config.crawl_delay > 0:
                self.sleep(self.config.crawl_delay)

        result.success = result.pages_ingested > 0
        logger.info(
            f"✅ Crawl finished: {result.pages_ingested} pages ingested, "
            f"{len(result.failures)} failures"
        )
        return result

    def _crawl_page(self, page_url: str, category: str, result: IngestResult) -> tuple[str, str] | None:
        """Fetch and store one crawled page, recording failures on the result.

        Returns:
            (html_text, final_url) when the page was fetched, None otherwise
        """
        try:
            html_text, final_url = self._fetch_html(page_url)
        except FetchFailure as e:
            logger.warning(f"⚠️ Skipping {page_url}: {e}")
            result.failures.append({"url": page_url, "error": str(e)})
            return None

        try:
            document = self._store_page(
                page_url, html_text, final_url, category,
                TrainingMode.FULL_SITE, MIN_SITE_PAGE_CONTENT_CHARS,
            )
            result.documents.append(document)
            result.pages_ingested += 1
        except KnowledgeEngineError as e:
            logger.warning(f"⚠️ Skipping {page_url}: {e}")
            result.failures.append({"url": page_url, "error": str(e)})
        return html_text, final_url

    def _store_page(
        self,
        url: str,
        html_text: str,
        final_url: str,
        category: str,
        mode: TrainingMode,
        min_chars: int,
    ) -> KnowledgeDocument:
        extracted = self.extractor.extract(html_text, final_url)
        content = self.normalizer.normalize(extracted.content)
        title = self.normalizer.normalize(extracted.title)

        if len(content) < min_chars:
            raise ContentTooShort(len(content), min_chars, url)
        content = content[:MAX_CONTENT_CHARS]

        existing = self.repository.find_by_source_url(url)
        if existing is not None:
            previous_mode = existing.metadata.get("training_mode", TrainingMode.SINGLE.value)
            if previous_mode == TrainingMode.SINGLE.value and mode is TrainingMode.SINGLE:
                raise DuplicateRejected(url, existing.Id)
            document = existing
            document.metadata["update_count"] = int(document.metadata.get("update_count", 0)) + 1
            logger.info(f"🔧 Updating existing document {document.Id} for {url}")
        else:
            document = KnowledgeDocument(source_url=url, category=category)
            document.metadata["update_count"] = 0

        document.title = title
        document.content = content
        document.source = host_of(url) or url
        document.language = extracted.metadata.get("language", document.language)
        document.author = extracted.metadata.get("author", document.author)
        document.metadata.update({
            "training_mode": mode.value,
            "training_method": f"url_{mode.value}",
            "content_quality": content_quality(len(content)),
            "content_length": len(content),
            "last_updated_at": utc_now(),
            "page": {k: v for k, v in extracted.metadata.items() if k != "extracted_at"},
        })
        return self._save_and_index(document)

    # =========================================================================
    # Manual content
    # =========================================================================

    def ingest_text(
        self,
        title: str,
        content: str,
        category: str | None = None,
        source: str | None = None,
        author: str | None = None,
        language: str | None = None,
    ) -> KnowledgeDocument:
        """Store manually authored text.

        A manual document with the same title is updated in place.

        Args:
            title: Document title (the identity of manual documents)
            content: Free text
            category: Category (default "manual")
            source: Free-text source label
            author: Author name
            language: Language code

        Returns:
            KnowledgeDocument: The stored document

        Raises:
            ContentTooShort: If the cleaned content is under the minimum length
        """
        content = self.normalizer.normalize(content).strip()[:MAX_CONTENT_CHARS]
        title = self.normalizer.normalize(title).strip()
        if len(content) < MIN_TEXT_CONTENT_CHARS:
            raise ContentTooShort(len(content), MIN_TEXT_CONTENT_CHARS, title)

        document = self._manual_document(title, category or "manual", "manual_text")
        document.content = content
        document.source = source or document.source or "manual"
        document.author = author or document.author
        document.language = language or document.language
        document.metadata["content_quality"] = content_quality(len(content))
        document.metadata["content_length"] = len(content)
        logger.info(f"📄 Ingesting text {title!r} ({len(content)} characters)")
        return self._save_and_index(document)

    def ingest_qa(
        self,
        question: str,
        answer: str,
        category: str | None = None,
        source: str | None = None,
        author: str | None = None,
        language: str | None = None,
    ) -> KnowledgeDocument:
        """Store a question/answer pair as a new manual document.

        Every call creates a document, even when the question was trained before.

        Args:
            question: Question text
            answer: Answer text
            category: Category (default "qa")
            source: Free-text source label
            author: Author name
            language: Language code

        Returns:
            KnowledgeDocument: The stored document
        """
        question = self.normalizer.normalize(question).strip()
        answer = self.normalizer.normalize(answer).strip()
        if not question or not answer:
            raise ContentTooShort(0, 1, "question/answer")

        content = f"**SUAL:** {question}\n\n**CAVAB:** {answer}"
        document = KnowledgeDocument(
            title=f"{QA_TITLE_PREFIX}{question[:80]}",
            content=content,
            source=source or QA_DEFAULT_SOURCE,
            category=category or "qa",
            author=author,
            language=language or "az",
        )
        document.metadata.update({
            "training_method": "qa_training",
            "question": question,
            "answer": answer,
            "content_type": "qa_pair",
            "content_quality": content_quality(len(content)),
            "update_count": 0,
            "last_updated_at": utc_now(),
        })
        logger.info(f"📄 Ingesting Q&A {document.title!r}")
        return self._save_and_index(document, embedding_text=f"{question}\n{answer}")

    def _manual_document(self, title: str, category: str, method: str) -> KnowledgeDocument:
        document = self.repository.find_manual_by_title(title)
        if document is None:
            document = KnowledgeDocument(title=title, category=category)
            document.metadata["update_count"] = 0
        else:
            document.category = category
            document.metadata["update_count"] = int(document.metadata.get("update_count", 0)) + 1
        document.metadata["training_method"] = method
        document.metadata["last_updated_at"] = utc_now()
        return document

    # =========================================================================
    # Indexing
    # =========================================================================

    def _save_and_index(
        self, document: KnowledgeDocument, embedding_text: str | None = None
    ) -> KnowledgeDocument:
        text = embedding_text or f"{document.title}\n{document.content}"
        try:
            document.embedding = self.embedder.embed(text[:DOCUMENT_EMBEDDING_CHARS])
        except EmbeddingFailure as e:
            logger.warning(f"⚠️ Document embedding failed for {document.title!r}: {e}")
            document.embedding = []

        document.indexing_status = IndexingStatus.NOT_INDEXED.value
        self.repository.save_document(document)
        return self.index_document(document)

    def index_document(self, document: KnowledgeDocument) -> KnowledgeDocument:
        """(Re)build the chunks and vectors of a stored document.

        Old chunks and vectors are removed first, so re-indexing replaces
        rather than appends. An embedding failure leaves the document and its
        chunks stored with status "failed".

        Args:
            document: Stored document (must have an Id)

        Returns:
            KnowledgeDocument: The document with updated indexing status
        """
        document.indexing_status = IndexingStatus.INDEXING.value
        self.repository.save_document(document)

        self.vector_store.delete_by_document(document.Id)
        self.repository.delete_chunks(document.Id)

        pieces = self.chunker.chunk(document.content, self.config.chunk_size, self.config.chunk_overlap)
        chunks = [
            KnowledgeChunk(
                Id=new_id("chunk"),
                document_id=document.Id,
                content=piece,
                chunk_index=i,
                char_count=len(piece),
            )
            for i, piece in enumerate(pieces)
        ]
        self.repository.save_chunks(chunks)

        try:
            vectors = self.embedder.embed_batch(pieces) if pieces else []
        except EmbeddingFailure as e:
            logger.warning(f"⚠️ Indexing failed for {document.Id}, stored without vectors: {e}")
            return self._finish(document, IndexingStatus.FAILED, len(chunks), str(e))

        records = []
        for chunk, vector in zip(chunks, vectors):
            chunk.vector_id = vector_id_for(document.Id, chunk.Id)
            records.append(VectorRecord(
                Id=chunk.vector_id,
                embedding=vector,
                document_id=document.Id,
                metadata={
                    "knowledge_base_id": document.Id,
                    "chunk_id": chunk.Id,
                    "chunk_index": chunk.chunk_index,
                    "title": document.title,
                    "category": document.category,
                    "source_url": document.source_url,
                    "char_count": chunk.char_count,
                },
            ))

        if not self.vector_store.upsert(records):
            return self._finish(document, IndexingStatus.FAILED, len(chunks), "vector upsert failed")

        self.repository.save_chunks(chunks)
        logger.info(f"✅ Indexed {document.Id}: {len(chunks)} chunks")
        return self._finish(document, IndexingStatus.COMPLETED, len(chunks))

    def _finish(
        self, document: KnowledgeDocument, status: IndexingStatus, chunks_count: int, error: str | None = None
    ) -> KnowledgeDocument:
        document.indexing_status = status.value
        document.chunks_count = chunks_count
        if error:
            document.metadata["indexing_error"] = error
        else:
            document.metadata.pop("indexing_error", None)
            document.last_indexed_at = utc_now()
        return self.repository.save_document(document)

    def reindex_document(self, document_id: str) -> KnowledgeDocument | None:
        """Re-run indexing for a stored document, e.g. after a failed run."""
        document = self.repository.get_document(document_id)
        if document is None:
            return None
        return self.index_document(document)

    def delete_document(self, document_id: str) -> bool:
        """Delete a document with its chunks and vectors."""
        self.vector_store.delete_by_document(document_id)
        deleted = self.repository.delete_document(document_id)
        if deleted:
            logger.info(f"🗑️ Deleted document {document_id}")
        return deleted
