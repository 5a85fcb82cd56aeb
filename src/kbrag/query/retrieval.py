"""Retrieval: vector search with lexical fallback, filtering and context assembly."""

import logging
from collections import Counter, defaultdict

from kbrag.config import RAGConfig, normalize_host
from kbrag.constants import (
    CONTEXT_SEPARATOR,
    CONTINUATION_MAX_CHUNKS,
    FALLBACK_CHUNK_LIMIT,
    INTRO_CHUNK_LIMIT,
    LEXICAL_KEYWORD_COUNT,
    WIDE_EXTRACT_SCAN_LIMIT,
    WIDE_EXTRACT_TOP_CHUNKS,
)
from kbrag.errors import EmbeddingFailure
from kbrag.llm.base import EmbeddingProvider
from kbrag.models import (
    KnowledgeChunk,
    QueryOptions,
    RetrievalEmpty,
    RetrievalResult,
    RetrievedChunk,
    VectorMatch,
)
from kbrag.service.database.repository import DocumentRepository
from kbrag.service.database.vector_store import VectorStore
from kbrag.text import (
    contains_any,
    ends_with_sentence_terminator,
    extract_keywords,
    host_of,
    smart_trim_to_sentence,
)

logger = logging.getLogger(__name__)


def _document_id(match: VectorMatch) -> str | None:
    return match.metadata.get("knowledge_base_id")


def join_until(texts: list[str], limit: float) -> str:
    """Join non-empty texts with newlines, stopping once the buffer reaches limit."""
    buffer = ""
    for text in texts:
        text = text.strip()
        if not text:
            continue
        buffer = f"{buffer}\n{text}" if buffer else text
        if len(buffer) >= limit:
            break
    return buffer


class RetrievalEngine:
    """Find the chunks that answer a question and assemble them as context.

    Vector search runs first. When it yields nothing, a keyword search over
    chunk text takes over. Score thresholds relax rather than empty the
    result, and chunk IDs that no longer exist are resolved through their
    (document, chunk_index) position.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        config: RAGConfig | None = None,
    ) -> None:
        self.repository = repository
        self.vector_store = vector_store
        self.embedder = embedder
        self.config = config or RAGConfig()

    def keywords_for(self, question: str) -> list[str]:
        return extract_keywords(
            question,
            stopwords=self.config.stopwords,
            suffixes=self.config.keyword_suffixes,
            synonyms=self.config.keyword_synonyms,
        )

    def is_how_to(self, question: str) -> bool:
        return contains_any(question, self.config.how_to_cues)

    # =========================================================================
    # Search
    # =========================================================================

    def retrieve(self, question: str, options: QueryOptions | None = None) -> RetrievalResult | RetrievalEmpty:
        """Retrieve context for a question.

        Args:
            question: User question
            options: Per-query overrides (top_k, min_score, allowed_hosts, restriction)

        Returns:
            RetrievalResult with ordered chunks and sources, or RetrievalEmpty
        """
        options = options or QueryOptions()
        top_k = options.top_k or self.config.top_k
        min_score = self.config.min_score if options.min_score is None else options.min_score
        allowed_hosts = (
            self.config.allowed_hosts if options.allowed_hosts is None
            else [normalize_host(h) for h in options.allowed_hosts if h]
        )
        keywords = self.keywords_for(question)

        matches = self._vector_search(question, top_k)
        matches = self._restrict(matches, options.restrict_to_document_id)

        if not matches:
            logger.info("🔍 Vector search empty, trying keyword search")
            return self._lexical_fallback(question, keywords, top_k, allowed_hosts, options.restrict_to_document_id)

        if min_score > 0:
            above = [m for m in matches if m.score >= min_score]
            if above:
                matches = above
            else:
                logger.info(f"🔍 No match reached min_score={min_score}, keeping unfiltered results")

        if allowed_hosts:
            matches = [m for m in matches if host_of(m.metadata.get("source_url")) in allowed_hosts]
            if not matches:
                logger.info("🔍 Host allow-list removed every match")
                return RetrievalEmpty(reason="host_filter")

        retrieved = self._resolve(matches)
        if not retrieved:
            retrieved = self._fallback_document_chunks(matches)
        if not retrieved:
            return RetrievalEmpty(reason="unresolved")

        return self._assemble(question, retrieved)

    def _vector_search(self, question: str, top_k: int) -> list[VectorMatch]:
        try:
            vector = self.embedder.embed(question)
        except EmbeddingFailure as e:
            logger.warning(f"⚠️ Query embedding failed, skipping vector search: {e}")
            return []
        try:
            return self.vector_store.query(vector, top_k)
        except Exception as e:
            logger.warning(f"⚠️ Vector search failed: {e}")
            return []

    @staticmethod
    def _restrict(matches: list[VectorMatch], document_id: str | None) -> list[VectorMatch]:
        if not document_id:
            return matches
        restricted = [m for m in matches if _document_id(m) == document_id]
        if restricted:
            return restricted
        logger.info(f"🔍 Restriction to {document_id} emptied results, using all matches")
        return matches

    def _lexical_fallback(
        self,
        question: str,
        keywords: list[str],
        top_k: int,
        allowed_hosts: list[str],
        restrict_to: str | None,
    ) -> RetrievalResult | RetrievalEmpty:
        if not keywords:
            return RetrievalEmpty(reason="no_keywords")
        rows = self.repository.search_chunks(
            keywords[:LEXICAL_KEYWORD_COUNT], max(3, top_k), allowed_hosts or None
        )
        if restrict_to:
            restricted = [row for row in rows if row[1].Id == restrict_to]
            rows = restricted or rows
        if not rows:
            return RetrievalEmpty(reason="no_results")

        retrieved = [RetrievedChunk(chunk=chunk, document=document, score=0.0) for chunk, document in rows]
        dominant = Counter(r.document.Id for r in retrieved).most_common(1)[0][0]
        result = self._assemble(question, retrieved, dominant)
        result.lexical = True
        return result

    # =========================================================================
    # Resolution
    # =========================================================================

    def _resolve(self, matches: list[VectorMatch]) -> list[RetrievedChunk]:
        chunk_ids = [m.metadata.get("chunk_id") for m in matches if m.metadata.get("chunk_id")]
        chunks = self.repository.get_chunks(chunk_ids)
        by_position: dict[str, dict[int, KnowledgeChunk]] = {}

        resolved: list[tuple[KnowledgeChunk, float]] = []
        seen: set[str] = set()
        for match in matches:
            chunk = chunks.get(match.metadata.get("chunk_id") or "")
            if chunk is None:
                chunk = self._by_position(match, by_position)
            if chunk is None or chunk.Id in seen or not chunk.content:
                continue
            seen.add(chunk.Id)
            resolved.append((chunk, match.score))

        documents = self.repository.get_documents([c.document_id for c, _ in resolved])
        return [
            RetrievedChunk(chunk=chunk, document=documents[chunk.document_id], score=score)
            for chunk, score in resolved
            if chunk.document_id in documents
        ]

    def _by_position(
        self, match: VectorMatch, cache: dict[str, dict[int, KnowledgeChunk]]
    ) -> KnowledgeChunk | None:
        document_id = _document_id(match)
        index = match.metadata.get("chunk_index")
        if document_id is None or index is None:
            return None
        if document_id not in cache:
            cache[document_id] = {c.chunk_index: c for c in self.repository.list_chunks(document_id)}
        chunk = cache[document_id].get(int(index))
        if chunk is not None:
            logger.debug(f"🔧 Resolved stale chunk id via ({document_id}, {index})")
        return chunk

    def _fallback_document_chunks(self, matches: list[VectorMatch]) -> list[RetrievedChunk]:
        """First chunks of the best-scoring documents when no chunk could be resolved."""
        scores: dict[str, float] = defaultdict(float)
        for match in matches:
            if _document_id(match):
                scores[_document_id(match)] += match.score
        top = sorted(scores, key=scores.get, reverse=True)[: max(1, self.config.fallback_document_count)]
        documents = self.repository.get_documents(top)

        retrieved: list[RetrievedChunk] = []
        for document_id in sorted(documents):
            for chunk in self.repository.list_chunks(document_id):
                if len(retrieved) >= FALLBACK_CHUNK_LIMIT:
                    break
                if chunk.content:
                    retrieved.append(RetrievedChunk(chunk, documents[document_id], scores[document_id]))
        if retrieved:
            logger.info(f"🔧 Using leading chunks of {len(documents)} documents as fallback context")
        return retrieved

    # =========================================================================
    # Assembly
    # =========================================================================

    def _assemble(
        self, question: str, retrieved: list[RetrievedChunk], dominant: str | None = None
    ) -> RetrievalResult:
        context = CONTEXT_SEPARATOR.join(r.chunk.content for r in retrieved)

        sources: dict[str, dict] = {}
        used: dict[str, list[int]] = defaultdict(list)
        cumulative: dict[str, float] = defaultdict(float)
        for r in retrieved:
            document_id = r.document.Id
            if document_id not in sources:
                sources[document_id] = r.document.to_source(r.score)
            if r.chunk.chunk_index not in used[document_id]:
                used[document_id].append(r.chunk.chunk_index)
            cumulative[document_id] += r.score

        if dominant is None and cumulative:
            dominant = max(cumulative, key=cumulative.get)
        result = RetrievalResult(
            chunks=retrieved,
            context=context,
            sources=list(sources.values()),
            used_indices_by_document={k: sorted(v) for k, v in used.items()},
            dominant_document_id=dominant,
            top_score=max((r.score for r in retrieved), default=0.0),
        )

        if self.config.anchor_to_document_start and dominant and self.is_how_to(question):
            if self.config.summary_overview:
                result.anchor_excerpt = self.wide_extract(dominant, self.config.wide_extract_chars)
            else:
                result.anchor_excerpt = self.intro_excerpt(dominant, self.config.intro_max_chars)
            logger.info(f"🔍 Anchored to start of {dominant} ({len(result.anchor_excerpt)} characters)")

        logger.info(
            f"📄 Context built: {len(retrieved)} chunks, {len(context)} characters, "
            f"{len(result.sources)} sources"
        )
        return result

    # =========================================================================
    # Document reading
    # =========================================================================

    def continue_reading(
        self, document_id: str, after_index: int, max_chars: int | None = None
    ) -> tuple[str, list[KnowledgeChunk]]:
        """Read the chunks following ``after_index`` in order.

        Args:
            document_id: Document to continue
            after_index: Last chunk index already shown
            max_chars: Character budget (defaults to continuation_max_chars)

        Returns:
            tuple: (sentence-trimmed text, chunks read); no chunk has index <= after_index
        """
        max_chars = max_chars or self.config.continuation_max_chars
        following = [c for c in self.repository.list_chunks(document_id) if c.chunk_index > after_index]
        following = following[:CONTINUATION_MAX_CHUNKS]

        used: list[KnowledgeChunk] = []
        buffer = ""
        for chunk in following:
            text = chunk.content.strip()
            if not text:
                continue
            buffer = f"{buffer}\n{text}" if buffer else text
            used.append(chunk)
            if len(buffer) >= max_chars * 1.2:
                break
        return smart_trim_to_sentence(buffer, max_chars), used

    def intro_excerpt(self, document_id: str, max_chars: int) -> str:
        """Opening of a document, trimmed to a sentence boundary."""
        chunks = self.repository.list_chunks(document_id)[:INTRO_CHUNK_LIMIT]
        buffer = join_until([c.content for c in chunks], max_chars * 2)
        if not buffer:
            return ""
        excerpt = smart_trim_to_sentence(buffer, max_chars)
        if not ends_with_sentence_terminator(excerpt) and len(chunks) == INTRO_CHUNK_LIMIT:
            tail = self.repository.list_chunks(document_id)[INTRO_CHUNK_LIMIT:INTRO_CHUNK_LIMIT + 1]
            if tail:
                excerpt = smart_trim_to_sentence(f"{excerpt} {tail[0].content[:400]}", max_chars)
        return excerpt.strip()

    def wide_extract(self, document_id: str, max_chars: int) -> str:
        """Keyword-weighted excerpt spanning the whole document.

        Chunks are scored by the configured overview weights; the best ones
        are kept in document order and trimmed to a sentence boundary.
        """
        chunks = self.repository.list_chunks(document_id)[:WIDE_EXTRACT_SCAN_LIMIT]
        if not chunks:
            return ""

        def weight(chunk: KnowledgeChunk) -> int:
            text = chunk.content.lower()
            if not text:
                return -1
            return sum(w for term, w in self.config.overview_weights.items() if term in text)

        ranked = sorted(chunks, key=weight, reverse=True)[:WIDE_EXTRACT_TOP_CHUNKS]
        selected = sorted(ranked, key=lambda c: c.chunk_index)
        buffer = join_until([c.content for c in selected], max_chars * 1.2)
        return smart_trim_to_sentence(buffer, max_chars) if buffer else ""
