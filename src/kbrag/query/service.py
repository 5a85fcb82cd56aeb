"""Question answering: intent short-circuit, retrieval, synthesis and caching."""

import logging
import random
import time

from kbrag.config import OutputMode, RAGConfig
from kbrag.llm.base import ChatProvider
from kbrag.models import ContinueFrom, QueryAnswer, QueryOptions, RetrievalEmpty, RetrievalResult
from kbrag.query.cache import QueryCache, make_cache_key
from kbrag.query.intent import QueryIntentClassifier
from kbrag.query.retrieval import RetrievalEngine
from kbrag.query.synthesis import AnswerSynthesizer

logger = logging.getLogger(__name__)


class QueryService:
    """Answer user questions from the knowledge base.

    Args:
        retrieval: Retrieval engine over the document repository and vector store
        synthesizer: Turns retrieval results into answer text
        classifier: Intent classifier used for the small-talk short-circuit
        config: Engine configuration
        cache: Result cache (built from config when omitted)
    """

    def __init__(
        self,
        retrieval: RetrievalEngine,
        synthesizer: AnswerSynthesizer,
        classifier: QueryIntentClassifier | None = None,
        config: RAGConfig | None = None,
        cache: QueryCache | None = None,
    ) -> None:
        self.config = config or RAGConfig()
        self.retrieval = retrieval
        self.synthesizer = synthesizer
        self.classifier = classifier or QueryIntentClassifier(self.config)
        self.cache = cache or QueryCache(self.config.cache_ttl_seconds, self.config.cache_max_entries)

    @property
    def chat(self) -> ChatProvider | None:
        return self.synthesizer.chat

    async def answer_query(self, question: str, options: QueryOptions | None = None) -> QueryAnswer:
        """Answer a question.

        Args:
            question: User question
            options: Per-query overrides; ``continue_from`` switches to continuation reading

        Returns:
            QueryAnswer: Answer text, deduplicated sources and diagnostics

        Raises:
            SynthesisFailure: If a model call required by the output mode fails
        """
        options = options or QueryOptions()
        question = (question or "").strip()
        started = time.perf_counter()

        if self.classifier.is_small_talk(question):
            logger.info(f"🗣️ Small talk: {question[:60]!r}")
            return QueryAnswer(
                answer=random.choice(self.config.small_talk_replies),
                sources=[],
                metadata={"small_talk": True, "duration_ms": self._elapsed(started)},
            )

        if options.continue_from is not None:
            return self._continue(options.continue_from, started)

        cache_key = make_cache_key(question, options.cache_key_parts())
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"🔍 Cache hit for {question[:60]!r}")
            return QueryAnswer(
                answer=cached.answer,
                sources=list(cached.sources),
                metadata={**cached.metadata, "cached": True},
            )

        try:
            result = self.retrieval.retrieve(question, options)
            if isinstance(result, RetrievalEmpty):
                answer = await self._answer_empty(question, result, started)
            else:
                answer = await self._answer_retrieved(question, result, options, started)
        except Exception as e:
            logger.error(f"❌ Query failed for {question[:60]!r}: {e}")
            raise

        self.cache.set(cache_key, answer)
        return answer

    async def _answer_empty(self, question: str, empty: RetrievalEmpty, started: float) -> QueryAnswer:
        logger.info(f"🔍 No context found ({empty.reason})")
        metadata = {
            "chunks_used": 0,
            "context_length": 0,
            "retrieval_empty": empty.reason,
        }
        if (
            not self.config.block_external_knowledge
            and self.chat is not None
            and self.config.output_mode is OutputMode.GENERATIVE
        ):
            synthesis = await self.synthesizer.answer_without_context(question)
            metadata.update(output_mode=synthesis.mode, duration_ms=self._elapsed(started))
            return QueryAnswer(answer=synthesis.answer, sources=[], metadata=metadata)

        metadata["duration_ms"] = self._elapsed(started)
        return QueryAnswer(answer=self.config.no_data_message, sources=[], metadata=metadata)

    async def _answer_retrieved(
        self, question: str, result: RetrievalResult, options: QueryOptions, started: float
    ) -> QueryAnswer:
        keywords = self.retrieval.keywords_for(question)
        mode = OutputMode(options.output_mode) if options.output_mode else None
        synthesis = await self.synthesizer.synthesize(question, result, keywords, mode)

        used = result.used_indices_by_document
        dominant = result.dominant_document_id
        metadata = {
            "chunks_used": len(result.chunks),
            "context_length": len(result.context),
            "top_relevance_score": round(result.top_score, 4),
            "dominant_document_id": dominant,
            "used_chunk_indices_by_document": used,
            "max_used_chunk_index_by_document": {doc: max(idx) for doc, idx in used.items() if idx},
            "max_used_chunk_index_for_dominant": max(used[dominant]) if dominant in used else None,
            "output_mode": synthesis.mode,
            "lexical_fallback": result.lexical,
            "anchored": bool(result.anchor_excerpt),
            **synthesis.details,
            "duration_ms": self._elapsed(started),
        }
        logger.info(
            f"✅ Answered with {metadata['chunks_used']} chunks from {len(result.sources)} sources "
            f"in {metadata['duration_ms']} ms"
        )
        return QueryAnswer(answer=synthesis.answer, sources=result.sources, metadata=metadata)

    def _continue(self, continue_from: ContinueFrom, started: float) -> QueryAnswer:
        document_id = continue_from.document_id
        after = int(continue_from.after_index)
        text, chunks = self.retrieval.continue_reading(document_id, after)
        indices = [c.chunk_index for c in chunks]
        documents = self.retrieval.repository.get_documents([document_id])
        document = documents.get(document_id)

        metadata = {
            "continuation": True,
            "document_id": document_id,
            "started_after_index": after,
            "used_chunk_indices": indices,
            "max_used_chunk_index": max(indices) if indices else after,
            "chunks_used": len(chunks),
            "context_length": len(text),
            "duration_ms": self._elapsed(started),
        }
        if not text or document is None:
            logger.info(f"📄 Nothing left to read in {document_id} after chunk {after}")
            return QueryAnswer(answer=self.config.no_data_message, sources=[], metadata=metadata)

        logger.info(f"📄 Continued {document_id} with chunks {indices}")
        return QueryAnswer(answer=text, sources=[document.to_source(1.0)], metadata=metadata)

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
