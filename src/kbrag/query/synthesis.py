"""Answer synthesis from retrieved context.

Three output modes:
- extractive: literal sentences copied from the retrieved chunks
- constrained: the extract, reorganized by the model without new facts
- generative: the model answers from the context under a strict prompt
"""

import logging
import math
import re
from dataclasses import dataclass, field

from kbrag.config import OutputMode, RAGConfig
from kbrag.constants import (
    EXTRACTIVE_FALLBACK_CHARS,
    GENERATIVE_OPTIONS,
    REWRITE_OPTIONS,
)
from kbrag.errors import SynthesisFailure
from kbrag.llm.base import ChatProvider
from kbrag.models import KnowledgeChunk, RetrievalResult, RetrievedChunk
from kbrag.query.prompts import build_answer_prompt, build_normal_prompt, build_rewrite_prompt
from kbrag.service.database.repository import DocumentRepository
from kbrag.text import (
    ends_with_sentence_terminator,
    last_terminator_position,
    normalize_az,
    smart_trim_to_sentence,
    split_sentences,
    starts_cleanly,
)

logger = logging.getLogger(__name__)

SIGNIFICANT_WORD_RE = re.compile(r"[^\W\d_]{7,}")
CONTEXT_WORD_RE = re.compile(r"[^\W\d_]{5,}")
PREPEND_CHARS = 500
APPEND_CHARS = 800
SENTENCE_MAX_CHARS = 1000
MIN_TAIL_FRAGMENT = 200


@dataclass
class Synthesis:
    """Answer text plus how it was produced."""

    answer: str
    mode: str
    details: dict = field(default_factory=dict)


def detect_hallucination(answer: str, context: str) -> dict:
    """Compare answer vocabulary with the context it was generated from.

    Two checks run on folded text. Long words (seven or more letters) flag
    the answer when at least max(3, 30%) of them are missing from the
    context. The stricter check records whether every word of five or more
    letters appears in the context.

    Returns:
        dict: hallucination_suspected, grounded_in_context and the missing-word ratio
    """
    folded_answer = normalize_az(answer)
    folded_context = normalize_az(context)

    long_words = set(SIGNIFICANT_WORD_RE.findall(folded_answer))
    missing = sum(1 for word in long_words if word not in folded_context)
    threshold = max(3, math.ceil(len(long_words) * 0.3))
    ratio = round(missing / len(long_words), 3) if long_words else 0.0

    words = set(CONTEXT_WORD_RE.findall(folded_answer))
    grounded = all(word in folded_context for word in words)

    return {
        "hallucination_suspected": bool(long_words) and missing >= threshold,
        "grounded_in_context": grounded,
        "unsupported_word_ratio": ratio,
    }


class ChunkNeighbours:
    """Ordered chunk lists per document, loaded once per synthesis."""

    def __init__(self, repository: DocumentRepository) -> None:
        self.repository = repository
        self._cache: dict[str, list[KnowledgeChunk]] = {}

    def _chunks(self, document_id: str) -> list[KnowledgeChunk]:
        if document_id not in self._cache:
            self._cache[document_id] = self.repository.list_chunks(document_id)
        return self._cache[document_id]

    def previous(self, chunk: KnowledgeChunk) -> KnowledgeChunk | None:
        before = [c for c in self._chunks(chunk.document_id) if c.chunk_index < chunk.chunk_index]
        return before[-1] if before else None

    def next(self, chunk: KnowledgeChunk) -> KnowledgeChunk | None:
        after = [c for c in self._chunks(chunk.document_id) if c.chunk_index > chunk.chunk_index]
        return after[0] if after else None

    def complete_start(self, chunk: KnowledgeChunk, max_prepend: int = PREPEND_CHARS) -> str:
        """Prepend the previous chunk's tail when a chunk starts mid-sentence."""
        text = chunk.content.strip()
        if not text or starts_cleanly(text):
            return text
        prev = self.previous(chunk)
        if prev is None or not prev.content:
            return text
        tail = prev.content.strip()[-max_prepend:]
        combined = f"{tail} {text}"
        pos = last_terminator_position(combined[: len(tail) + 1])
        if pos > 0:
            return combined[pos + 1:].lstrip()
        return combined

    def complete_end(self, chunk: KnowledgeChunk, text: str, max_append: int = APPEND_CHARS) -> str:
        """Append the next chunk's head when text stops mid-sentence."""
        if ends_with_sentence_terminator(text):
            return text
        nxt = self.next(chunk)
        if nxt is None or not nxt.content:
            return text
        combined = f"{text.rstrip()} {nxt.content[:max_append]}"
        return smart_trim_to_sentence(combined, len(combined))


class AnswerSynthesizer:
    """Build the final answer text for a retrieval result.

    Args:
        repository: Used to read neighbouring chunks when completing sentences
        chat: Chat provider; required for the constrained and generative modes
        config: Engine configuration
    """

    def __init__(
        self,
        repository: DocumentRepository,
        chat: ChatProvider | None = None,
        config: RAGConfig | None = None,
    ) -> None:
        self.repository = repository
        self.chat = chat
        self.config = config or RAGConfig()

    def build_extractive(self, retrieved: list[RetrievedChunk], keywords: list[str]) -> str:
        """Copy keyword-bearing sentences from the retrieved chunks in order.

        Chunk edges are completed from adjacent chunks first, fragments that
        do not start a sentence are dropped, and the result is capped at
        ``extractive_max_chars``. With no matching sentence, the first one or
        two chunks are returned trimmed to sentence boundaries.

        Args:
            retrieved: Chunks in relevance order
            keywords: Query keywords

        Returns:
            str: Extract (possibly empty when no chunk has content)
        """
        max_chars = self.config.extractive_max_chars
        folded_keywords = [normalize_az(k) for k in keywords if k]
        neighbours = ChunkNeighbours(self.repository)
        collected: list[str] = []
        used: set[str] = set()

        for item in retrieved:
            full = neighbours.complete_end(item.chunk, neighbours.complete_start(item.chunk))
            done = False
            for sentence in split_sentences(full):
                sentence = sentence.strip()
                if not sentence or sentence in used:
                    continue
                if not ends_with_sentence_terminator(sentence):
                    sentence = smart_trim_to_sentence(sentence, SENTENCE_MAX_CHARS)
                if not sentence or not starts_cleanly(sentence):
                    continue
                folded = normalize_az(sentence)
                if not any(keyword in folded for keyword in folded_keywords):
                    continue

                current = len("\n".join(collected))
                if current + len(sentence) > max_chars:
                    remain = max(0, max_chars - current - 1)
                    if remain > MIN_TAIL_FRAGMENT:
                        trimmed = smart_trim_to_sentence(sentence, remain)
                        if trimmed:
                            collected.append(trimmed)
                    done = True
                    break
                collected.append(sentence)
                used.add(sentence)
            if done:
                break

        if not collected:
            for item in retrieved:
                full = neighbours.complete_end(item.chunk, item.chunk.content.strip())
                snippet = smart_trim_to_sentence(full, min(EXTRACTIVE_FALLBACK_CHARS, max_chars))
                if snippet:
                    collected.append(snippet)
                if len("\n\n".join(collected)) >= max_chars or len(collected) >= 2:
                    break

        return "\n\n".join(collected).strip()

    def build_anchored_extract(
        self, anchor: str, retrieved: list[RetrievedChunk], keywords: list[str]
    ) -> str:
        """Keyword extract preceded by the document opening when anchoring found one.

        Extract passages already contained in the opening are skipped and the
        whole answer stays within ``extractive_max_chars``.
        """
        extract = self.build_extractive(retrieved, keywords)
        anchor = anchor.strip()
        if not anchor:
            return extract

        max_chars = self.config.extractive_max_chars
        combined = smart_trim_to_sentence(anchor, max_chars)
        folded_anchor = normalize_az(combined)
        for passage in extract.split("\n\n"):
            passage = passage.strip()
            if not passage or normalize_az(passage) in folded_anchor:
                continue
            remain = max_chars - len(combined) - 2
            if remain <= 0:
                break
            if len(passage) > remain:
                passage = smart_trim_to_sentence(passage, remain)
                if not ends_with_sentence_terminator(passage):
                    break
            combined = f"{combined}\n\n{passage}"
        return combined

    async def _generate(self, prompt: str, options: dict) -> str:
        if self.chat is None:
            raise SynthesisFailure("No chat provider configured for model-based answers")
        try:
            return (await self.chat.generate_response(prompt, options)).strip()
        except SynthesisFailure:
            raise
        except Exception as e:
            raise SynthesisFailure(f"Chat provider failed: {e}") from e

    async def synthesize(
        self,
        question: str,
        retrieval: RetrievalResult,
        keywords: list[str],
        mode: OutputMode | None = None,
    ) -> Synthesis:
        """Produce the answer for a retrieval result.

        Args:
            question: User question
            retrieval: Context and chunks from the retrieval engine
            keywords: Query keywords for extractive selection
            mode: Output mode override (defaults to the configured mode)

        Returns:
            Synthesis: Answer text, the mode actually used and diagnostics

        Raises:
            SynthesisFailure: If a required model call fails
        """
        mode = OutputMode(mode) if mode else self.config.output_mode

        if self.config.super_strict_mode:
            extract = self.build_extractive(retrieval.chunks, keywords)
            if extract:
                logger.info(f"📄 Extractive answer (super strict): {len(extract)} characters")
                return Synthesis(answer=extract, mode="extractive_super_strict")

        extract = retrieval.anchor_excerpt or ""

        if mode is OutputMode.EXTRACTIVE:
            answer = self.build_anchored_extract(extract, retrieval.chunks, keywords)
            return Synthesis(answer=answer or self.config.no_data_message, mode=mode.value)

        if mode is OutputMode.CONSTRAINED:
            extract = self.build_anchored_extract(extract, retrieval.chunks, keywords)
            if extract:
                rewrite = await self._generate(build_rewrite_prompt(question, extract), REWRITE_OPTIONS)
                answer = rewrite or extract
                return Synthesis(
                    answer=answer, mode=mode.value, details=detect_hallucination(answer, extract)
                )
            logger.info("🤖 Empty extract, falling back to generative answer")

        context = retrieval.context
        if extract:
            context = f"{extract}\n\n---\n\n{context}"
        prompt = build_answer_prompt(
            question,
            context,
            self.config.no_data_message,
            self.config.strict_mode,
            self.config.super_strict_mode,
        )
        answer = await self._generate(prompt, GENERATIVE_OPTIONS)
        return Synthesis(
            answer=answer, mode=OutputMode.GENERATIVE.value, details=detect_hallucination(answer, context)
        )

    async def answer_without_context(self, question: str) -> Synthesis:
        """General-knowledge answer used when nothing was retrieved and blocking is off."""
        answer = await self._generate(build_normal_prompt(question, ""), GENERATIVE_OPTIONS)
        return Synthesis(answer=answer, mode="ungrounded")
