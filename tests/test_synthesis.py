"""Tests for answer synthesis."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from kbrag.config import OutputMode, RAGConfig
from kbrag.constants import GENERATIVE_OPTIONS, REWRITE_OPTIONS
from kbrag.errors import SynthesisFailure
from kbrag.models import KnowledgeChunk, KnowledgeDocument, RetrievalResult, RetrievedChunk
from kbrag.query.synthesis import AnswerSynthesizer, ChunkNeighbours, detect_hallucination

SPLIT_TEXT = (
    "Birinci cümlə burada bitir. İkinci cümlə başlayır",
    "və burada davam edir. Üçüncü cümlə isə tamamlanır.",
)


def store_document(repository, pieces, title="Dəstəmaz"):
    """Save a document with one chunk per piece and return (document, chunks)."""
    document = repository.save_document(KnowledgeDocument(title=title, content=" ".join(pieces)))
    chunks = [
        KnowledgeChunk(document_id=document.Id, content=piece, chunk_index=i, char_count=len(piece))
        for i, piece in enumerate(pieces)
    ]
    repository.save_chunks(chunks)
    return document, chunks


def retrieval_for(document, chunks, anchor=""):
    """RetrievalResult over the given chunks."""
    retrieved = [RetrievedChunk(chunk=c, document=document, score=0.8) for c in chunks]
    return RetrievalResult(
        chunks=retrieved,
        context="\n\n---\n\n".join(c.content for c in chunks),
        sources=[document.to_source(0.8)],
        used_indices_by_document={document.Id: [c.chunk_index for c in chunks]},
        dominant_document_id=document.Id,
        top_score=0.8,
        anchor_excerpt=anchor,
    )


def chat_returning(text):
    chat = MagicMock()
    chat.generate_response = AsyncMock(return_value=text)
    return chat


class TestDetectHallucination:
    """Tests for the grounding diagnostics."""

    def test_grounded_answer(self):
        """Test an answer copied from its context."""
        context = "Dəstəmaz namazdan əvvəl alınır. Əvvəlcə niyyət edilir."
        result = detect_hallucination("Dəstəmaz namazdan əvvəl alınır.", context)

        assert result["hallucination_suspected"] is False
        assert result["grounded_in_context"] is True
        assert result["unsupported_word_ratio"] == 0.0

    def test_invented_answer(self):
        """Test an answer whose long words are absent from the context."""
        context = "Dəstəmaz namazdan əvvəl alınır."
        answer = "Təyəmmüm torpaqla edilir, qüsl isə bütöv bədənin yuyulmasıdır, kəffarə verilməlidir."
        result = detect_hallucination(answer, context)

        assert result["hallucination_suspected"] is True
        assert result["grounded_in_context"] is False
        assert result["unsupported_word_ratio"] > 0.5

    def test_short_answer_not_flagged(self):
        """Test that answers without long words are never flagged."""
        result = detect_hallucination("Bəli.", "Xeyr.")
        assert result["hallucination_suspected"] is False


class TestChunkNeighbours:
    """Tests for sentence completion across chunk edges."""

    def test_complete_start(self, repository):
        """Test that a chunk starting mid-sentence borrows the previous tail."""
        _, chunks = store_document(repository, SPLIT_TEXT)
        text = ChunkNeighbours(repository).complete_start(chunks[1])
        assert text == "İkinci cümlə başlayır və burada davam edir. Üçüncü cümlə isə tamamlanır."

    def test_complete_start_clean_chunk(self, repository):
        """Test that a clean chunk is returned unchanged."""
        _, chunks = store_document(repository, SPLIT_TEXT)
        assert ChunkNeighbours(repository).complete_start(chunks[0]) == SPLIT_TEXT[0]

    def test_complete_end(self, repository):
        """Test that an unfinished chunk borrows the next head."""
        _, chunks = store_document(repository, SPLIT_TEXT)
        text = ChunkNeighbours(repository).complete_end(chunks[0], SPLIT_TEXT[0])
        assert text.startswith(SPLIT_TEXT[0] + " və burada davam edir.")
        assert text.endswith(".")

    def test_previous_and_next(self, repository):
        """Test neighbour lookup at document edges."""
        _, chunks = store_document(repository, SPLIT_TEXT)
        neighbours = ChunkNeighbours(repository)
        assert neighbours.previous(chunks[0]) is None
        assert neighbours.next(chunks[0]).Id == chunks[1].Id
        assert neighbours.next(chunks[1]) is None


class TestBuildExtractive:
    """Tests for extractive answer composition."""

    def test_keyword_sentences_verbatim(self, repository):
        """Test that keyword-bearing sentences are copied literally."""
        document, chunks = store_document(
            repository, ["Wudu is performed by washing the face, arms, head and feet."]
        )
        synthesizer = AnswerSynthesizer(repository)

        extract = synthesizer.build_extractive(retrieval_for(document, chunks).chunks, ["wudu", "ablution"])

        assert extract == "Wudu is performed by washing the face, arms, head and feet."

    def test_skips_sentences_without_keywords(self, repository):
        """Test that unrelated sentences are left out."""
        document, chunks = store_document(
            repository, ["Zəkat ildə bir dəfə verilir. Dəstəmaz namazdan əvvəl alınır. Oruc Ramazanda tutulur."]
        )
        synthesizer = AnswerSynthesizer(repository)

        extract = synthesizer.build_extractive(retrieval_for(document, chunks).chunks, ["dəstəmaz"])

        assert extract == "Dəstəmaz namazdan əvvəl alınır."

    def test_completes_split_sentence(self, repository):
        """Test that sentences split across chunks are rebuilt before selection."""
        document, chunks = store_document(repository, SPLIT_TEXT)
        synthesizer = AnswerSynthesizer(repository)

        extract = synthesizer.build_extractive(retrieval_for(document, chunks[1:]).chunks, ["davam"])

        assert extract == "İkinci cümlə başlayır və burada davam edir."

    def test_fallback_to_leading_chunks(self, repository):
        """Test the fallback when no sentence carries a keyword."""
        document, chunks = store_document(repository, ["Zəkat ildə bir dəfə verilir. Oruc Ramazanda tutulur."])
        synthesizer = AnswerSynthesizer(repository)

        extract = synthesizer.build_extractive(retrieval_for(document, chunks).chunks, ["namaz"])

        assert extract == "Zəkat ildə bir dəfə verilir. Oruc Ramazanda tutulur."

    def test_respects_character_budget(self, repository):
        """Test that the extract never exceeds the configured budget."""
        sentence = "Dəstəmaz qaydası ətraflı izah olunur və hər addım ayrıca göstərilir. "
        document, chunks = store_document(repository, [sentence * 40])
        synthesizer = AnswerSynthesizer(repository, config=RAGConfig(extractive_max_chars=500))

        extract = synthesizer.build_extractive(retrieval_for(document, chunks).chunks, ["dəstəmaz"])

        assert 0 < len(extract) <= 500


class TestSynthesize:
    """Tests for the output modes."""

    @pytest.mark.asyncio
    async def test_extractive_needs_no_model(self, repository):
        """Test that extractive mode works without a chat provider."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository)

        result = await synthesizer.synthesize(
            "Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"], OutputMode.EXTRACTIVE
        )

        assert result.answer == "Dəstəmaz namazdan əvvəl alınır."
        assert result.mode == "extractive"

    @pytest.mark.asyncio
    async def test_extractive_adds_anchor_excerpt(self, repository):
        """Test that an anchored opening precedes the keyword extract."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository)
        retrieval = retrieval_for(document, chunks, anchor="Giriş hissəsi burada verilir.")

        result = await synthesizer.synthesize("Dəstəmaz necə alınır?", retrieval, ["dəstəmaz"], "extractive")

        assert result.answer == "Giriş hissəsi burada verilir.\n\nDəstəmaz namazdan əvvəl alınır."

    @pytest.mark.asyncio
    async def test_anchor_excerpt_not_repeated(self, repository):
        """Test that extract sentences already in the opening are not repeated."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository)
        retrieval = retrieval_for(document, chunks, anchor="Giriş. Dəstəmaz namazdan əvvəl alınır.")

        result = await synthesizer.synthesize("Dəstəmaz necə alınır?", retrieval, ["dəstəmaz"], "extractive")

        assert result.answer == "Giriş. Dəstəmaz namazdan əvvəl alınır."

    @pytest.mark.asyncio
    async def test_anchored_extract_within_budget(self, repository):
        """Test that the opening and extract together respect the character budget."""
        sentence = "Qüsl bütün bədənin yuyulması ilə alınır."
        document, chunks = store_document(repository, [sentence], title="Qüsl")
        synthesizer = AnswerSynthesizer(repository, config=RAGConfig(extractive_max_chars=60))
        retrieval = retrieval_for(document, chunks, anchor="Giriş. Bu kitab təharət haqqındadır.")

        result = await synthesizer.synthesize("Qüsl necə alınır?", retrieval, ["qüsl"], "extractive")

        assert len(result.answer) <= 60
        assert result.answer.startswith("Giriş.")

    @pytest.mark.asyncio
    async def test_super_strict_skips_model(self, repository, fake_chat):
        """Test that super strict mode answers with the extract only."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository, fake_chat, RAGConfig(super_strict_mode=True))

        result = await synthesizer.synthesize("Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"])

        assert result.mode == "extractive_super_strict"
        assert result.answer == "Dəstəmaz namazdan əvvəl alınır."
        fake_chat.generate_response.assert_not_called()

    @pytest.mark.asyncio
    async def test_constrained_rewrites_extract(self, repository):
        """Test that constrained mode sends the extract to the model."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        chat = chat_returning("Dəstəmaz namazdan əvvəl alınır.")
        synthesizer = AnswerSynthesizer(repository, chat)

        result = await synthesizer.synthesize(
            "Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"], OutputMode.CONSTRAINED
        )

        prompt, options = chat.generate_response.call_args[0]
        assert "Dəstəmaz namazdan əvvəl alınır." in prompt
        assert options == REWRITE_OPTIONS
        assert result.mode == "constrained"
        assert result.details["hallucination_suspected"] is False

    @pytest.mark.asyncio
    async def test_constrained_empty_rewrite_keeps_extract(self, repository):
        """Test that an empty rewrite falls back to the extract."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository, chat_returning("   "))

        result = await synthesizer.synthesize(
            "Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"], OutputMode.CONSTRAINED
        )

        assert result.answer == "Dəstəmaz namazdan əvvəl alınır."

    @pytest.mark.asyncio
    async def test_generative_uses_context(self, repository, fake_chat):
        """Test that generative mode prompts with the retrieved context."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository, fake_chat)

        result = await synthesizer.synthesize("Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"])

        prompt, options = fake_chat.generate_response.call_args[0]
        assert "Dəstəmaz namazdan əvvəl alınır." in prompt
        assert "Dəstəmaz nədir?" in prompt
        assert options == GENERATIVE_OPTIONS
        assert result.answer == "Cavab kontekstdən götürüldü."
        assert result.mode == "generative"
        assert "grounded_in_context" in result.details

    @pytest.mark.asyncio
    async def test_generative_without_chat_fails(self, repository):
        """Test that model modes require a chat provider."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        synthesizer = AnswerSynthesizer(repository)

        with pytest.raises(SynthesisFailure):
            await synthesizer.synthesize("Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"])

    @pytest.mark.asyncio
    async def test_chat_error_becomes_synthesis_failure(self, repository):
        """Test that provider errors are wrapped."""
        document, chunks = store_document(repository, ["Dəstəmaz namazdan əvvəl alınır."])
        chat = MagicMock()
        chat.generate_response = AsyncMock(side_effect=ConnectionError("refused"))
        synthesizer = AnswerSynthesizer(repository, chat)

        with pytest.raises(SynthesisFailure, match="refused"):
            await synthesizer.synthesize("Dəstəmaz nədir?", retrieval_for(document, chunks), ["dəstəmaz"])

    @pytest.mark.asyncio
    async def test_answer_without_context(self, repository, fake_chat):
        """Test the ungrounded answer path."""
        synthesizer = AnswerSynthesizer(repository, fake_chat)

        result = await synthesizer.answer_without_context("Dəstəmaz nədir?")

        assert result.mode == "ungrounded"
        assert result.answer == "Cavab kontekstdən götürüldü."
