"""Tests for retrieval and context assembly."""

from conftest import PARAGRAPH, FakeEmbedder
from kbrag.config import RAGConfig
from kbrag.models import KnowledgeDocument, QueryOptions, RetrievalEmpty, RetrievalResult
from kbrag.query.retrieval import RetrievalEngine, join_until

ZAKAT = (
    "Zəkat ilin sonunda verilir. Zəkat malın qırxda biridir. "
    "Zəkat kasıblara və ehtiyacı olanlara paylanır. "
) * 3


def ingest_pair(pipeline):
    """Ingest two manual documents with disjoint vocabulary."""
    wudu = pipeline.ingest_text("Dəstəmaz", PARAGRAPH * 2)
    zakat = pipeline.ingest_text("Zəkat", ZAKAT)
    return wudu, zakat


def ingest_web_page(pipeline, repository, url, content):
    """Store a URL-backed document and index it."""
    document = repository.save_document(KnowledgeDocument(title="Səhifə", content=content, source_url=url))
    return pipeline.index_document(document)


class TestVectorRetrieval:
    """Tests for the vector search path."""

    def test_returns_matching_document(self, pipeline, repository, vector_store, embedder, config):
        """Test that the best document dominates the result."""
        wudu, _ = ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?")

        assert isinstance(result, RetrievalResult)
        assert not result.lexical
        assert result.dominant_document_id == wudu.Id
        assert result.sources[0]["id"] == wudu.Id
        assert result.chunks[0].document.Id == wudu.Id
        assert wudu.Id in result.used_indices_by_document
        assert "Dəstəmaz namazdan əvvəl alınır." in result.context

    def test_min_score_relaxes_instead_of_emptying(self, pipeline, repository, vector_store, embedder, config):
        """Test that an unreachable threshold keeps the unfiltered results."""
        ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?", QueryOptions(min_score=0.999))

        assert isinstance(result, RetrievalResult)
        assert result.chunks

    def test_host_filter_empties_result(self, pipeline, repository, vector_store, embedder, config):
        """Test that manual documents are dropped by a host allow-list."""
        ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?", QueryOptions(allowed_hosts=["example.az"]))

        assert result == RetrievalEmpty(reason="host_filter")

    def test_host_filter_keeps_allowed_hosts(self, pipeline, repository, vector_store, embedder, config):
        """Test that hosts match without the www prefix."""
        ingest_pair(pipeline)
        page = ingest_web_page(pipeline, repository, "https://www.example.az/destemaz", PARAGRAPH * 2)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?", QueryOptions(allowed_hosts=["Example.az"]))

        assert isinstance(result, RetrievalResult)
        assert {r.document.Id for r in result.chunks} == {page.Id}

    def test_restriction_to_document(self, pipeline, repository, vector_store, embedder, config):
        """Test that restriction keeps only the requested document."""
        _, zakat = ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?", QueryOptions(restrict_to_document_id=zakat.Id))

        assert {r.document.Id for r in result.chunks} == {zakat.Id}

    def test_unknown_restriction_is_ignored(self, pipeline, repository, vector_store, embedder, config):
        """Test that a restriction matching nothing falls back to all matches."""
        wudu, _ = ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?", QueryOptions(restrict_to_document_id="doc-gone"))

        assert result.dominant_document_id == wudu.Id

    def test_stale_chunk_id_resolved_by_position(self, pipeline, repository, vector_store, embedder, config):
        """Test that vectors pointing at replaced chunk ids still resolve."""
        wudu, _ = ingest_pair(pipeline)
        for record in vector_store.records.values():
            record.metadata["chunk_id"] = "chunk-gone"
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?")

        live_ids = set(repository.chunks)
        assert result.chunks
        assert all(r.chunk.Id in live_ids for r in result.chunks)
        assert result.dominant_document_id == wudu.Id

    def test_unresolvable_matches_use_leading_chunks(self, pipeline, repository, vector_store, embedder, config):
        """Test the leading-chunk fallback when no chunk can be resolved."""
        ingest_pair(pipeline)
        for record in vector_store.records.values():
            record.metadata["chunk_id"] = "chunk-gone"
            record.metadata.pop("chunk_index")
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?")

        assert isinstance(result, RetrievalResult)
        assert all(r.chunk.chunk_index == 0 for r in result.chunks)


class TestLexicalFallback:
    """Tests for keyword search when vector search yields nothing."""

    def test_embedding_failure_uses_keywords(self, pipeline, repository, vector_store, config):
        """Test that a query embedding outage degrades to keyword search."""
        wudu, _ = ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, FakeEmbedder(fail=True), config)

        result = engine.retrieve("Dəstəmaz necə alınır?")

        assert isinstance(result, RetrievalResult)
        assert result.lexical
        assert result.dominant_document_id == wudu.Id
        assert result.top_score == 0.0

    def test_missing_vectors_use_keywords(self, pipeline, repository, vector_store, embedder, config):
        """Test documents stored without vectors are still found."""
        _, zakat = ingest_pair(pipeline)
        vector_store.records.clear()
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Zəkat kimə verilir?")

        assert result.lexical
        assert result.dominant_document_id == zakat.Id

    def test_no_keywords(self, repository, vector_store, embedder, config):
        """Test that a question without keywords is reported as such."""
        engine = RetrievalEngine(repository, vector_store, embedder, config)
        assert engine.retrieve("?? !!") == RetrievalEmpty(reason="no_keywords")

    def test_nothing_found(self, repository, vector_store, embedder, config):
        """Test an empty knowledge base."""
        engine = RetrievalEngine(repository, vector_store, embedder, config)
        assert engine.retrieve("Dəstəmaz necə alınır?") == RetrievalEmpty(reason="no_results")


class TestDocumentReading:
    """Tests for continuation, anchoring and excerpts."""

    def test_continue_reading_moves_forward(self, pipeline, repository, vector_store, embedder, config):
        """Test that continuation never repeats shown chunks."""
        document = pipeline.ingest_text("Uzun mətn", PARAGRAPH * 20)
        engine = RetrievalEngine(repository, vector_store, embedder, config)
        assert len(repository.list_chunks(document.Id)) > 2

        text, used = engine.continue_reading(document.Id, 0)

        assert text
        assert used
        assert all(chunk.chunk_index > 0 for chunk in used)
        assert len(text) <= config.continuation_max_chars

    def test_continue_reading_past_end(self, pipeline, repository, vector_store, embedder, config):
        """Test continuation past the last chunk."""
        document = pipeline.ingest_text("Dəstəmaz", PARAGRAPH)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        assert engine.continue_reading(document.Id, 5) == ("", [])

    def test_anchor_to_document_start(self, pipeline, repository, vector_store, embedder):
        """Test that how-to questions pull the dominant document's opening."""
        config = RAGConfig(crawl_delay=0, anchor_to_document_start=True)
        wudu, _ = ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        result = engine.retrieve("Dəstəmaz necə alınır?")

        assert result.anchor_excerpt.startswith("Dəstəmaz namazdan əvvəl alınır.")

    def test_no_anchor_by_default(self, pipeline, repository, vector_store, embedder, config):
        """Test that anchoring is opt-in."""
        ingest_pair(pipeline)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        assert engine.retrieve("Dəstəmaz necə alınır?").anchor_excerpt == ""

    def test_wide_extract(self, pipeline, repository, vector_store, embedder, config):
        """Test that the overview extract ends on a sentence boundary."""
        document = pipeline.ingest_text("Uzun mətn", PARAGRAPH * 20)
        engine = RetrievalEngine(repository, vector_store, embedder, config)

        extract = engine.wide_extract(document.Id, 600)

        assert 0 < len(extract) <= 600
        assert extract.endswith(".")

    def test_intro_excerpt_unknown_document(self, repository, vector_store, embedder, config):
        """Test the intro excerpt of a missing document."""
        engine = RetrievalEngine(repository, vector_store, embedder, config)
        assert engine.intro_excerpt("doc-gone", 500) == ""


class TestJoinUntil:
    """Tests for join_until."""

    def test_stops_at_limit(self):
        """Test that joining stops once the limit is reached."""
        assert join_until(["aaaa", " ", "bbbb", "cccc"], 8) == "aaaa\nbbbb"

    def test_empty(self):
        """Test joining nothing."""
        assert join_until([], 10) == ""
