"""End-to-end integration tests for the complete ingestion and answer workflow."""

import uuid

import pytest

from conftest import PARAGRAPH, FakeFetcher, article_html
from kbrag.config import RAGConfig
from kbrag.engine import KnowledgeEngine
from kbrag.ingest.pipeline import IngestionPipeline
from kbrag.service.database import InMemoryDocumentRepository, InMemoryVectorStore


class TestKnowledgePipelineIntegration:
    """End-to-end tests against live services."""

    @pytest.mark.integration
    @pytest.mark.requires_ollama
    @pytest.mark.slow
    def test_page_to_vectors_pipeline(self, ollama_service):
        """Test complete pipeline: HTML page → chunks → embeddings → vectors."""
        url = "https://example.az/fiqh/destemaz"
        repository = InMemoryDocumentRepository()
        vector_store = InMemoryVectorStore()
        pipeline = IngestionPipeline(
            repository,
            vector_store,
            ollama_service,
            RAGConfig(crawl_delay=0),
            fetcher=FakeFetcher({url: article_html("Dəstəmaz qaydaları", PARAGRAPH * 6)}),
        )

        result = pipeline.ingest_url(url)

        document = result.documents[0]
        assert document.indexing_status == "completed"
        assert len(vector_store.records) == document.chunks_count
        assert all(len(r.embedding) == ollama_service.dimension() for r in vector_store.records.values())

    @pytest.mark.integration
    @pytest.mark.requires_ollama
    @pytest.mark.requires_ravendb
    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_full_knowledge_workflow(self, ollama_service, ravendb_store):
        """Test ingest → RavenDB storage → vector search → extractive answer → delete."""
        from kbrag.service.database import (
            RavenDBDocumentRepository,
            RavenDBVectorStore,
            ensure_index_exists,
        )

        ensure_index_exists(ravendb_store, ollama_service.dimension())
        engine = KnowledgeEngine(
            RavenDBDocumentRepository(ravendb_store),
            RavenDBVectorStore(ravendb_store, ollama_service.dimension()),
            ollama_service,
            None,
            RAGConfig(crawl_delay=0),
        )
        title = f"Dəstəmaz e2e {uuid.uuid4().hex[:8]}"
        document = engine.ingest_text(title, PARAGRAPH * 3)

        try:
            assert document.indexing_status == "completed"
            answer = await engine.answer_query(
                "Dəstəmaz necə alınır?",
                restrict_to_document_id=document.Id,
                output_mode="extractive",
            )
            assert answer.sources
            assert any(source["id"] == document.Id for source in answer.sources)
        finally:
            assert engine.delete_document(document.Id) is True
