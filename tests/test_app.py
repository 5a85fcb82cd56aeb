"""Tests for the Flask application module."""

from unittest.mock import MagicMock, patch

import pytest

from conftest import PARAGRAPH
from kbrag.client.app import create_app
from kbrag.client.routes.chat import parse_continue_from
from kbrag.client.routes.config import get_config, run_async
from kbrag.errors import StoreUnavailable
from kbrag.models import ContinueFrom

URL = "https://example.az/fiqh/destemaz"


@pytest.fixture
def client(engine):
    """Flask test client bound to the in-memory engine."""
    app = create_app(engine)
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


class TestParseContinueFrom:
    """Tests for parse_continue_from."""

    def test_absent(self):
        """Test that a missing field yields None."""
        assert parse_continue_from({"query": "x"}) is None

    def test_valid(self):
        """Test a well-formed continuation."""
        result = parse_continue_from({"continue_from": {"document_id": "doc-1", "after_index": "2"}})
        assert result == ContinueFrom(document_id="doc-1", after_index=2)

    def test_malformed(self):
        """Test that incomplete continuations are rejected."""
        with pytest.raises(ValueError):
            parse_continue_from({"continue_from": {"document_id": "doc-1"}})


class TestRunAsync:
    """Tests for run_async."""

    def test_runs_coroutine(self):
        """Test that a coroutine result is returned."""

        async def answer():
            return 42

        assert run_async(answer()) == 42


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_missing_query(self, client):
        """Test that a query is required."""
        response = client.post("/api/chat", json={})
        assert response.status_code == 400
        assert "Missing 'query'" in response.get_json()["error"]

    def test_invalid_output_mode(self, client):
        """Test that unknown output modes are rejected."""
        response = client.post("/api/chat", json={"query": "Dəstəmaz?", "output_mode": "poetic"})
        assert response.status_code == 400

    def test_extractive_answer(self, client, engine):
        """Test a grounded answer with sources, metadata and intent."""
        document = engine.ingest_text("Dəstəmaz", PARAGRAPH * 2)

        response = client.post(
            "/api/chat",
            json={"query": "Dəstəmaz necə alınır?", "output_mode": "extractive", "session_id": "s-1"},
        )

        assert response.status_code == 200
        data = response.get_json()
        assert "Dəstəmaz namazdan əvvəl alınır." in data["response"]
        assert data["sources"][0]["id"] == document.Id
        assert data["metadata"]["output_mode"] == "extractive"
        assert data["intent"] == "FIQH_QUESTION"
        assert data["session_id"] == "s-1"

    def test_no_data(self, client, engine):
        """Test the reply for an empty knowledge base."""
        response = client.post("/api/chat", json={"query": "Dəstəmaz necə alınır?"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["response"] == engine.config.no_data_message
        assert data["sources"] == []

    def test_continuation_without_query(self, client, engine):
        """Test continue-reading requests."""
        document = engine.ingest_text("Uzun mətn", PARAGRAPH * 20)

        response = client.post(
            "/api/chat", json={"continue_from": {"document_id": document.Id, "after_index": 0}}
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["metadata"]["continuation"] is True
        assert "intent" not in data

    def test_synthesis_failure_returns_502(self, client, engine):
        """Test that a failed model call maps to 502."""
        engine.ingest_text("Dəstəmaz", PARAGRAPH * 2)

        response = client.post("/api/chat", json={"query": "Dəstəmaz necə alınır?", "output_mode": "generative"})

        assert response.status_code == 502
        assert response.get_json() == {"error": "Answer generation failed"}

    def test_unexpected_error_returns_500(self, client, engine):
        """Test that unexpected errors map to 500."""
        with patch.object(engine.queries, "answer_query", side_effect=RuntimeError("boom")):
            response = client.post("/api/chat", json={"query": "Dəstəmaz necə alınır?"})

        assert response.status_code == 500
        assert "boom" in response.get_json()["error"]


class TestTrainingEndpoints:
    """Tests for the training routes."""

    def test_train_url(self, client, fetcher, sample_html):
        """Test single-page URL training."""
        fetcher.pages[URL] = sample_html

        response = client.post("/api/train/url", json={"url": URL})

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["pages_ingested"] == 1
        assert data["documents"][0]["source_url"] == URL

    def test_train_url_duplicate(self, client, fetcher, sample_html):
        """Test that duplicates map to 409 with the existing id."""
        fetcher.pages[URL] = sample_html
        first = client.post("/api/train/url", json={"url": URL}).get_json()

        response = client.post("/api/train/url", json={"url": URL})

        assert response.status_code == 409
        assert response.get_json()["document_id"] == first["documents"][0]["id"]

    def test_train_url_fetch_failure(self, client):
        """Test that unreachable URLs map to 502."""
        response = client.post("/api/train/url", json={"url": URL})

        assert response.status_code == 502
        assert response.get_json()["attempts"]

    def test_train_url_invalid(self, client):
        """Test URL validation."""
        response = client.post("/api/train/url", json={"url": "ftp://example.az"})
        assert response.status_code == 400

    def test_train_url_crawl_without_pages(self, client):
        """Test that a crawl ingesting nothing returns 422."""
        response = client.post("/api/train/url", json={"url": URL, "single_page": False})

        assert response.status_code == 422
        assert response.get_json()["failures"]

    def test_train_text(self, client):
        """Test free-text training."""
        response = client.post("/api/train/text", json={"title": "Dəstəmaz", "content": PARAGRAPH})

        assert response.status_code == 200
        document = response.get_json()["document"]
        assert document["title"] == "Dəstəmaz"
        assert document["indexing_status"] == "completed"
        assert "embedding" not in document

    def test_train_text_too_short(self, client):
        """Test that short text maps to 422."""
        response = client.post("/api/train/text", json={"title": "Dəstəmaz", "content": "qısa"})
        assert response.status_code == 422

    def test_train_text_missing_fields(self, client):
        """Test required fields."""
        response = client.post("/api/train/text", json={"title": "Dəstəmaz"})
        assert response.status_code == 400

    def test_train_qa(self, client):
        """Test Q&A training."""
        response = client.post(
            "/api/train/qa", json={"question": "Oruc nə vaxt tutulur?", "answer": "Ramazan ayında."}
        )

        assert response.status_code == 200
        assert response.get_json()["document"]["category"] == "qa"

    def test_train_qa_with_options(self, client, repository):
        """Test that Q&A options are stored and repeated questions add documents."""
        payload = {
            "question": "Oruc nə vaxt tutulur?",
            "answer": "Ramazan ayında.",
            "source": "Fətvalar",
            "author": "Müəllif",
            "language": "az",
        }

        first = client.post("/api/train/qa", json=payload).get_json()["document"]
        second = client.post("/api/train/qa", json=payload).get_json()["document"]

        assert first["source"] == "Fətvalar"
        assert first["author"] == "Müəllif"
        assert first["Id"] != second["Id"]
        assert repository.count_documents() == 2


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_healthy(self, client):
        """Test the health report of a working engine."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_store_unavailable(self, client, engine):
        """Test that store failures map to 503."""
        engine.vector_store = MagicMock()
        engine.vector_store.health_check.side_effect = StoreUnavailable("down")

        response = client.get("/health")

        assert response.status_code == 503

    def test_engine_missing(self, client, monkeypatch):
        """Test the report before the engine is initialized."""
        monkeypatch.setattr(get_config(), "engine", None)

        response = client.get("/health")

        assert response.status_code == 503
