"""Pytest configuration and shared fixtures for the test suite."""

import hashlib
import math
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from kbrag.config import RAGConfig
from kbrag.engine import KnowledgeEngine
from kbrag.errors import EmbeddingFailure
from kbrag.ingest.pipeline import IngestionPipeline
from kbrag.models import FetchedPage, FetchError
from kbrag.service.database import InMemoryDocumentRepository, InMemoryVectorStore
from kbrag.text import KEYWORD_TOKEN_RE, normalize_az

FAKE_DIMENSIONS = 64


# Service availability checks
def ollama_available() -> bool:
    """Check if Ollama server is running and accessible.

    Returns:
        True if Ollama is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:11434/api/tags", timeout=2)
        return response.status_code == 200
    except requests.RequestException:
        return False


def ravendb_available() -> bool:
    """Check if RavenDB server is running and accessible.

    Returns:
        True if RavenDB is available, False otherwise
    """
    try:
        response = requests.get("http://localhost:8080/databases", timeout=2)
        return response.status_code in (200, 401)  # Auth required is OK
    except requests.RequestException:
        return False


class FakeEmbedder:
    """Deterministic bag-of-words embedder.

    Every folded word of three or more letters is hashed into one of
    FAKE_DIMENSIONS buckets, so texts sharing words have positive cosine
    similarity and unrelated texts score zero.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    def embed(self, text: str) -> list[float]:
        if self.fail:
            raise EmbeddingFailure("embedding backend down")
        self.calls.append(text)
        vector = [0.0] * FAKE_DIMENSIONS
        for token in KEYWORD_TOKEN_RE.findall(normalize_az(text)):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % FAKE_DIMENSIONS
            vector[bucket] += 1.0
        norm = math.hypot(*vector)
        return [v / norm for v in vector] if norm else vector

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if self.fail:
            raise EmbeddingFailure("embedding backend down")
        self.batch_calls.append(list(texts))
        return [self.embed(text) for text in texts]

    def dimension(self) -> int:
        return FAKE_DIMENSIONS


class FakeFetcher:
    """ContentFetcher stand-in serving pages from a dict of url -> HTML."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = pages or {}
        self.requested: list[str] = []

    def fetch(self, url: str) -> FetchedPage | FetchError:
        self.requested.append(url)
        if url not in self.pages:
            return FetchError(url=url, attempts=[f"requests-session: HTTP 404 for {url}"])
        return FetchedPage(
            url=url,
            final_url=url,
            content=self.pages[url].encode("utf-8"),
            content_type="text/html; charset=utf-8",
            charset="utf-8",
            strategy="fake",
        )


PARAGRAPH = (
    "Dəstəmaz namazdan əvvəl alınır. Əvvəlcə niyyət edilir və üz yuyulur. "
    "Sonra qollar dirsəklə birlikdə yuyulur. Başın ön hissəsinə məsh çəkilir. "
    "Ən sonda ayaqların üstünə məsh çəkilir və dəstəmaz tamamlanır. "
)


def article_html(title: str, body: str, links: list[str] | None = None) -> str:
    """Minimal article page with navigation chrome around the content."""
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links or [])
    return f"""<!DOCTYPE html>
<html lang="az">
<head>
  <meta charset="utf-8">
  <title>{title} | Nümunə Sayt</title>
  <meta name="description" content="{title} haqqında">
</head>
<body>
  <nav class="menu"><a href="/">Ana səhifə</a><a href="/haqqimizda">Haqqımızda</a></nav>
  <script>var tracking = true;</script>
  <article>
    <h1>{title}</h1>
    <p>{body}</p>
  </article>
  <div class="links">{anchors}</div>
  <footer>© 2024 Nümunə Sayt</footer>
</body>
</html>"""


@pytest.fixture
def sample_html() -> str:
    """Article page about ablution with navigation and footer noise."""
    return article_html("Dəstəmaz qaydaları", PARAGRAPH * 2)


@pytest.fixture
def config() -> RAGConfig:
    """Engine configuration with crawling delay disabled."""
    return RAGConfig(crawl_delay=0)


@pytest.fixture
def repository() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def fake_chat():
    """Chat provider mock whose generate_response is an AsyncMock."""
    chat = MagicMock()
    chat.generate_response = AsyncMock(return_value="Cavab kontekstdən götürüldü.")
    return chat


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def pipeline(repository, vector_store, embedder, config, fetcher) -> IngestionPipeline:
    """Ingestion pipeline over in-memory storage and a fake fetcher."""
    return IngestionPipeline(
        repository, vector_store, embedder, config, fetcher=fetcher, sleep=lambda _: None
    )


@pytest.fixture
def engine(repository, vector_store, embedder, config, pipeline) -> KnowledgeEngine:
    """Knowledge engine without a chat provider."""
    return KnowledgeEngine(repository, vector_store, embedder, None, config, pipeline=pipeline)


@pytest.fixture
def ollama_service():
    """Provide OllamaService instance, skip if Ollama not available.

    Raises:
        pytest.skip: If Ollama server is not running
    """
    if not ollama_available():
        pytest.skip("Ollama server not running on localhost:11434")

    from kbrag.llm import OllamaService

    return OllamaService(host="http://localhost:11434", model="llama3")


@pytest.fixture
def ravendb_store():
    """Provide RavenDB DocumentStore, skip if RavenDB not available.

    Yields:
        Initialized DocumentStore instance

    Raises:
        pytest.skip: If RavenDB server is not running
    """
    if not ravendb_available():
        pytest.skip("RavenDB server not running on localhost:8080")

    from kbrag.service.database import create_document_store

    store = create_document_store()
    yield store
    store.close()
