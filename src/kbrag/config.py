"""Engine configuration.

A single explicit configuration object carries every tunable the ingestion
pipeline and the query service need. Instances are built once (usually via
``RAGConfig.from_env()``) and passed into the engine at construction time.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum

from dotenv import load_dotenv

from kbrag import constants as c

# Load environment variables
load_dotenv()


class OutputMode(str, Enum):
    """How the final answer is composed from retrieved text."""

    EXTRACTIVE = "extractive"
    CONSTRAINED = "constrained"
    GENERATIVE = "generative"


class VectorStoreKind(str, Enum):
    """Vector store backends selectable through VECTOR_STORE."""

    RAVENDB = "ravendb"
    MEMORY = "memory"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _env_list(name: str) -> list[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class RAGConfig:
    """Configuration container for ingestion and retrieval.

    Every field has a documented default taken from ``kbrag.constants``.
    Lexicons are plain fields so deployments for another language or domain
    can swap them without touching the algorithms.

    Attributes:
        chunk_size: Target chunk length in characters
        chunk_overlap: Characters shared between consecutive chunks
        top_k: Number of vector matches requested per query
        min_score: Minimum relevance score (0 disables thresholding)
        allowed_hosts: Source hosts answers may come from (empty = any)
        output_mode: extractive, constrained or generative answer composition
        strict_mode: Instruct the model to answer only from context
        super_strict_mode: Copy-only answers, extractive composition
        block_external_knowledge: Answer with the no-data message when nothing is found
        no_data_message: Canonical reply used when nothing relevant is found
        anchor_to_document_start: Pull the dominant document's intro for how-to questions
        summary_overview: Use a keyword-weighted wide extract instead of the intro
        intent_model_fallback: Let the classifier ask the chat model when undecided
    """

    # Chunking
    chunk_size: int = c.DEFAULT_CHUNK_SIZE
    chunk_overlap: int = c.DEFAULT_CHUNK_OVERLAP

    # Crawling
    max_depth: int = c.DEFAULT_MAX_DEPTH
    max_pages: int = c.DEFAULT_MAX_PAGES
    crawl_delay: float = c.CRAWL_DELAY_SECONDS

    # Retrieval
    top_k: int = c.DEFAULT_TOP_K
    min_score: float = c.DEFAULT_MIN_SCORE
    allowed_hosts: list[str] = field(default_factory=list)
    fallback_document_count: int = c.FALLBACK_DOCUMENT_COUNT
    continuation_max_chars: int = c.CONTINUATION_MAX_CHARS

    # Synthesis
    output_mode: OutputMode = OutputMode.GENERATIVE
    strict_mode: bool = True
    super_strict_mode: bool = False
    block_external_knowledge: bool = True
    no_data_message: str = c.NO_DATA_MESSAGE
    extractive_max_chars: int = c.EXTRACTIVE_MAX_CHARS
    anchor_to_document_start: bool = False
    summary_overview: bool = False
    intro_max_chars: int = c.INTRO_MAX_CHARS
    wide_extract_chars: int = c.WIDE_EXTRACT_CHARS

    # Intent classification
    intent_model_fallback: bool = True

    # Query cache
    cache_ttl_seconds: int = c.QUERY_CACHE_TTL_SECONDS
    cache_max_entries: int = c.QUERY_CACHE_MAX_ENTRIES

    # Lexicons
    question_cues: tuple[str, ...] = c.QUESTION_CUES
    question_particles: tuple[str, ...] = c.QUESTION_PARTICLES
    greeting_words: tuple[str, ...] = c.GREETING_WORDS
    meta_cues: tuple[str, ...] = c.META_CUES
    domain_keywords: tuple[str, ...] = c.DOMAIN_KEYWORDS
    out_of_scope_keywords: tuple[str, ...] = c.OUT_OF_SCOPE_KEYWORDS
    how_to_cues: tuple[str, ...] = c.HOW_TO_CUES
    stopwords: tuple[str, ...] = c.STOPWORDS
    keyword_suffixes: tuple[str, ...] = c.KEYWORD_SUFFIXES
    keyword_synonyms: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(c.KEYWORD_SYNONYMS)
    )
    overview_weights: dict[str, int] = field(default_factory=lambda: dict(c.OVERVIEW_WEIGHTS))
    small_talk_replies: tuple[str, ...] = c.SMALL_TALK_REPLIES

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.top_k <= 0:
            raise ValueError(f"top_k must be positive, got {self.top_k}")
        if not isinstance(self.output_mode, OutputMode):
            self.output_mode = OutputMode(self.output_mode)
        self.allowed_hosts = [normalize_host(h) for h in self.allowed_hosts if h]

    def with_overrides(self, **overrides) -> "RAGConfig":
        """Return a copy with the given fields replaced (None values are ignored)."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)

    @classmethod
    def from_env(cls) -> "RAGConfig":
        """Build a configuration from KBRAG_* environment variables.

        Returns:
            RAGConfig with environment overrides applied to the defaults
        """
        return cls(
            chunk_size=_env_int("KBRAG_CHUNK_SIZE", c.DEFAULT_CHUNK_SIZE),
            chunk_overlap=_env_int("KBRAG_CHUNK_OVERLAP", c.DEFAULT_CHUNK_OVERLAP),
            max_depth=_env_int("KBRAG_MAX_DEPTH", c.DEFAULT_MAX_DEPTH),
            max_pages=_env_int("KBRAG_MAX_PAGES", c.DEFAULT_MAX_PAGES),
            crawl_delay=_env_float("KBRAG_CRAWL_DELAY", c.CRAWL_DELAY_SECONDS),
            top_k=_env_int("KBRAG_TOP_K", c.DEFAULT_TOP_K),
            min_score=_env_float("KBRAG_MIN_SCORE", c.DEFAULT_MIN_SCORE),
            allowed_hosts=_env_list("KBRAG_ALLOWED_HOSTS"),
            output_mode=OutputMode(os.getenv("KBRAG_OUTPUT_MODE", OutputMode.GENERATIVE.value)),
            strict_mode=_env_bool("KBRAG_STRICT_MODE", True),
            super_strict_mode=_env_bool("KBRAG_SUPER_STRICT_MODE", False),
            block_external_knowledge=_env_bool("KBRAG_BLOCK_EXTERNAL_KNOWLEDGE", True),
            no_data_message=os.getenv("KBRAG_NO_DATA_MESSAGE", c.NO_DATA_MESSAGE),
            anchor_to_document_start=_env_bool("KBRAG_ANCHOR_TO_DOCUMENT_START", False),
            summary_overview=_env_bool("KBRAG_SUMMARY_OVERVIEW", False),
            intent_model_fallback=_env_bool("KBRAG_INTENT_MODEL_FALLBACK", True),
            cache_ttl_seconds=_env_int("KBRAG_CACHE_TTL", c.QUERY_CACHE_TTL_SECONDS),
        )


def normalize_host(host: str) -> str:
    """Lowercase a host and strip a leading ``www.``."""
    host = host.strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def get_vector_store_kind() -> VectorStoreKind:
    """Get the configured vector store backend from VECTOR_STORE (default: ravendb)."""
    return VectorStoreKind(os.getenv("VECTOR_STORE", VectorStoreKind.RAVENDB.value).lower())
