"""Application-wide constants and defaults for kbrag.

This module provides a single source of truth for configuration defaults,
magic numbers, lexicons, and other constants used throughout the engine.
"""

import os

# =============================================================================
# Content Limits
# =============================================================================
MAX_CONTENT_CHARS = 500_000  # Hard cap applied before chunking and on stored content
MIN_PAGE_CONTENT_CHARS = 150  # Single-page ingestion minimum after cleaning
MIN_SITE_PAGE_CONTENT_CHARS = 200  # Full-site ingestion minimum per page
MIN_TEXT_CONTENT_CHARS = 20  # Manual text minimum
MIN_MAIN_CONTENT_CHARS = 100  # Main-content container must yield at least this much text
DOCUMENT_EMBEDDING_CHARS = 8000  # Prefix of the content used for the whole-document vector

# =============================================================================
# Chunking
# =============================================================================
DEFAULT_CHUNK_SIZE = 1024
DEFAULT_CHUNK_OVERLAP = 200
MIN_CHUNK_CHARS = 50  # Shorter chunks are dropped as noise
SENTENCE_SEARCH_RATIO = 0.2  # Look for a sentence end in the last 20% of a window
SECTION_CHUNK_SIZE = 1500

# =============================================================================
# HTTP Fetching
# =============================================================================
FETCH_CONNECT_TIMEOUT = 60
FETCH_READ_TIMEOUT = 120
FETCH_FALLBACK_TIMEOUT = 120
FETCH_HTTPX_TIMEOUT = 30
FETCH_MAX_REDIRECTS = 10
BOT_USER_AGENT = "Mozilla/5.0 (compatible; kbrag-bot/0.1; +https://example.com/bot)"
BROWSER_HEADERS = {
    "User-Agent": BOT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "az,tr,en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "no-cache",
}
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "text/plain", "application/xml", "text/xml")

# =============================================================================
# Crawling
# =============================================================================
DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_PAGES = 2000
CRAWL_DELAY_SECONDS = 0.5
UNWANTED_EXTENSIONS = (
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".zip", ".rar", ".exe",
    ".mp3", ".mp4", ".avi", ".jpg", ".jpeg", ".png", ".gif", ".css", ".js", ".json",
    ".xml", ".svg", ".ico", ".woff", ".ttf",
)
UNWANTED_PATHS = (
    "/admin", "/wp-admin", "/wp-content", "/assets", "/static", "/images", "/img", "/js",
    "/css", "/fonts", "/media", "/uploads", "/download", "/api", "/ajax",
)
SKIPPED_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

# =============================================================================
# Encoding Repair
# =============================================================================
TARGET_LETTERS = "əƏçÇğĞıİöÖşŞüÜ"
MOJIBAKE_MARKERS = ("Ã", "Å", "Ä", "Â", "É™")
REPLACEMENT_CHARS = ("�", "□", "■")
REINTERPRET_ENCODINGS = ("cp1252", "latin-1", "cp1254")
SINGLE_BYTE_ENCODINGS = ("cp1254", "iso-8859-9", "cp1252", "latin-1")
MOJIBAKE_REPLACEMENTS = {
    "Ã¶": "ö", "Ã§": "ç", "Ã¼": "ü", "Ä±": "ı", "ÅŸ": "ş", "ÄŸ": "ğ", "Ä°": "İ",
    "Ã‡": "Ç", "Ã–": "Ö", "Ãœ": "Ü", "Åž": "Ş", "Äž": "Ğ", "É™": "ə", "Æ\x8f": "Ə", "Æ": "Ə",
    "Ã¤": "ə", "Ã„Ÿ": "ğ", "Ã„±": "ı",
}

# =============================================================================
# HTML Extraction
# =============================================================================
REMOVED_TAGS = (
    "script", "style", "noscript", "iframe", "svg", "canvas", "video", "audio",
    "nav", "header", "footer", "aside", "form",
)
BOILERPLATE_NAMES = ("header", "footer", "nav", "menu", "navigation", "sidebar")
BOILERPLATE_FRAGMENTS = ("advertisement", "ads-", "cookie", "consent", "popup", "modal")
BOILERPLATE_ROLES = ("navigation", "banner", "contentinfo")
CONTENT_CONTAINER_NAMES = (
    "content", "main-content", "entry-content", "post-content", "article-content", "page-content",
)
BLOCK_TAGS = (
    "p", "div", "section", "article", "main", "h1", "h2", "h3", "h4", "h5", "h6",
    "li", "td", "th", "tr", "br", "blockquote", "pre",
)
TITLE_SEPARATORS = (" - ", " | ", " :: ", " / ", " — ", " – ")
TITLE_MIN_CHARS = 5
TITLE_MAX_CHARS = 200
IMPORTED_TITLE_PREFIX = "Imported content"
NAV_LINE_MAX_WORDS = 4  # Foreign-script lines this short are treated as menu noise

# =============================================================================
# Retrieval
# =============================================================================
DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.0
CONTEXT_SEPARATOR = "\n\n---\n\n"
CONTINUATION_MAX_CHUNKS = 12
CONTINUATION_MAX_CHARS = 2000
LEXICAL_KEYWORD_COUNT = 3
FALLBACK_DOCUMENT_COUNT = 2
FALLBACK_CHUNK_LIMIT = 6
INTRO_MAX_CHARS = 1400
INTRO_CHUNK_LIMIT = 20
WIDE_EXTRACT_CHARS = 5000
WIDE_EXTRACT_SCAN_LIMIT = 120
WIDE_EXTRACT_TOP_CHUNKS = 40
EXTRACTIVE_MAX_CHARS = 3200
EXTRACTIVE_FALLBACK_CHARS = 1200
MAX_KEYWORDS = 12
QUERY_CACHE_TTL_SECONDS = 300
QUERY_CACHE_MAX_ENTRIES = 256

# =============================================================================
# Generation Parameters
# =============================================================================
GENERATIVE_OPTIONS = {"temperature": 0.05, "max_tokens": 2000, "frequency_penalty": 0.3, "presence_penalty": 0.0}
REWRITE_OPTIONS = {"temperature": 0.05, "max_tokens": 1200, "frequency_penalty": 0.3, "presence_penalty": 0.0}
CLASSIFIER_OPTIONS = {"temperature": 0.0, "max_tokens": 8}

# =============================================================================
# Messages
# =============================================================================
NO_DATA_MESSAGE = "Bağışlayın, bu mövzu haqqında məlumat bazamda dəqiq məlumat tapılmadı."
SMALL_TALK_REPLIES = (
    "Salam! Necə kömək edə bilərəm? İslami məsələlərlə bağlı sualınız varsa, məmnuniyyətlə cavab verərəm.",
    "Salamlar! Sizə necə kömək edə bilərəm? Dini mövzuları soruşa bilərsiniz.",
    "Salam! Buyurun, sualınız varmı? Şəriət, ibadət və ya digər İslami məsələlər haqqında soruşa bilərsiniz.",
    "Salam! Xoş gördük. İslami biliklərlə bağlı sualınızı yaza bilərsiniz.",
)
QA_TITLE_PREFIX = "S&C: "
QA_DEFAULT_SOURCE = "S&C - Baza"

# =============================================================================
# Lexicons
# =============================================================================
# Matching folds both sides with kbrag.text.normalize_az, so entries may be
# written either folded or in their natural spelling.
QUESTION_CUES = ("nece", "nedir", "niye", "hara", "hardadir", "olarmi", "duzdurmu")
QUESTION_PARTICLES = ("mi", "mu")
GREETING_WORDS = ("salam", "selam", "salamlar", "merhaba", "hello", "hi", "hey", "saqol", "sag ol", "tesekkur", "tesekkurler")
META_CUES = (
    "sen yalniz", "sen sadece", "yalniz serie", "yalniz serif", "sen ne edirs", "sen ne is gorurs",
    "sen kims", "kimsen sen", "bot san", "botsan", "chatbot", "catbot", "ai botu", "ai bot",
    "ne ede bilirs",
)
DOMAIN_KEYWORDS = (
    "destemaz", "deste maz", "abdest", "wudu", "vudu", "vuzu",
    "gusl", "qusl", "ghusl", "boyuk teharet", "teyemmum",
    "namaz", "salat", "salah", "ibadet",
    "oruc", "siyam", "ruze",
    "zekat", "sadaka", "sedeqe",
    "hecc", "hac",
    "qurban", "qurbani",
    "fiqh", "fiqhi", "seriet", "shariat", "sharia",
    "halal", "haram", "mekruh", "mubah",
    "necaset", "napak", "murdar",
    "qible", "kible",
    "dua", "qunut",
    "cume namaz", "cuma namazi",
)
OUT_OF_SCOPE_KEYWORDS = (
    "php", "javascript", "python", "java", "css", "html", "react", "laravel",
    "server", "database", "mysql", "postgres", "mongodb", "api", "frontend", "backend",
    "bitcoin", "btc", "eth", "ethereum", "kripto", "crypto", "dollar", "usd", "eur",
    "seo", "marketing", "reklam", "smm",
)
HOW_TO_CUES = ("necə", "qayda", "addım", "how", "steps", "rules")
STOPWORDS = ("və", "ve", "ile", "ilə", "üçün", "the", "and", "or", "for", "with")
KEYWORD_SUFFIXES = ("nın", "nin", "nun", "nün", "dan", "dən", "ın", "in", "un", "ün", "da", "də", "ı", "i", "u", "ü", "a", "ə")
KEYWORD_SYNONYMS = {
    "vitr": ("vitr", "witir", "witr"),
    "rükət": ("rükət", "rukət", "ruket", "rakat", "raket"),
    "namaz": ("namaz", "salat", "salah"),
    "qunut": ("qunut", "dua"),
    "dəstəmaz": ("dəstəmaz", "destemaz", "destamaz", "abdest", "wudu", "wudhu", "vuzu", "təharət", "teharet"),
    "abdest": ("abdest", "dəstəmaz", "destemaz", "wudu", "vuzu", "təharət"),
    "wudu": ("wudu", "ablution", "dəstəmaz", "destemaz", "abdest"),
}
OVERVIEW_WEIGHTS = {
    "şərt": 8, "vacib": 3, "məsələ": 2, "üz": 2, "qol": 2, "baş": 2, "ayaq": 2, "məsh": 2, "yuy": 2,
}

# =============================================================================
# Default URLs and Hosts
# =============================================================================
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_RAVENDB_URL = "http://localhost:8080"
DEFAULT_RAVENDB_DATABASE = "kbrag"

# =============================================================================
# Model Defaults
# =============================================================================
CHAT_MODEL_DEFAULTS = {
    "ollama": "llama3",
    "gemini": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
}

EMBEDDING_DEFAULTS = {
    "ollama": "nomic-embed-text",
    "gemini": "text-embedding-004",
    "openai": "text-embedding-3-small",
}

# Default embedding dimensions (for the RavenDB vector index)
DEFAULT_EMBEDDING_DIMENSIONS = 768
OPENAI_EMBEDDING_DIMENSIONS = {
    "text-embedding-3-large": 3072,
    "text-embedding-3-small": 1536,
    "text-embedding-ada-002": 1536,
}


def get_embedding_model(service: str | None = None) -> str:
    """Get the default embedding model for a given LLM service.

    Checks the EMBEDDING_MODEL environment variable first, then falls back
    to service-specific defaults.

    Args:
        service: The LLM service name ("ollama", "gemini" or "openai").
                If None, uses LLM_SERVICE env var or defaults to "ollama".

    Returns:
        str: The embedding model name to use.
    """
    # Environment variable takes precedence
    env_model = os.getenv("EMBEDDING_MODEL")
    if env_model:
        return env_model

    if service is None:
        service = os.getenv("LLM_SERVICE", "ollama")

    return EMBEDDING_DEFAULTS.get(service, EMBEDDING_DEFAULTS["ollama"])


def get_embedding_dimensions() -> int:
    """Get the embedding vector dimension from EMBEDDING_DIMENSIONS or the default.

    Returns:
        int: Number of dimensions configured for vector indexes.
    """
    return int(os.getenv("EMBEDDING_DIMENSIONS", str(DEFAULT_EMBEDDING_DIMENSIONS)))
