"""Text helpers shared by ingestion, intent classification and retrieval."""

import re
import unicodedata
from collections.abc import Iterable, Mapping
from urllib.parse import urlparse

from kbrag.config import normalize_host
from kbrag.constants import MAX_KEYWORDS, STOPWORDS, KEYWORD_SUFFIXES, KEYWORD_SYNONYMS

# Azerbaijani/Turkish letters folded to ASCII for matching
_FOLD_MAP = str.maketrans({
    "ə": "e", "Ə": "e", "ı": "i", "İ": "i", "ş": "s", "Ş": "s", "ç": "c", "Ç": "c",
    "ö": "o", "Ö": "o", "ü": "u", "Ü": "u", "ğ": "g", "Ğ": "g",
})

CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
FORMAT_CHARS_RE = re.compile("[\u200b-\u200d\ufeff\u0080-\u009f]")
SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?\n])\s+")
SENTENCE_END_RE = re.compile(r"[.!?…]\s*$")
CLEAN_START_RE = re.compile(r"^(Məsələ\s*\d+|[A-ZƏİIŞÇÖÜĞ])")
KEYWORD_TOKEN_RE = re.compile(r"[^\W\d_]{3,}")

_TERMINATORS = (".", "!", "?", "…", "\n")


def normalize_az(text: str) -> str:
    """Lowercase and fold Azerbaijani letters, then drop combining marks.

    Args:
        text: Any text

    Returns:
        str: Folded text suitable for substring matching
    """
    folded = text.translate(_FOLD_MAP).lower()
    decomposed = unicodedata.normalize("NFKD", folded)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def strip_control_chars(text: str) -> str:
    """Remove ASCII control characters, zero-width characters and C1 controls."""
    return FORMAT_CHARS_RE.sub("", CONTROL_CHARS_RE.sub("", text))


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def ends_with_sentence_terminator(text: str) -> bool:
    return bool(SENTENCE_END_RE.search(text))


def starts_cleanly(text: str) -> bool:
    """True when text starts with an uppercase letter or a numbered heading."""
    return bool(CLEAN_START_RE.match(text))


def last_terminator_position(text: str) -> int:
    """Index of the last sentence terminator in text, or -1."""
    return max(text.rfind(t) for t in _TERMINATORS)


def smart_trim_to_sentence(text: str, max_chars: int) -> str:
    """Trim text to at most max_chars, ending on a sentence terminator when one exists.

    Args:
        text: Text to trim
        max_chars: Character budget

    Returns:
        str: Trimmed text (right-stripped)
    """
    if len(text) <= max_chars and ends_with_sentence_terminator(text):
        return text
    snippet = text[:max_chars]
    pos = last_terminator_position(snippet)
    if pos > 0:
        return snippet[: pos + 1].rstrip()
    return snippet.rstrip()


def split_sentences(text: str) -> list[str]:
    return [s for s in SENTENCE_SPLIT_RE.split(text) if s]


def contains_any(text: str, needles: Iterable[str]) -> bool:
    """Folded substring match of any needle against text."""
    haystack = normalize_az(text)
    return any(normalize_az(n) in haystack for n in needles if n)


def extract_keywords(
    question: str,
    stopwords: Iterable[str] = STOPWORDS,
    suffixes: Iterable[str] = KEYWORD_SUFFIXES,
    synonyms: Mapping[str, Iterable[str]] = KEYWORD_SYNONYMS,
    limit: int = MAX_KEYWORDS,
) -> list[str]:
    """Extract search keywords from a question.

    Tokens of three or more letters are kept unless they are stopwords.
    Each token also contributes its base form with a common suffix removed,
    and any configured synonyms.

    Args:
        question: User question
        stopwords: Tokens to drop
        suffixes: Suffixes stripped to form base words
        synonyms: Token -> variants expansion map
        limit: Maximum number of keywords returned

    Returns:
        list[str]: Unique keywords in discovery order
    """
    stop = set(stopwords)
    tokens = [t for t in KEYWORD_TOKEN_RE.findall(question.strip().lower()) if t not in stop]

    normalized: list[str] = []
    for token in tokens:
        normalized.append(token)
        for suffix in suffixes:
            if len(token) > len(suffix) + 2 and token.endswith(suffix):
                base = token[: -len(suffix)]
                if len(base) >= 3:
                    normalized.append(base)

    expanded: list[str] = []
    for token in normalized:
        expanded.append(token)
        expanded.extend(synonyms.get(token, ()))

    unique = list(dict.fromkeys(t for t in expanded if t))
    return unique[:limit]


def host_of(url: str | None) -> str:
    """Normalized host of a URL (lowercase, no leading www.), or empty string."""
    if not url:
        return ""
    return normalize_host(urlparse(url).hostname or "")
