"""Encoding repair for fetched text.

Web pages in the target languages are frequently served as single-byte text
mislabelled as UTF-8, or as UTF-8 that was decoded once too often. The
normalizer builds a few candidate decodings, scores each one by how much it
looks like clean target-language text, and keeps the best.
"""

import codecs
import logging
import re

from kbrag.constants import (
    MOJIBAKE_MARKERS,
    MOJIBAKE_REPLACEMENTS,
    REINTERPRET_ENCODINGS,
    REPLACEMENT_CHARS,
    SINGLE_BYTE_ENCODINGS,
    TARGET_LETTERS,
)
from kbrag.text import strip_control_chars

logger = logging.getLogger(__name__)

META_CHARSET_RE = re.compile(rb"""<meta[^>]+charset\s*=\s*["']?\s*([A-Za-z0-9_\-:.]+)""", re.IGNORECASE)
MOJIBAKE_TOKEN_RE = re.compile(r"\S+")

# Longest keys first so two-character sequences win over their prefixes
_REPLACEMENTS = sorted(MOJIBAKE_REPLACEMENTS.items(), key=lambda item: len(item[0]), reverse=True)


def _canonical_encoding(name: str | None) -> str | None:
    """Python codec name for a declared charset, or None if unknown."""
    if not name:
        return None
    try:
        return codecs.lookup(name.strip().strip("\"'")).name
    except LookupError:
        return None


def detect_declared_charset(raw: bytes) -> str | None:
    """Find a ``<meta charset>`` or ``http-equiv`` charset declaration in the first 4 KB."""
    match = META_CHARSET_RE.search(raw[:4096])
    if not match:
        return None
    return _canonical_encoding(match.group(1).decode("ascii", errors="ignore"))


def has_mojibake(text: str) -> bool:
    return any(marker in text for marker in MOJIBAKE_MARKERS)


def score_candidate(text: str) -> tuple[int, int, int, int]:
    """Score decoded text; higher tuples are better.

    Args:
        text: Candidate decoding

    Returns:
        tuple: (target letters, -mojibake markers, -replacement characters, -question marks)
    """
    letters = sum(1 for ch in text if ch in TARGET_LETTERS)
    markers = sum(text.count(marker) for marker in MOJIBAKE_MARKERS)
    replacements = sum(text.count(ch) for ch in REPLACEMENT_CHARS)
    return (letters, -markers, -replacements, -text.count("?"))


def _reinterpret_token(token: str, encoding: str) -> str:
    """Undo one round of UTF-8-read-as-single-byte corruption for a token."""
    if not has_mojibake(token):
        return token
    raw = bytearray()
    for ch in token:
        try:
            raw.extend(ch.encode(encoding))
        except UnicodeEncodeError:
            try:
                raw.extend(ch.encode("latin-1"))
            except UnicodeEncodeError:
                return token
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return token


def reinterpret(text: str, encoding: str) -> str:
    """Re-decode every mojibake-bearing token of text as UTF-8 bytes in ``encoding``."""
    return MOJIBAKE_TOKEN_RE.sub(lambda m: _reinterpret_token(m.group(0), encoding), text)


def apply_replacement_map(text: str) -> str:
    for broken, fixed in _REPLACEMENTS:
        text = text.replace(broken, fixed)
    return text


def repair_candidates(text: str) -> list[str]:
    """Candidate repairs for text that carries mojibake markers."""
    if not has_mojibake(text):
        return []
    candidates = [reinterpret(text, encoding) for encoding in REINTERPRET_ENCODINGS]
    candidates.append(apply_replacement_map(text))
    return candidates


def pick_best(candidates: list[str]) -> str:
    """Highest-scoring candidate; ties keep the earliest (the original comes first)."""
    best = candidates[0]
    best_score = score_candidate(best)
    for candidate in candidates[1:]:
        candidate_score = score_candidate(candidate)
        if candidate_score > best_score:
            best, best_score = candidate, candidate_score
    return best


def _decode_candidates(raw: bytes, declared_charset: str | None) -> list[str]:
    candidates: list[str] = []
    try:
        candidates.append(raw.decode("utf-8"))
        utf8_ok = True
    except UnicodeDecodeError:
        candidates.append(raw.decode("utf-8", errors="replace"))
        utf8_ok = False

    declared = _canonical_encoding(declared_charset) or detect_declared_charset(raw)
    if declared and declared != "utf-8":
        try:
            candidates.append(raw.decode(declared))
        except UnicodeDecodeError:
            candidates.append(raw.decode(declared, errors="replace"))

    if not utf8_ok:
        for encoding in SINGLE_BYTE_ENCODINGS:
            try:
                candidates.append(raw.decode(encoding))
            except UnicodeDecodeError:
                continue
    return candidates


def _byte_level_fallback(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return "".join(ch for ch in raw if ch.isprintable() or ch.isspace())
    kept = bytes(b for b in raw if 32 <= b < 127 or b in (9, 10, 13))
    return kept.decode("ascii", errors="ignore")


class EncodingNormalizer:
    """Turn raw bytes or a possibly corrupted string into clean UTF-8 text.

    Valid UTF-8 text without mojibake markers passes through unchanged apart
    from control-character stripping, so normalizing twice equals normalizing
    once. ``normalize`` never raises.
    """

    def normalize(self, raw: bytes | str, declared_charset: str | None = None) -> str:
        """Normalize text.

        Args:
            raw: Raw response bytes or an already-decoded string
            declared_charset: Charset from the HTTP Content-Type header, if any

        Returns:
            str: Best-scoring decoding with control and zero-width characters removed
        """
        try:
            if isinstance(raw, bytes):
                candidates = _decode_candidates(raw, declared_charset)
            else:
                candidates = [raw]

            for decoded in list(candidates):
                candidates.extend(repair_candidates(decoded))

            best = pick_best(candidates)
            if best is not candidates[0]:
                logger.debug("🔧 Repaired text encoding")
            return strip_control_chars(best)
        except Exception as e:
            logger.warning(f"⚠️ Encoding normalization failed, using byte-level fallback: {e}")
            return strip_control_chars(_byte_level_fallback(raw))


_default_normalizer = EncodingNormalizer()


def normalize_text(raw: bytes | str, declared_charset: str | None = None) -> str:
    """Module-level shortcut for ``EncodingNormalizer().normalize``."""
    return _default_normalizer.normalize(raw, declared_charset)
