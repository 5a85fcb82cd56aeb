"""Heuristic intent classification with an optional model fallback."""

import logging
import re
from enum import Enum

from kbrag.config import RAGConfig
from kbrag.constants import CLASSIFIER_OPTIONS
from kbrag.llm.base import ChatProvider
from kbrag.query.prompts import build_classifier_prompt
from kbrag.text import normalize_az

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """High-level label of a user utterance."""

    SMALL_TALK = "SMALL_TALK"
    META = "META"
    FIQH_QUESTION = "FIQH_QUESTION"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"


# Patterns run against folded text (see normalize_az)
GREETING_RE = re.compile(
    r"^(salam|selam|salam aleykum|salamun aleykum|merhaba|hello|hi|hey)[.!?\s]*$"
)
HOW_ARE_YOU_RE = re.compile(r"(neces[e]n|necesen|haliniz necedir|hal-?iniz necedir)")
THANKS_RE = re.compile(r"^(tesekkur|tesekkurler|sag ol|minnetdar(am)?)[.!?\s]*$")
SHORT_SMALL_TALK_CHARS = 12


class QueryIntentClassifier:
    """Label utterances as small talk, meta, in-domain question or out of scope.

    Cheap pattern rules run first. When they are inconclusive and a chat
    provider is configured, a single-label model call decides; anything the
    model returns outside the four labels falls back to a final heuristic.
    ``classify`` never raises.
    """

    def __init__(self, config: RAGConfig | None = None, chat: ChatProvider | None = None) -> None:
        self.config = config or RAGConfig()
        self.chat = chat
        self._question_cues = [normalize_az(c) for c in self.config.question_cues]
        self._particles_re = re.compile(
            r"\b(" + "|".join(re.escape(normalize_az(p)) for p in self.config.question_particles) + r")\b"
        )
        self._greetings = {normalize_az(w) for w in self.config.greeting_words}
        self._meta_cues = [normalize_az(c) for c in self.config.meta_cues]
        self._domain_keywords = [normalize_az(k) for k in self.config.domain_keywords]
        self._out_of_scope = [normalize_az(k) for k in self.config.out_of_scope_keywords]

    def is_question(self, raw: str, folded: str | None = None) -> bool:
        folded = normalize_az(raw) if folded is None else folded
        if "?" in raw:
            return True
        if any(cue in folded for cue in self._question_cues):
            return True
        return bool(self._particles_re.search(folded))

    def is_small_talk(self, raw: str, folded: str | None = None) -> bool:
        """Greeting, thanks, "how are you", or a very short greeting word."""
        text = (normalize_az(raw) if folded is None else folded).strip()
        if not text:
            return False
        if GREETING_RE.match(text) or HOW_ARE_YOU_RE.search(text) or THANKS_RE.match(text):
            return True
        if len(text) <= SHORT_SMALL_TALK_CHARS and "?" not in raw:
            return text.strip(".! ") in self._greetings
        return False

    def is_meta(self, folded: str) -> bool:
        return any(cue in folded for cue in self._meta_cues)

    def has_domain_keywords(self, folded: str) -> bool:
        return any(keyword in folded for keyword in self._domain_keywords)

    def is_clearly_out_of_scope(self, folded: str) -> bool:
        return any(keyword in folded for keyword in self._out_of_scope)

    def classify_heuristic(self, text: str) -> Intent | None:
        """Pattern rules only; None when inconclusive."""
        raw = (text or "").strip()
        folded = normalize_az(raw)
        if not folded:
            return Intent.SMALL_TALK
        if self.is_small_talk(raw, folded):
            return Intent.SMALL_TALK
        if self.is_meta(folded):
            return Intent.META
        if self.is_question(raw, folded) and self.has_domain_keywords(folded):
            return Intent.FIQH_QUESTION
        if self.is_clearly_out_of_scope(folded):
            return Intent.OUT_OF_SCOPE
        return None

    async def classify(self, text: str) -> Intent:
        """Classify an utterance.

        Args:
            text: Raw user input

        Returns:
            Intent: Always one of the four labels
        """
        raw = (text or "").strip()
        intent = self.classify_heuristic(raw)
        used_model = False

        if intent is None and self.config.intent_model_fallback and self.chat is not None:
            intent = await self._classify_with_model(raw)
            used_model = intent is not None

        if intent is None:
            folded = normalize_az(raw)
            if self.is_question(raw, folded):
                intent = Intent.FIQH_QUESTION if self.has_domain_keywords(folded) else Intent.OUT_OF_SCOPE
            else:
                intent = Intent.SMALL_TALK

        logger.info(f"🔍 Intent {intent.value} for {raw[:60]!r} (model={used_model})")
        return intent

    async def _classify_with_model(self, raw: str) -> Intent | None:
        try:
            reply = await self.chat.generate_response(build_classifier_prompt(raw), CLASSIFIER_OPTIONS)
        except Exception as e:
            logger.warning(f"⚠️ Intent model classifier failed: {e}")
            return None
        label = re.sub(r"[^A-Z_]", "", (reply or "").strip().upper())
        try:
            return Intent(label)
        except ValueError:
            logger.debug(f"Ignoring classifier reply {reply!r}")
            return None
