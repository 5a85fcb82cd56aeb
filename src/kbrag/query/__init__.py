"""Query side: intent classification, retrieval, answer synthesis."""

from kbrag.query.cache import QueryCache
from kbrag.query.intent import Intent, QueryIntentClassifier
from kbrag.query.retrieval import RetrievalEngine
from kbrag.query.service import QueryService
from kbrag.query.synthesis import AnswerSynthesizer, detect_hallucination

__all__ = [
    "AnswerSynthesizer",
    "Intent",
    "QueryCache",
    "QueryIntentClassifier",
    "QueryService",
    "RetrievalEngine",
    "detect_hallucination",
]
