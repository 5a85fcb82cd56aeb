"""Training API routes: URL, free text and Q&A ingestion."""

import logging

from flask import Blueprint, jsonify, request

from kbrag.client.routes.config import get_config
from kbrag.errors import (
    ContentTooShort,
    DuplicateRejected,
    FetchFailure,
    KnowledgeEngineError,
)

logger = logging.getLogger(__name__)

training_bp = Blueprint("training", __name__)


def _error_response(e: KnowledgeEngineError):
    if isinstance(e, DuplicateRejected):
        return jsonify({"error": str(e), "document_id": e.document_id}), 409
    if isinstance(e, ContentTooShort):
        return jsonify({"error": str(e)}), 422
    if isinstance(e, FetchFailure):
        return jsonify({"error": str(e), "attempts": e.attempts}), 502
    return jsonify({"error": str(e)}), 500


@training_bp.route("/api/train/url", methods=["POST"])
def train_url():
    """Ingest a page or crawl a site.

    Request:
        {
            "url": "https://example.az/page",
            "single_page": true,       # Optional, default true
            "scope_url": "...",        # Optional, crawl boundary
            "max_depth": 3,            # Optional
            "max_pages": 100,          # Optional
            "category": "imported",    # Optional
            "crawl_sibling": false     # Optional
        }

    Returns:
        JSON with success, pages_ingested, documents and failures
    """
    engine = get_config().engine
    data = request.get_json(silent=True) or {}
    url = str(data.get("url", "")).strip()
    if not url.startswith(("http://", "https://")):
        return jsonify({"error": "A valid 'url' is required"}), 400

    logger.info(f"🌐 Training request for {url}")
    try:
        result = engine.ingest_url(
            url,
            single_page=bool(data.get("single_page", True)),
            scope_url=data.get("scope_url"),
            max_depth=data.get("max_depth"),
            max_pages=data.get("max_pages"),
            category=data.get("category"),
            crawl_sibling=bool(data.get("crawl_sibling", False)),
        )
    except KnowledgeEngineError as e:
        logger.warning(f"⚠️ URL training failed for {url}: {e}")
        return _error_response(e)

    return jsonify(result.to_dict()), 200 if result.success else 422


@training_bp.route("/api/train/text", methods=["POST"])
def train_text():
    """Ingest manually authored text.

    Request:
        {"title": "...", "content": "...", "category": "manual", "source": "...",
         "author": "...", "language": "az"}
    """
    engine = get_config().engine
    data = request.get_json(silent=True) or {}
    title = str(data.get("title", "")).strip()
    content = str(data.get("content", ""))
    if not title or not content.strip():
        return jsonify({"error": "'title' and 'content' are required"}), 400

    try:
        document = engine.ingest_text(
            title,
            content,
            category=data.get("category"),
            source=data.get("source"),
            author=data.get("author"),
            language=data.get("language"),
        )
    except KnowledgeEngineError as e:
        logger.warning(f"⚠️ Text training failed for {title!r}: {e}")
        return _error_response(e)

    return jsonify({"success": True, "document": document.to_dict()})


@training_bp.route("/api/train/qa", methods=["POST"])
def train_qa():
    """Ingest a question/answer pair.

    Request:
        {"question": "...", "answer": "...", "category": "qa", "source": "...",
         "author": "...", "language": "az"}
    """
    engine = get_config().engine
    data = request.get_json(silent=True) or {}
    question = str(data.get("question", "")).strip()
    answer = str(data.get("answer", "")).strip()
    if not question or not answer:
        return jsonify({"error": "'question' and 'answer' are required"}), 400

    try:
        document = engine.ingest_qa(
            question,
            answer,
            category=data.get("category"),
            source=data.get("source"),
            author=data.get("author"),
            language=data.get("language"),
        )
    except KnowledgeEngineError as e:
        return _error_response(e)

    return jsonify({"success": True, "document": document.to_dict()})
