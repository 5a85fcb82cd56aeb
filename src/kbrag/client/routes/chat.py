"""Chat API route answering questions from the knowledge base."""

import logging

from flask import Blueprint, jsonify, request

from kbrag.client.routes.config import get_config, run_async
from kbrag.config import OutputMode
from kbrag.errors import KnowledgeEngineError, SynthesisFailure
from kbrag.models import ContinueFrom

logger = logging.getLogger(__name__)

chat_bp = Blueprint("chat", __name__)


def parse_continue_from(data: dict) -> ContinueFrom | None:
    """Read the optional continue_from object from a request body.

    Raises:
        ValueError: If continue_from is present but malformed
    """
    raw = data.get("continue_from")
    if not raw:
        return None
    if not isinstance(raw, dict) or "document_id" not in raw or "after_index" not in raw:
        raise ValueError("'continue_from' needs 'document_id' and 'after_index'")
    return ContinueFrom(document_id=str(raw["document_id"]), after_index=int(raw["after_index"]))


@chat_bp.route("/api/chat", methods=["POST"])
def chat():
    """Answer a question.

    Request:
        {
            "query": "Dəstəmaz necə alınır?",
            "top_k": 5,                      # Optional
            "min_score": 0.3,                # Optional
            "allowed_hosts": ["example.az"],  # Optional
            "restrict_to_document_id": "doc-...",  # Optional
            "continue_from": {"document_id": "doc-...", "after_index": 3},  # Optional
            "output_mode": "extractive",     # Optional
            "session_id": "uuid"             # Optional, echoed back
        }

    Response:
        {
            "response": "...",
            "sources": [{"id": ..., "title": ..., "source_url": ..., "category": ..., "relevance_score": ...}],
            "metadata": {...},
            "intent": "FIQH_QUESTION"
        }

    Returns:
        JSON response with answer, sources and metadata
    """
    engine = get_config().engine
    logger.info("📨 Received chat request")

    data = request.get_json(silent=True)
    if not data or not str(data.get("query", "")).strip() and not data.get("continue_from"):
        logger.warning("❌ Missing 'query' field in request")
        return jsonify({"error": "Missing 'query' field in request"}), 400

    try:
        continue_from = parse_continue_from(data)
        output_mode = data.get("output_mode")
        if output_mode is not None:
            output_mode = OutputMode(output_mode).value
        top_k = int(data["top_k"]) if data.get("top_k") is not None else None
        min_score = float(data["min_score"]) if data.get("min_score") is not None else None
    except (TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid request: {e}"}), 400

    query = str(data.get("query", "")).strip()
    logger.info(f"🔍 Query: '{query[:100]}'")

    try:
        intent = run_async(engine.classify_intent(query)) if query and continue_from is None else None
        answer = run_async(
            engine.answer_query(
                query,
                top_k=top_k,
                min_score=min_score,
                allowed_hosts=data.get("allowed_hosts"),
                restrict_to_document_id=data.get("restrict_to_document_id"),
                continue_from=continue_from,
                output_mode=output_mode,
            )
        )
    except SynthesisFailure as e:
        logger.error(f"❌ Answer generation failed: {e}")
        return jsonify({"error": "Answer generation failed"}), 502
    except KnowledgeEngineError as e:
        logger.error(f"❌ Error processing chat request: {e}")
        return jsonify({"error": str(e)}), 500
    except Exception as e:
        logger.error(f"❌ Error processing chat request: {e}", exc_info=True)
        return jsonify({"error": f"Internal server error: {str(e)}"}), 500

    response_data = {
        "response": answer.answer,
        "sources": answer.sources,
        "metadata": answer.metadata,
    }
    if intent is not None:
        response_data["intent"] = intent.value
    if data.get("session_id"):
        response_data["session_id"] = data["session_id"]
    logger.info("✅ Chat request completed successfully")
    return jsonify(response_data)
