"""Health check API route."""

import logging

from flask import Blueprint, jsonify

from kbrag.client.routes.config import get_config
from kbrag.errors import StoreUnavailable

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint.

    Returns:
        JSON with service status; 503 when the engine or its store is unavailable
    """
    engine = get_config().engine
    if engine is None:
        return jsonify({"status": "unhealthy", "error": "engine not initialized"}), 503
    try:
        return jsonify(engine.health())
    except StoreUnavailable as e:
        logger.error(f"❌ Health check failed: {e}")
        return jsonify({"status": "unhealthy", "error": str(e)}), 503
