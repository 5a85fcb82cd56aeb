"""Flask web application exposing chat and training endpoints.

This module provides the REST API used by the web front end: questions are
answered by the knowledge engine and new content is ingested through the
training routes.
"""

import logging
import os

from dotenv import load_dotenv
from flask import Flask

from kbrag.client.routes import chat_bp, health_bp, init_config, training_bp
from kbrag.engine import KnowledgeEngine

# Configure logging
log_level = os.getenv("LOG_LEVEL", "DEBUG")
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()
logger.debug("Environment variables loaded")

# Create Flask app
app = Flask(__name__)
app.json.ensure_ascii = False
logger.debug("Flask app created")

# Register blueprints
app.register_blueprint(chat_bp)
app.register_blueprint(training_bp)
app.register_blueprint(health_bp)


def initialize_services(engine: KnowledgeEngine | None = None) -> None:
    """Create the knowledge engine on startup.

    Args:
        engine: Prebuilt engine (default: KnowledgeEngine.from_env())
    """
    logger.info("🔧 Initializing services...")
    engine = engine or KnowledgeEngine.from_env()
    init_config(engine=engine)
    logger.info("✅ Knowledge engine initialized successfully")


def create_app(engine: KnowledgeEngine | None = None) -> Flask:
    """Factory function for creating the Flask application.

    This function is used by WSGI servers like gunicorn to create the app.
    It initializes services before returning the app instance.

    Args:
        engine: Optional prebuilt engine, mainly for tests

    Returns:
        Flask: The configured Flask application instance
    """
    initialize_services(engine)
    return app


def main() -> None:
    """Entry point for the Flask application command-line interface."""
    print("🚀 Starting kbrag Flask application...")

    print("📦 Initializing knowledge engine...")
    initialize_services()
    print("✅ Services initialized successfully")

    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", "5000"))
    debug = os.getenv("FLASK_ENV", "development") == "development"

    print(f"🌐 Starting Flask server on http://{host}:{port}")
    print(f"🔧 Debug mode: {debug}")
    print("📝 Press CTRL+C to quit")

    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()
