"""Flask route blueprints for the kbrag web application."""

from kbrag.client.routes.chat import chat_bp
from kbrag.client.routes.config import get_config, init_config, run_async
from kbrag.client.routes.health import health_bp
from kbrag.client.routes.training import training_bp

__all__ = [
    "chat_bp",
    "health_bp",
    "training_bp",
    "init_config",
    "get_config",
    "run_async",
]
