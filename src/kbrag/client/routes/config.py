"""Shared configuration for route modules."""

import asyncio
from dataclasses import dataclass
from typing import Any

from kbrag.engine import KnowledgeEngine


@dataclass
class RouteConfig:
    """Configuration container for Flask route dependencies."""

    engine: KnowledgeEngine | None = None


# Single shared config instance
_config = RouteConfig()


def get_config() -> RouteConfig:
    """Get the shared route configuration.

    Returns:
        RouteConfig instance with current settings
    """
    return _config


def init_config(engine: KnowledgeEngine | None = None) -> None:
    """Initialize the shared route configuration.

    Args:
        engine: Knowledge engine used by every route
    """
    if engine is not None:
        _config.engine = engine


def run_async(coro: Any) -> Any:
    """Run an async coroutine in a new event loop.

    Flask routes are synchronous; the query side of the engine is async.

    Args:
        coro: An awaitable coroutine to execute

    Returns:
        The result of the coroutine
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
        asyncio.set_event_loop(None)
