"""Helper functions for CLI commands."""

import logging

import click

from kbrag.config import VectorStoreKind, get_vector_store_kind
from kbrag.service.database import (
    RavenDBConfig,
    count_documents,
    create_database,
    database_exists,
)

logger = logging.getLogger(__name__)


def ensure_database_exists(create_if_missing: bool = False) -> bool:
    """Check if database exists, optionally create it.

    Always succeeds for the in-memory backend.

    Args:
        create_if_missing: If True, attempt to create the database

    Returns:
        True if database exists (or was created)

    Raises:
        click.Abort: If database doesn't exist and can't be created
    """
    if get_vector_store_kind() is VectorStoreKind.MEMORY:
        return True

    if database_exists():
        return True

    if create_if_missing:
        click.echo("Database does not exist. Creating database...")
        try:
            create_database()
            click.echo("✓ Database created successfully!")
            return True
        except Exception as e:
            click.echo(f"✗ Failed to create database: {e}", err=True)
            click.echo("\nPlease ensure RavenDB is running and accessible.", err=True)
            raise click.Abort()

    click.echo("✗ Error: Database does not exist!", err=True)
    click.echo("\nPlease create the database first using:", err=True)
    click.echo("  kbrag-ingest-url <url> --create-database", err=True)
    raise click.Abort()


def format_source(index: int, source: dict) -> str:
    """Format an answer source for display.

    Args:
        index: Source number (1-based)
        source: Source dict with title, source_url, category and relevance_score

    Returns:
        Formatted string for display
    """
    title = source.get("title") or source.get("id")
    location = source.get("source_url") or source.get("category", "")
    score = source.get("relevance_score", 0.0)
    return f"{index}. {title} [{location}] (score: {score:.4f})"


def get_database_info() -> tuple[str, str, int | None]:
    """Get database connection info and document count.

    Returns:
        Tuple of (url, database_name, document_count or None if error)
    """
    url = RavenDBConfig.get_url()
    db_name = RavenDBConfig.get_database_name()

    doc_count = None
    try:
        doc_count = count_documents()
    except Exception as e:
        logger.debug(f"Could not count documents: {e}")

    return url, db_name, doc_count
