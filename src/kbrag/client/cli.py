"""Command-line interface for kbrag using Click."""

import asyncio
import logging
import os
from pathlib import Path

import click
from dotenv import load_dotenv

from kbrag.client.cli_helpers import (
    ensure_database_exists,
    format_source,
    get_database_info,
)
from kbrag.config import OutputMode
from kbrag.engine import KnowledgeEngine
from kbrag.errors import (
    ContentTooShort,
    DuplicateRejected,
    FetchFailure,
    KnowledgeEngineError,
)
from kbrag.service.database import database_exists, delete_database

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO")),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@click.command()
@click.argument("url", type=str)
@click.option("--full-site", is_flag=True, default=False, help="Crawl the site instead of a single page")
@click.option("--scope-url", type=str, default=None, help="URL bounding the crawl (default: URL)")
@click.option("--max-depth", type=int, default=None, help="Maximum link depth when crawling")
@click.option("--max-pages", type=int, default=None, help="Maximum number of pages when crawling")
@click.option("--category", type=str, default=None, help="Category stored on created documents")
@click.option("--crawl-sibling", is_flag=True, default=False, help="Also follow sibling paths of the scope")
@click.option(
    "--create-database",
    "create_database_flag",
    is_flag=True,
    default=False,
    help="Create the RavenDB database if it doesn't exist",
)
def ingest_url(
    url: str,
    full_site: bool,
    scope_url: str | None,
    max_depth: int | None,
    max_pages: int | None,
    category: str | None,
    crawl_sibling: bool,
    create_database_flag: bool,
) -> None:
    """Ingest the page at URL, or crawl its site with --full-site.

    Example:
        kbrag-ingest-url https://example.az/dəstəmaz
        kbrag-ingest-url https://example.az/fiqh/ --full-site --max-pages 50
    """
    ensure_database_exists(create_if_missing=create_database_flag)
    engine = KnowledgeEngine.from_env(with_chat=False)

    def progress(percent: int, page_url: str) -> None:
        click.echo(f"  [{percent:3d}%] {page_url}")

    click.echo(f"🌐 Ingesting {url} ({'full site' if full_site else 'single page'})")
    try:
        result = engine.ingest_url(
            url,
            single_page=not full_site,
            scope_url=scope_url,
            max_depth=max_depth,
            max_pages=max_pages,
            category=category,
            progress=progress,
            crawl_sibling=crawl_sibling,
        )
    except DuplicateRejected as e:
        click.echo(f"✗ {e} (document {e.document_id})", err=True)
        click.echo("  Use --full-site to update pages that were already trained.", err=True)
        raise click.Abort()
    except (FetchFailure, ContentTooShort) as e:
        click.echo(f"✗ {e}", err=True)
        raise click.Abort()
    except KnowledgeEngineError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    for document in result.documents:
        click.echo(f"  ✓ {document.title} ({document.chunks_count} chunks, {document.indexing_status})")
    for failure in result.failures:
        click.echo(f"  ✗ {failure['url']}: {failure['error']}", err=True)

    if not result.success:
        click.echo("✗ No pages were ingested.", err=True)
        raise click.Abort()
    click.echo(f"✓ Ingestion complete! {result.pages_ingested} page(s) stored.")


@click.command()
@click.argument("title", type=str)
@click.option("--content", type=str, default=None, help="Text to ingest")
@click.option(
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read the text from a UTF-8 file",
)
@click.option("--category", type=str, default=None, help="Category (default: manual)")
@click.option("--source", type=str, default=None, help="Free-text source label")
@click.option("--author", type=str, default=None, help="Author name")
@click.option("--language", type=str, default=None, help="Language code (default: az)")
def ingest_text(
    title: str,
    content: str | None,
    file_path: Path | None,
    category: str | None,
    source: str | None,
    author: str | None,
    language: str | None,
) -> None:
    """Ingest manually authored text under TITLE.

    Example:
        kbrag-ingest-text "Dəstəmaz qaydaları" --file dastamaz.txt
    """
    if file_path is not None:
        content = file_path.read_text(encoding="utf-8")
    if not content:
        click.echo("✗ Provide --content or --file", err=True)
        raise click.Abort()

    ensure_database_exists()
    engine = KnowledgeEngine.from_env(with_chat=False)
    try:
        document = engine.ingest_text(title, content, category, source, author, language)
    except KnowledgeEngineError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    update_count = document.metadata.get("update_count", 0)
    action = "Updated" if update_count else "Stored"
    click.echo(f"✓ {action} '{document.title}' as {document.Id} ({document.chunks_count} chunks)")


@click.command()
@click.argument("question", type=str)
@click.option("--top-k", type=int, default=None, help="Number of vector matches to consider")
@click.option("--min-score", type=float, default=None, help="Minimum relevance score")
@click.option("--host", "hosts", multiple=True, help="Only use sources from this host (repeatable)")
@click.option("--document", "document_id", type=str, default=None, help="Prefer chunks of this document")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in OutputMode]),
    default=None,
    help="Output mode (default: from KBRAG_OUTPUT_MODE)",
)
@click.option(
    "--continue-from",
    nargs=2,
    type=(str, int),
    default=None,
    help="Continue reading DOCUMENT_ID after CHUNK_INDEX",
)
def ask(
    question: str,
    top_k: int | None,
    min_score: float | None,
    hosts: tuple[str, ...],
    document_id: str | None,
    mode: str | None,
    continue_from: tuple[str, int] | None,
) -> None:
    """Answer QUESTION from the knowledge base.

    Example:
        kbrag-ask "Dəstəmaz necə alınır?"
        kbrag-ask "Namaz" --mode extractive --top-k 3
    """
    ensure_database_exists()
    engine = KnowledgeEngine.from_env()

    click.echo(f"🔍 Question: '{question}'\n")
    try:
        answer = asyncio.run(
            engine.answer_query(
                question,
                top_k=top_k,
                min_score=min_score,
                allowed_hosts=list(hosts) or None,
                restrict_to_document_id=document_id,
                continue_from=continue_from or None,
                output_mode=mode,
            )
        )
    except ConnectionError as e:
        click.echo(f"✗ Connection error: {e}", err=True)
        click.echo("\nPlease ensure the model provider and RavenDB are running.", err=True)
        raise click.Abort()
    except KnowledgeEngineError as e:
        click.echo(f"✗ Error: {e}", err=True)
        raise click.Abort()

    click.echo(answer.answer)
    if answer.sources:
        click.echo("\nSources:")
        for i, source in enumerate(answer.sources, 1):
            click.echo(format_source(i, source))
    dominant = answer.metadata.get("dominant_document_id")
    last_index = answer.metadata.get("max_used_chunk_index_for_dominant")
    if dominant is not None and last_index is not None:
        click.echo(f"\nContinue with: --continue-from {dominant} {last_index}")


@click.command()
def count() -> None:
    """Show the number of knowledge documents in the database.

    Example:
        kbrag-count
    """
    ensure_database_exists()
    _, _, doc_count = get_database_info()
    if doc_count is not None:
        click.echo(f"📊 Database contains {doc_count} knowledge document(s)")
    else:
        click.echo("✗ Error counting documents", err=True)
        raise click.Abort()


@click.command()
@click.option("--yes", "-y", is_flag=True, default=False, help="Skip confirmation prompt")
def delete_db(yes: bool) -> None:
    """Delete the RavenDB database and all its contents.

    WARNING: This is irreversible and deletes all documents, chunks, vectors and indexes.

    Example:
        kbrag-delete-db          # Will prompt for confirmation
        kbrag-delete-db --yes    # Skip confirmation
    """
    url, db_name, doc_count = get_database_info()

    if not database_exists():
        click.echo(f"✓ Database '{db_name}' does not exist at {url}")
        return

    if not yes:
        click.echo(f"⚠️  WARNING: You are about to delete the database '{db_name}'")
        click.echo(f"   Location: {url}\n")
        click.echo("This will permanently delete:")
        click.echo("  • All knowledge documents")
        click.echo("  • All chunks and vectors")
        click.echo("  • All indexes\n")

        if doc_count is not None:
            click.echo(f"📊 Current database contains: {doc_count} knowledge document(s)\n")

        if not click.confirm("Are you sure you want to proceed?", default=False):
            click.echo("Deletion cancelled.")
            return

    click.echo(f"🗑️  Deleting database '{db_name}'...")
    try:
        delete_database()
        click.echo(f"✓ Database '{db_name}' successfully deleted!")
        click.echo("\nTo create a new database, run:")
        click.echo("  kbrag-ingest-url <url> --create-database")
    except Exception as e:
        click.echo(f"✗ Error deleting database: {e}", err=True)
        raise click.Abort()


if __name__ == "__main__":
    ask()
