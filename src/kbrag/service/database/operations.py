"""Administrative RavenDB operations: connection, indexes, database lifecycle."""

import logging

import requests
from ravendb import DocumentStore
from ravendb.documents.indexes.definitions import (
    FieldIndexing,
    FieldStorage,
    IndexDefinition,
    IndexFieldOptions,
)
from ravendb.documents.indexes.vector.options import VectorOptions
from ravendb.documents.operations.indexes import GetIndexNamesOperation, PutIndexesOperation
from ravendb.serverwide.operations.common import DeleteDatabaseOperation

from kbrag.constants import get_embedding_dimensions
from kbrag.service.database.config import (
    DOCUMENTS_COLLECTION,
    VECTOR_INDEX_NAME,
    RavenDBConfig,
)

logger = logging.getLogger(__name__)


def _resolve(url: str | None, database: str | None) -> tuple[str, str]:
    return url or RavenDBConfig.get_url(), database or RavenDBConfig.get_database_name()


def create_document_store(url: str | None = None, database: str | None = None) -> DocumentStore:
    """Create and initialize a DocumentStore instance.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())

    Returns:
        DocumentStore: Initialized DocumentStore instance
    """
    url, database = _resolve(url, database)
    store = DocumentStore([url], database)
    store.initialize()
    return store


def ensure_index_exists(store: DocumentStore, dimensions: int | None = None) -> bool:
    """Ensure the vector search index over VectorRecords exists.

    Args:
        store: Initialized DocumentStore instance
        dimensions: Embedding dimensions (defaults to EMBEDDING_DIMENSIONS)

    Returns:
        bool: True if the index was created, False if it already existed
    """
    existing_indexes = store.maintenance.send(GetIndexNamesOperation(0, 100))
    if VECTOR_INDEX_NAME in existing_indexes:
        return False

    index_definition = IndexDefinition()
    index_definition.name = VECTOR_INDEX_NAME
    index_definition.maps = {
        """from record in docs.VectorRecords
        where record.embedding != null
        select new {
            document_id = record.document_id,
            embedding = CreateField("embedding", record.embedding, new CreateFieldOptions { Storage = FieldStorage.Yes, Indexing = FieldIndexing.No })
        }"""
    }
    vector_options = VectorOptions(dimensions=dimensions or get_embedding_dimensions())
    index_definition.fields = {
        "embedding": IndexFieldOptions(
            storage=FieldStorage.YES, indexing=FieldIndexing.NO, vector=vector_options
        )
    }

    store.maintenance.send(PutIndexesOperation(index_definition))
    logger.info(f"✅ Created index {VECTOR_INDEX_NAME}")
    return True


def database_exists(url: str | None = None, database: str | None = None) -> bool:
    """Check if a database exists in RavenDB.

    Returns:
        bool: True if database exists, False otherwise
    """
    url, database = _resolve(url, database)
    try:
        response = requests.get(f"{url}/databases/{database}/stats", timeout=10)
        return response.status_code == 200
    except requests.RequestException:
        return False


def create_database(url: str | None = None, database: str | None = None) -> None:
    """Create a new database in RavenDB.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())
    """
    url, database = _resolve(url, database)
    payload = {"DatabaseName": database, "Settings": {}, "Disabled": False}
    response = requests.put(f"{url}/admin/databases", json=payload, timeout=30)
    response.raise_for_status()
    logger.info(f"✅ Created database {database}")


def delete_database(url: str | None = None, database: str | None = None) -> None:
    """Delete a database from RavenDB.

    WARNING: This operation is irreversible and will delete all data in the database.

    Args:
        url: RavenDB server URL (defaults to value from RavenDBConfig.get_url())
        database: Database name (defaults to value from RavenDBConfig.get_database_name())
    """
    url, database = _resolve(url, database)
    store = DocumentStore([url], database)
    try:
        store.initialize()
        store.maintenance.server.send(DeleteDatabaseOperation(database_name=database, hard_delete=True))
        logger.info(f"🗑️ Deleted database {database}")
    finally:
        store.close()


def get_collection_counts(url: str | None = None, database: str | None = None) -> dict[str, int]:
    """Get document counts per collection from RavenDB's collection statistics.

    Returns:
        dict[str, int]: Collection name to document count (empty if unreachable)
    """
    url, database = _resolve(url, database)
    try:
        response = requests.get(f"{url}/databases/{database}/collections/stats", timeout=10)
        response.raise_for_status()
        return dict(response.json().get("Collections", {}))
    except requests.RequestException as e:
        logger.warning(f"⚠️ Could not read collection stats: {e}")
        return {}


def count_documents(url: str | None = None, database: str | None = None) -> int:
    """Count the knowledge documents in the database."""
    return int(get_collection_counts(url, database).get(DOCUMENTS_COLLECTION, 0))
