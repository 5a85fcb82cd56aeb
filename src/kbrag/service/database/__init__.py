"""Storage layer: RavenDB configuration, repositories and vector stores.

This package provides a unified interface for persistence:
- Configuration management (RavenDBConfig)
- Document store creation, index management and database lifecycle
- Document/chunk repositories (in-memory and RavenDB)
- Vector stores (in-memory and RavenDB)

Usage:
    from kbrag.service.database import (
        RavenDBDocumentRepository,
        RavenDBVectorStore,
        create_document_store,
    )
"""

from kbrag.service.database.config import RavenDBConfig
from kbrag.service.database.operations import (
    count_documents,
    create_database,
    create_document_store,
    database_exists,
    delete_database,
    ensure_index_exists,
    get_collection_counts,
)
from kbrag.service.database.repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
    RavenDBDocumentRepository,
)
from kbrag.service.database.utils import cosine_similarity, vector_id_for
from kbrag.service.database.vector_store import (
    InMemoryVectorStore,
    RavenDBVectorStore,
    VectorStore,
)

__all__ = [
    # Config
    "RavenDBConfig",
    # Operations
    "create_document_store",
    "ensure_index_exists",
    "database_exists",
    "create_database",
    "delete_database",
    "count_documents",
    "get_collection_counts",
    # Repositories
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "RavenDBDocumentRepository",
    # Vector stores
    "VectorStore",
    "InMemoryVectorStore",
    "RavenDBVectorStore",
    # Utils
    "cosine_similarity",
    "vector_id_for",
]
