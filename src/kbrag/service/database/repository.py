"""Document and chunk persistence.

Two implementations share the DocumentRepository protocol: an in-memory one
for tests and single-process use, and a RavenDB one for deployments.
"""

import logging
from dataclasses import fields
from typing import Protocol

from ravendb import DocumentStore

from kbrag.errors import StoreUnavailable
from kbrag.models import KnowledgeChunk, KnowledgeDocument, utc_now
from kbrag.service.database.config import CHUNKS_COLLECTION, DOCUMENTS_COLLECTION
from kbrag.service.database.utils import new_id
from kbrag.text import host_of, normalize_az

logger = logging.getLogger(__name__)


class DocumentRepository(Protocol):
    """Storage contract for documents and their chunks."""

    def save_document(self, document: KnowledgeDocument) -> KnowledgeDocument:
        """Insert or update a document, assigning an Id when missing."""
        ...

    def get_document(self, document_id: str) -> KnowledgeDocument | None: ...

    def get_documents(self, document_ids: list[str]) -> dict[str, KnowledgeDocument]: ...

    def find_by_source_url(self, source_url: str) -> KnowledgeDocument | None: ...

    def find_manual_by_title(self, title: str) -> KnowledgeDocument | None:
        """Find a document without source_url by exact title."""
        ...

    def delete_document(self, document_id: str) -> bool: ...

    def count_documents(self) -> int: ...

    def save_chunks(self, chunks: list[KnowledgeChunk]) -> list[KnowledgeChunk]: ...

    def get_chunks(self, chunk_ids: list[str]) -> dict[str, KnowledgeChunk]: ...

    def list_chunks(self, document_id: str) -> list[KnowledgeChunk]:
        """All chunks of a document ordered by chunk_index."""
        ...

    def delete_chunks(self, document_id: str) -> int: ...

    def search_chunks(
        self, keywords: list[str], limit: int, allowed_hosts: list[str] | None = None
    ) -> list[tuple[KnowledgeChunk, KnowledgeDocument]]:
        """Lexical search: chunks containing any keyword, best matches first."""
        ...


def _keyword_hits(content: str, keywords: list[str]) -> int:
    folded = normalize_az(content)
    return sum(1 for keyword in keywords if keyword and normalize_az(keyword) in folded)


def _host_allowed(document: KnowledgeDocument, allowed_hosts: list[str] | None) -> bool:
    if not allowed_hosts:
        return True
    return host_of(document.source_url) in allowed_hosts


def rank_lexical(
    pairs: list[tuple[KnowledgeChunk, KnowledgeDocument]],
    keywords: list[str],
    limit: int,
    allowed_hosts: list[str] | None = None,
) -> list[tuple[KnowledgeChunk, KnowledgeDocument]]:
    """Keep pairs with at least one keyword hit, most hits first, capped at limit."""
    scored = []
    for chunk, document in pairs:
        if not _host_allowed(document, allowed_hosts):
            continue
        hits = _keyword_hits(chunk.content, keywords)
        if hits:
            scored.append((hits, chunk, document))
    scored.sort(key=lambda item: (-item[0], item[2].Id or "", item[1].chunk_index))
    return [(chunk, document) for _, chunk, document in scored[:limit]]


class InMemoryDocumentRepository:
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        self.documents: dict[str, KnowledgeDocument] = {}
        self.chunks: dict[str, KnowledgeChunk] = {}

    def save_document(self, document: KnowledgeDocument) -> KnowledgeDocument:
        if not document.Id:
            document.Id = new_id("doc")
        document.updated_at = utc_now()
        self.documents[document.Id] = document
        return document

    def get_document(self, document_id: str) -> KnowledgeDocument | None:
        return self.documents.get(document_id)

    def get_documents(self, document_ids: list[str]) -> dict[str, KnowledgeDocument]:
        return {i: self.documents[i] for i in document_ids if i in self.documents}

    def find_by_source_url(self, source_url: str) -> KnowledgeDocument | None:
        for document in self.documents.values():
            if document.source_url == source_url:
                return document
        return None

    def find_manual_by_title(self, title: str) -> KnowledgeDocument | None:
        for document in self.documents.values():
            if not document.source_url and document.title == title:
                return document
        return None

    def delete_document(self, document_id: str) -> bool:
        self.delete_chunks(document_id)
        return self.documents.pop(document_id, None) is not None

    def count_documents(self) -> int:
        return len(self.documents)

    def save_chunks(self, chunks: list[KnowledgeChunk]) -> list[KnowledgeChunk]:
        for chunk in chunks:
            if not chunk.Id:
                chunk.Id = new_id("chunk")
            self.chunks[chunk.Id] = chunk
        return chunks

    def get_chunks(self, chunk_ids: list[str]) -> dict[str, KnowledgeChunk]:
        return {i: self.chunks[i] for i in chunk_ids if i in self.chunks}

    def list_chunks(self, document_id: str) -> list[KnowledgeChunk]:
        chunks = [c for c in self.chunks.values() if c.document_id == document_id]
        return sorted(chunks, key=lambda c: c.chunk_index)

    def delete_chunks(self, document_id: str) -> int:
        doomed = [i for i, c in self.chunks.items() if c.document_id == document_id]
        for chunk_id in doomed:
            del self.chunks[chunk_id]
        return len(doomed)

    def search_chunks(
        self, keywords: list[str], limit: int, allowed_hosts: list[str] | None = None
    ) -> list[tuple[KnowledgeChunk, KnowledgeDocument]]:
        pairs = [
            (chunk, self.documents[chunk.document_id])
            for chunk in self.chunks.values()
            if chunk.document_id in self.documents
        ]
        return rank_lexical(pairs, keywords, limit, allowed_hosts)


class RavenDBDocumentRepository:
    """RavenDB-backed repository.

    Each operation opens its own session, mirroring the short-lived,
    request-scoped use of the store.
    """

    def __init__(self, store: DocumentStore) -> None:
        """Initialize the repository.

        Args:
            store: Initialized DocumentStore (see create_document_store)
        """
        self.store = store

    def _store_entity(self, session, entity, entity_id: str, collection: str) -> None:
        existing = session.load(entity_id, object_type=type(entity))
        if existing is None:
            session.store(entity, entity_id)
            session.advanced.get_metadata_for(entity)["@collection"] = collection
            return
        for f in fields(entity):
            setattr(existing, f.name, getattr(entity, f.name))

    def save_document(self, document: KnowledgeDocument) -> KnowledgeDocument:
        if not document.Id:
            document.Id = new_id("doc")
        document.updated_at = utc_now()
        try:
            with self.store.open_session() as session:
                self._store_entity(session, document, document.Id, DOCUMENTS_COLLECTION)
                session.save_changes()
        except Exception as e:
            logger.error(f"❌ Failed to save document {document.Id}: {e}")
            raise StoreUnavailable(f"Failed to save document: {e}") from e
        return document

    def get_document(self, document_id: str) -> KnowledgeDocument | None:
        with self.store.open_session() as session:
            return session.load(document_id, object_type=KnowledgeDocument)

    def get_documents(self, document_ids: list[str]) -> dict[str, KnowledgeDocument]:
        if not document_ids:
            return {}
        with self.store.open_session() as session:
            loaded = session.load(list(dict.fromkeys(document_ids)), object_type=KnowledgeDocument)
        return {doc_id: doc for doc_id, doc in loaded.items() if doc is not None}

    def _query_documents(self, field_name: str, value: str) -> list[KnowledgeDocument]:
        with self.store.open_session() as session:
            return list(
                session.query_collection(DOCUMENTS_COLLECTION, object_type=KnowledgeDocument)
                .where_equals(field_name, value)
            )

    def find_by_source_url(self, source_url: str) -> KnowledgeDocument | None:
        matches = self._query_documents("source_url", source_url)
        return matches[0] if matches else None

    def find_manual_by_title(self, title: str) -> KnowledgeDocument | None:
        for document in self._query_documents("title", title):
            if not document.source_url:
                return document
        return None

    def delete_document(self, document_id: str) -> bool:
        self.delete_chunks(document_id)
        with self.store.open_session() as session:
            document = session.load(document_id, object_type=KnowledgeDocument)
            if document is None:
                return False
            session.delete(document)
            session.save_changes()
        return True

    def count_documents(self) -> int:
        with self.store.open_session() as session:
            return session.query_collection(DOCUMENTS_COLLECTION, object_type=dict).count()

    def save_chunks(self, chunks: list[KnowledgeChunk]) -> list[KnowledgeChunk]:
        with self.store.open_session() as session:
            for chunk in chunks:
                if not chunk.Id:
                    chunk.Id = new_id("chunk")
                self._store_entity(session, chunk, chunk.Id, CHUNKS_COLLECTION)
            session.save_changes()
        return chunks

    def get_chunks(self, chunk_ids: list[str]) -> dict[str, KnowledgeChunk]:
        if not chunk_ids:
            return {}
        with self.store.open_session() as session:
            loaded = session.load(list(dict.fromkeys(chunk_ids)), object_type=KnowledgeChunk)
        return {chunk_id: chunk for chunk_id, chunk in loaded.items() if chunk is not None}

    def list_chunks(self, document_id: str) -> list[KnowledgeChunk]:
        with self.store.open_session() as session:
            chunks = list(
                session.query_collection(CHUNKS_COLLECTION, object_type=KnowledgeChunk)
                .where_equals("document_id", document_id)
            )
        return sorted(chunks, key=lambda c: c.chunk_index)

    def delete_chunks(self, document_id: str) -> int:
        with self.store.open_session() as session:
            chunks = list(
                session.query_collection(CHUNKS_COLLECTION, object_type=KnowledgeChunk)
                .where_equals("document_id", document_id)
            )
            for chunk in chunks:
                session.delete(chunk)
            session.save_changes()
        return len(chunks)

    def search_chunks(
        self, keywords: list[str], limit: int, allowed_hosts: list[str] | None = None
    ) -> list[tuple[KnowledgeChunk, KnowledgeDocument]]:
        terms = " ".join(k for k in keywords if k)
        if not terms:
            return []
        with self.store.open_session() as session:
            chunks = list(
                session.advanced.raw_query(
                    f"from {CHUNKS_COLLECTION} where search(content, $terms) limit {limit * 4}",
                    object_type=KnowledgeChunk,
                )
                .add_parameter("terms", terms)
            )
        documents = self.get_documents([c.document_id for c in chunks])
        pairs = [(c, documents[c.document_id]) for c in chunks if c.document_id in documents]
        return rank_lexical(pairs, keywords, limit, allowed_hosts)
