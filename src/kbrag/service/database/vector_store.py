"""Vector stores: the VectorStore contract plus in-memory and RavenDB backends.

Data-path calls (upsert, query, delete) never raise transport errors: they
log and return False or an empty result so retrieval can degrade to its
lexical fallback. Only ``health_check`` raises, for callers that need to
know the store is unusable.
"""

import logging
from typing import Any, Protocol

from ravendb import DocumentStore

from kbrag.errors import StoreUnavailable
from kbrag.models import VectorMatch, VectorRecord
from kbrag.service.database.config import VECTORS_COLLECTION
from kbrag.service.database.operations import ensure_index_exists
from kbrag.service.database.utils import cosine_similarity, matches_filter

logger = logging.getLogger(__name__)


class VectorStore(Protocol):
    """Contract for vector storage backends."""

    def upsert(self, records: list[VectorRecord]) -> bool:
        """Insert or replace records by Id. Returns False on failure."""
        ...

    def query(
        self, vector: list[float], top_k: int, filters: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        """Ranked matches, best first. Returns [] on failure."""
        ...

    def delete(self, ids: list[str]) -> bool: ...

    def delete_by_document(self, document_id: str) -> bool: ...

    def health_check(self) -> dict[str, Any]:
        """Return store status or raise StoreUnavailable."""
        ...


class InMemoryVectorStore:
    """Brute-force cosine similarity over records held in a dict."""

    def __init__(self) -> None:
        self.records: dict[str, VectorRecord] = {}

    def upsert(self, records: list[VectorRecord]) -> bool:
        for record in records:
            self.records[record.Id] = record
        return True

    def query(
        self, vector: list[float], top_k: int, filters: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        matches = [
            VectorMatch(id=record.Id, score=cosine_similarity(vector, record.embedding), metadata=dict(record.metadata))
            for record in self.records.values()
            if matches_filter(record.metadata, filters)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def delete(self, ids: list[str]) -> bool:
        for record_id in ids:
            self.records.pop(record_id, None)
        return True

    def delete_by_document(self, document_id: str) -> bool:
        doomed = [i for i, r in self.records.items() if r.document_id == document_id]
        return self.delete(doomed)

    def health_check(self) -> dict[str, Any]:
        return {"backend": "memory", "records": len(self.records)}


class RavenDBVectorStore:
    """Vector records stored in RavenDB and searched with vector_search."""

    def __init__(self, store: DocumentStore, dimensions: int | None = None) -> None:
        """Initialize the vector store.

        Args:
            store: Initialized DocumentStore instance
            dimensions: Embedding dimensions for the vector index
        """
        self.store = store
        self.dimensions = dimensions
        self._index_ready = False

    def _ensure_index(self) -> None:
        if not self._index_ready:
            ensure_index_exists(self.store, self.dimensions)
            self._index_ready = True

    def upsert(self, records: list[VectorRecord]) -> bool:
        if not records:
            return True
        try:
            self._ensure_index()
            with self.store.open_session() as session:
                for record in records:
                    existing = session.load(record.Id, object_type=VectorRecord)
                    if existing is None:
                        session.store(record, record.Id)
                        session.advanced.get_metadata_for(record)["@collection"] = VECTORS_COLLECTION
                    else:
                        existing.embedding = record.embedding
                        existing.document_id = record.document_id
                        existing.metadata = record.metadata
                session.save_changes()
            logger.info(f"✅ Upserted {len(records)} vectors")
            return True
        except Exception as e:
            logger.error(f"❌ Vector upsert failed: {e}")
            return False

    def query(
        self, vector: list[float], top_k: int, filters: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        # Over-fetch when filtering in Python so top_k survive the filter
        fetch_k = top_k * 4 if filters else top_k
        try:
            with self.store.open_session() as session:
                results = list(
                    session.query_collection(VECTORS_COLLECTION, object_type=dict)
                    .vector_search("embedding", vector)
                    .order_by_score()
                    .take(fetch_k)
                )
        except Exception as e:
            logger.warning(f"⚠️ Vector query failed: {e}")
            return []

        matches = []
        for result in results:
            metadata = result.get("metadata", {}) or {}
            if not matches_filter(metadata, filters):
                continue
            index_score = result.get("@metadata", {}).get("@index-score")
            if index_score is not None:
                score = float(index_score)
            else:
                score = cosine_similarity(vector, result.get("embedding", []))
            record_id = result.get("Id") or result.get("@metadata", {}).get("@id", "")
            matches.append(VectorMatch(id=record_id, score=score, metadata=metadata))

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    def delete(self, ids: list[str]) -> bool:
        if not ids:
            return True
        try:
            with self.store.open_session() as session:
                for record_id in ids:
                    session.delete(record_id)
                session.save_changes()
            return True
        except Exception as e:
            logger.warning(f"⚠️ Vector delete failed: {e}")
            return False

    def delete_by_document(self, document_id: str) -> bool:
        try:
            with self.store.open_session() as session:
                records = list(
                    session.query_collection(VECTORS_COLLECTION, object_type=VectorRecord)
                    .where_equals("document_id", document_id)
                )
                for record in records:
                    session.delete(record)
                session.save_changes()
            logger.info(f"🗑️ Deleted {len(records)} vectors for document {document_id}")
            return True
        except Exception as e:
            logger.warning(f"⚠️ Vector delete for document {document_id} failed: {e}")
            return False

    def health_check(self) -> dict[str, Any]:
        try:
            with self.store.open_session() as session:
                count = session.query_collection(VECTORS_COLLECTION, object_type=dict).count()
        except Exception as e:
            raise StoreUnavailable(f"RavenDB vector store unavailable: {e}") from e
        return {"backend": "ravendb", "database": self.store.database, "records": count}
