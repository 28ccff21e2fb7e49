"""Per-course vector collections backed by Chroma."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection

from courserag.errors import VectorStoreError
from courserag.metrics.observability import get_logger
from courserag.models import VectorSearchHit

DEFAULT_DIMENSION = 1536


class VectorStore(Protocol):
    """Protocol for vector persistence backends keyed by collection name."""

    def ensure_collection(self, name: str) -> None:
        """Create the collection if it does not exist yet."""

    def upsert(self, name: str, record_id: str, vector: Sequence[float], payload: Mapping[str, Any]) -> str:
        """Insert or overwrite one vector record and return its id."""

    def search(self, name: str, query_vector: Sequence[float], limit: int) -> Sequence[VectorSearchHit]:
        """Return up to ``limit`` records, most similar first."""

    def delete(self, name: str, record_id: str) -> None:
        """Remove one record; absent records are ignored."""

    def delete_document(self, name: str, document_id: str) -> None:
        """Remove every record whose payload belongs to ``document_id``."""

    def clear(self, name: str) -> None:
        """Drop and recreate the collection empty."""

    def count(self, name: str) -> int:
        """Return the number of records in the collection."""


class ChromaVectorStore:
    """Chroma-backed vector store with one cosine collection per course.

    The Chroma client is created on first use and reused afterwards; ``close``
    releases it. Every call reaches the store, nothing is cached locally apart
    from the client handle.
    """

    _logger = get_logger("vector_store")

    def __init__(
        self,
        *,
        client: ClientAPI | None = None,
        host: str | None = None,
        port: int | None = None,
        ssl: bool = False,
        persist_directory: str | Path | None = None,
        dimension: int = DEFAULT_DIMENSION,
    ) -> None:
        self._client = client
        self._host = host
        self._port = port
        self._ssl = ssl
        self._persist_directory = persist_directory
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def client(self) -> ClientAPI:
        if self._client is None:
            try:
                if self._host:
                    self._client = chromadb.HttpClient(host=self._host, port=self._port or 8000, ssl=self._ssl)
                elif self._persist_directory is not None:
                    self._client = chromadb.PersistentClient(path=str(self._persist_directory))
                else:
                    self._client = chromadb.EphemeralClient()
            except Exception as exc:
                raise VectorStoreError(f"Failed to connect to vector store: {exc}") from exc
        return self._client

    def close(self) -> None:
        self._client = None

    def ensure_collection(self, name: str) -> None:
        self._collection(name)

    def upsert(self, name: str, record_id: str, vector: Sequence[float], payload: Mapping[str, Any]) -> str:
        self._check_dimension(vector)
        collection = self._collection(name)
        metadata = self._serialize_payload(payload)
        try:
            collection.upsert(
                ids=[record_id],
                embeddings=[list(vector)],
                documents=[str(payload.get("content", ""))],
                metadatas=[metadata],
            )
        except Exception as exc:
            raise VectorStoreError(f"Failed to upsert into {name}: {exc}") from exc
        return record_id

    def search(self, name: str, query_vector: Sequence[float], limit: int) -> Sequence[VectorSearchHit]:
        if limit <= 0:
            return []
        self._check_dimension(query_vector)
        collection = self._collection(name)
        try:
            total = int(collection.count())
            if total == 0:
                return []
            results = collection.query(
                query_embeddings=[list(query_vector)],
                n_results=min(limit, total),
                include=["metadatas", "documents", "distances"],
            )
        except Exception as exc:
            raise VectorStoreError(f"Failed to search {name}: {exc}") from exc
        hits = self._deserialize_results(results)
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    def delete(self, name: str, record_id: str) -> None:
        collection = self._collection(name)
        try:
            collection.delete(ids=[record_id])
        except Exception as exc:
            raise VectorStoreError(f"Failed to delete {record_id} from {name}: {exc}") from exc

    def delete_document(self, name: str, document_id: str) -> None:
        collection = self._collection(name)
        try:
            collection.delete(where={"documentId": document_id})
        except Exception as exc:
            raise VectorStoreError(f"Failed to delete document {document_id} from {name}: {exc}") from exc

    def clear(self, name: str) -> None:
        self.ensure_collection(name)
        try:
            self.client.delete_collection(name)
        except Exception as exc:
            raise VectorStoreError(f"Failed to drop {name}: {exc}") from exc
        self._logger.info("vector_store.cleared", collection=name)
        self.ensure_collection(name)

    def ping(self) -> None:
        try:
            self.client.heartbeat()
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Vector store is unreachable: {exc}") from exc

    def count(self, name: str) -> int:
        collection = self._collection(name)
        try:
            return int(collection.count())
        except Exception as exc:
            raise VectorStoreError(f"Failed to count {name}: {exc}") from exc

    def _collection(self, name: str) -> Collection:
        try:
            return self.client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine", "dimension": self._dimension},
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Failed to open collection {name}: {exc}") from exc

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self._dimension:
            raise VectorStoreError(
                f"Vector dimension {len(vector)} does not match collection dimension {self._dimension}",
            )

    @staticmethod
    def _serialize_payload(payload: Mapping[str, Any]) -> MutableMapping[str, Any]:
        # Chroma metadata values must be scalars.
        metadata: MutableMapping[str, Any] = {}
        for key, value in payload.items():
            if value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                metadata[key] = value
            else:
                metadata[key] = json.dumps(value, default=str)
        return metadata

    def _deserialize_results(self, results: Mapping[str, object]) -> List[VectorSearchHit]:
        ids = self._first(results.get("ids", []))
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        distances = self._first(results.get("distances", []))
        hits: List[VectorSearchHit] = []
        for index, record_id in enumerate(ids):
            metadata = dict(metadatas[index] or {}) if index < len(metadatas) else {}
            if "content" not in metadata and index < len(documents):
                metadata["content"] = documents[index] or ""
            distance = distances[index] if index < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            hits.append(VectorSearchHit(id=str(record_id), score=score, payload=metadata))
        return hits

    @staticmethod
    def _first(value: object) -> Sequence[Any]:
        if isinstance(value, list):
            return value[0] if value and value[0] is not None else []
        return []

