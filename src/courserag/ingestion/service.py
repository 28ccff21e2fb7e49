"""Document ingestion pipeline for courserag."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Sequence
from uuid import uuid4

from courserag.embeddings.service import EmbeddingClient
from courserag.embeddings.store import VectorStore
from courserag.errors import CourseRAGError, IngestionError, NotFoundError
from courserag.ingestion.chunker import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE, chunk_text
from courserag.ingestion.extraction import TextExtractor
from courserag.metrics.observability import PipelineMetrics, get_logger
from courserag.models import ChunkPayload, IngestionResult
from courserag.storage.repository import RagDocumentRepository


@dataclass(frozen=True)
class IngestionConfig:
    """Configuration for document ingestion."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    embedding_workers: int = 1
    collection_prefix: str = "course-"

    def collection_name(self, course_id: int) -> str:
        return f"{self.collection_prefix}{course_id}"


def new_vector_id() -> str:
    """Random large integer id; uniqueness is best-effort."""

    return str(uuid4().int >> 64)


class DocumentIngestionPipeline:
    """Extract, chunk, embed and index one course document, then record it.

    A failure at any step aborts the ingestion and no document row is written.
    Vectors already upserted for the failed document are removed on a
    best-effort basis before the original error is re-raised.
    """

    _logger = get_logger("ingestion")

    def __init__(
        self,
        extractor: TextExtractor,
        embedder: EmbeddingClient,
        store: VectorStore,
        documents: RagDocumentRepository,
        config: IngestionConfig | None = None,
    ) -> None:
        self._extractor = extractor
        self._embedder = embedder
        self._store = store
        self._documents = documents
        self._config = config or IngestionConfig()

    def ingest(self, course_id: int, title: str, file_url: str, mime_type: str) -> IngestionResult:
        start = time.perf_counter()
        try:
            text = self._extractor.extract(file_url, mime_type)
            chunks = chunk_text(text, self._config.chunk_size, self._config.chunk_overlap)
            if not chunks:
                raise IngestionError(f"No content could be extracted from {title!r}")
        except CourseRAGError as exc:
            PipelineMetrics.record_ingestion_failure(type(exc).__name__)
            raise

        collection = self._config.collection_name(course_id)
        document_id = uuid4().hex
        upserted: List[str] = []
        try:
            self._store.ensure_collection(collection)
            vectors = self._embed_all(chunks)
            for index, (chunk, vector) in enumerate(zip(chunks, vectors)):
                payload = ChunkPayload(
                    document_id=document_id,
                    content=chunk,
                    course_id=course_id,
                    title=title,
                    chunk_index=index,
                    mime_type=mime_type,
                )
                vector_id = self._store.upsert(collection, new_vector_id(), vector, payload.to_metadata())
                upserted.append(vector_id)

            if not upserted or not upserted[0] or not upserted[0].strip():
                raise IngestionError(f"Vector store returned an invalid id for {title!r}")

            self._documents.create(
                document_id=document_id,
                course_id=course_id,
                title=title,
                content="\n".join(chunks),
                vector_id=upserted[0],
                chunk_count=len(chunks),
                mime_type=mime_type,
                file_url=file_url,
            )
        except Exception as exc:
            PipelineMetrics.record_ingestion_failure(type(exc).__name__)
            self._discard_vectors(collection, upserted)
            raise

        duration = time.perf_counter() - start
        PipelineMetrics.record_ingestion(duration, len(chunks))
        self._logger.info(
            "ingestion.complete",
            course_id=course_id,
            document_id=document_id,
            title=title,
            chunk_count=len(chunks),
            duration_seconds=duration,
        )
        return IngestionResult(document_id=document_id, chunks_processed=len(chunks))

    def delete_document(self, document_id: str, course_id: int) -> None:
        document = self._documents.get(document_id)
        if document is None or document.course_id != course_id:
            raise NotFoundError(f"Document {document_id} not found in course {course_id}")
        collection = self._config.collection_name(course_id)
        if document.vector_id:
            self._store.delete(collection, document.vector_id)
        self._store.delete_document(collection, document_id)
        self._documents.delete(document_id)
        self._logger.info("ingestion.deleted", course_id=course_id, document_id=document_id)

    def clear_course(self, course_id: int) -> int:
        self._store.clear(self._config.collection_name(course_id))
        removed = self._documents.delete_by_course(course_id)
        self._logger.info("ingestion.cleared", course_id=course_id, documents_removed=removed)
        return removed

    def _embed_all(self, chunks: Sequence[str]) -> List[List[float]]:
        workers = max(1, self._config.embedding_workers)
        if workers == 1 or len(chunks) == 1:
            return [self._embedder.embed(chunk) for chunk in chunks]
        # map() yields results in submission order
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed") as pool:
            return list(pool.map(self._embedder.embed, chunks))

    def _discard_vectors(self, collection: str, vector_ids: Sequence[str]) -> None:
        for vector_id in vector_ids:
            try:
                self._store.delete(collection, vector_id)
            except Exception as exc:  # cleanup must not mask the original error
                self._logger.warning(
                    "ingestion.cleanup_failed",
                    collection=collection,
                    vector_id=vector_id,
                    detail=str(exc),
                )
        if vector_ids:
            self._logger.warning(
                "ingestion.rolled_back",
                collection=collection,
                vectors_removed=len(vector_ids),
            )
