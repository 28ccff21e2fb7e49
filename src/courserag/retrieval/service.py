"""Best-effort retrieval of course context for chat turns."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List, Protocol

from courserag.embeddings.service import EmbeddingClient
from courserag.embeddings.store import VectorStore
from courserag.metrics.observability import PipelineMetrics, get_logger
from courserag.models import RetrievalOutcome, RetrievedChunk


@dataclass(frozen=True)
class RetrievalConfig:
    """Configuration for retrieval."""

    search_limit: int = 5
    context_chunks: int = 3
    collection_prefix: str = "course-"


class Retriever(Protocol):
    """Retrieve context chunks for a query within one course."""

    def retrieve(self, course_id: int, query: str) -> RetrievalOutcome:
        """Return retrieved chunks, or the error that prevented retrieval."""


class CourseRetriever:
    """Retriever over the per-course vector collections.

    Never raises: embedding or vector-store failures come back as a failed
    :class:`RetrievalOutcome` so the caller can carry on without context.
    """

    def __init__(self, embedder: EmbeddingClient, store: VectorStore, config: RetrievalConfig | None = None) -> None:
        self._embedder = embedder
        self._store = store
        self._config = config or RetrievalConfig()
        self._logger = get_logger("retrieval")

    def retrieve(self, course_id: int, query: str) -> RetrievalOutcome:
        collection = f"{self._config.collection_prefix}{course_id}"
        start = time.perf_counter()
        try:
            self._store.ensure_collection(collection)
            vector = self._embedder.embed(query)
            hits = self._store.search(collection, vector, self._config.search_limit)
        except Exception as exc:
            PipelineMetrics.record_retrieval_failure()
            self._logger.warning(
                "retrieval.failed",
                course_id=course_id,
                error_type=type(exc).__name__,
                detail=str(exc),
            )
            return RetrievalOutcome.failure(exc)

        ranked = sorted(hits, key=lambda hit: hit.score, reverse=True)
        chunks: List[RetrievedChunk] = [
            RetrievedChunk(content=hit.content, score=hit.score, title=hit.payload.get("title"))
            for hit in ranked[: self._config.context_chunks]
            if hit.content
        ]
        duration = time.perf_counter() - start
        PipelineMetrics.record_retrieval(duration, (chunk.score for chunk in chunks))
        self._logger.info(
            "retrieval.complete",
            course_id=course_id,
            chunk_count=len(chunks),
            duration_seconds=duration,
        )
        return RetrievalOutcome.success(chunks)
