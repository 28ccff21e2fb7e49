from __future__ import annotations

from typing import List
from uuid import uuid4

import chromadb
from prometheus_client import REGISTRY

from courserag.embeddings.store import ChromaVectorStore
from courserag.errors import ProviderError, VectorStoreError
from courserag.models import ChunkPayload, VectorSearchHit
from courserag.retrieval import CourseRetriever, RetrievalConfig

DIM = 8
COURSE_ID = 3
QUERY_VECTOR = [1.0] + [0.0] * (DIM - 1)


class FixedEmbedder:
    def __init__(self, vector: List[float] = QUERY_VECTOR) -> None:
        self.vector = vector
        self.queries: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.queries.append(text)
        return list(self.vector)

    def embed_batch(self, texts):
        return [self.embed(text) for text in texts]


class FailingEmbedder(FixedEmbedder):
    def embed(self, text: str) -> List[float]:
        raise ProviderError("Embeddings API failed: 503 Service Unavailable", status_code=503)


class SearchSpyStore(ChromaVectorStore):
    def __init__(self) -> None:
        super().__init__(client=chromadb.EphemeralClient(), dimension=DIM)
        self.limits: List[int] = []

    def search(self, name, query_vector, limit):
        self.limits.append(limit)
        return super().search(name, query_vector, limit)


class SearchFailingStore(ChromaVectorStore):
    def __init__(self) -> None:
        super().__init__(client=chromadb.EphemeralClient(), dimension=DIM)

    def search(self, name, query_vector, limit):
        raise VectorStoreError(f"Failed to search {name}: timed out")


class CannedStore:
    def __init__(self, hits: List[VectorSearchHit]) -> None:
        self.hits = hits

    def ensure_collection(self, name: str) -> None:
        return None

    def search(self, name, query_vector, limit):
        return self.hits[:limit]


def _config() -> RetrievalConfig:
    return RetrievalConfig(collection_prefix=f"t{uuid4().hex[:10]}-")


def _vector(tilt: float) -> List[float]:
    # Cosine similarity to QUERY_VECTOR falls as tilt grows.
    return [1.0, tilt] + [0.0] * (DIM - 2)


def _failure_count() -> float:
    return REGISTRY.get_sample_value("courserag_retrieval_failures_total") or 0.0


def test_retrieve_keeps_three_best_of_five_searched():
    store = SearchSpyStore()
    config = _config()
    collection = f"{config.collection_prefix}{COURSE_ID}"
    store.ensure_collection(collection)
    tilts = [4.0, 0.0, 2.0, 0.2, 1.0, 0.5]
    for index, tilt in enumerate(tilts):
        payload = ChunkPayload(
            document_id="doc-1",
            content=f"chunk with tilt {tilt}",
            course_id=COURSE_ID,
            title="Week 2 notes",
            chunk_index=index,
            mime_type="text/plain",
        )
        store.upsert(collection, f"v{index}", _vector(tilt), payload.to_metadata())
    embedder = FixedEmbedder()

    outcome = CourseRetriever(embedder, store, config).retrieve(COURSE_ID, "What is a ribosome?")

    assert outcome.ok
    assert store.limits == [5]
    assert embedder.queries == ["What is a ribosome?"]
    assert [chunk.content for chunk in outcome.chunks] == [
        "chunk with tilt 0.0",
        "chunk with tilt 0.2",
        "chunk with tilt 0.5",
    ]
    scores = [chunk.score for chunk in outcome.chunks]
    assert scores == sorted(scores, reverse=True)
    assert all(chunk.title == "Week 2 notes" for chunk in outcome.chunks)


def test_retrieve_from_empty_course_succeeds_without_chunks():
    store = SearchSpyStore()

    outcome = CourseRetriever(FixedEmbedder(), store, _config()).retrieve(COURSE_ID, "anything")

    assert outcome.ok
    assert outcome.chunks == ()


def test_hits_without_content_are_dropped():
    hits = [
        VectorSearchHit(id="a", score=0.95, payload={"content": ""}),
        VectorSearchHit(id="b", score=0.90, payload={"content": "Ribosomes build proteins."}),
        VectorSearchHit(id="c", score=0.80, payload={"content": "Mitochondria make ATP."}),
        VectorSearchHit(id="d", score=0.70, payload={"content": "Below the cut."}),
    ]

    outcome = CourseRetriever(FixedEmbedder(), CannedStore(hits), _config()).retrieve(COURSE_ID, "cells")

    assert [chunk.content for chunk in outcome.chunks] == [
        "Ribosomes build proteins.",
        "Mitochondria make ATP.",
    ]


def test_search_failure_is_returned_not_raised():
    before = _failure_count()

    outcome = CourseRetriever(FixedEmbedder(), SearchFailingStore(), _config()).retrieve(COURSE_ID, "cells")

    assert not outcome.ok
    assert isinstance(outcome.error, VectorStoreError)
    assert outcome.context_or_empty() == ()
    assert _failure_count() == before + 1


def test_embedding_failure_is_returned_not_raised():
    store = SearchSpyStore()

    outcome = CourseRetriever(FailingEmbedder(), store, _config()).retrieve(COURSE_ID, "cells")

    assert not outcome.ok
    assert isinstance(outcome.error, ProviderError)
    assert store.limits == []
