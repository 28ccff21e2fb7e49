from __future__ import annotations

from uuid import uuid4

import chromadb
import pytest

from courserag.embeddings.service import EmbeddingConfig, HashEmbeddingClient
from courserag.embeddings.store import ChromaVectorStore
from courserag.errors import VectorStoreError
from courserag.models import ChunkPayload

DIM = 8


def _store() -> ChromaVectorStore:
    return ChromaVectorStore(client=chromadb.EphemeralClient(), dimension=DIM)


def _collection() -> str:
    return f"test-{uuid4().hex[:12]}"


def _payload(document_id: str, content: str, index: int) -> dict:
    return ChunkPayload(
        document_id=document_id,
        content=content,
        course_id=1,
        title="Week 1",
        chunk_index=index,
        mime_type="text/plain",
    ).to_metadata()


def test_upsert_and_search_returns_most_similar_first():
    embedder = HashEmbeddingClient(EmbeddingConfig(dim=DIM))
    store = _store()
    name = _collection()
    store.ensure_collection(name)
    texts = ["alpha beta gamma", "lorem ipsum", "mitochondria"]
    for index, text in enumerate(texts):
        assert store.upsert(name, f"v{index}", embedder.embed(text), _payload("d1", text, index)) == f"v{index}"

    hits = store.search(name, embedder.embed("lorem ipsum"), limit=2)

    assert len(hits) == 2
    assert hits[0].id == "v1"
    assert hits[0].content == "lorem ipsum"
    assert hits[0].payload["documentId"] == "d1"
    assert hits[0].payload["chunkIndex"] == 1
    assert hits[0].score >= hits[1].score


def test_search_empty_collection_returns_nothing():
    store = _store()
    assert store.search(_collection(), [0.1] * DIM, limit=5) == []


def test_search_with_non_positive_limit_returns_nothing():
    store = _store()
    assert store.search(_collection(), [0.1] * DIM, limit=0) == []


def test_dimension_mismatch_is_rejected():
    store = _store()
    with pytest.raises(VectorStoreError):
        store.upsert(_collection(), "v1", [0.1, 0.2], _payload("d1", "text", 0))


def test_delete_document_removes_only_its_vectors():
    embedder = HashEmbeddingClient(EmbeddingConfig(dim=DIM))
    store = _store()
    name = _collection()
    store.upsert(name, "a0", embedder.embed("a0"), _payload("doc-a", "a0", 0))
    store.upsert(name, "a1", embedder.embed("a1"), _payload("doc-a", "a1", 1))
    store.upsert(name, "b0", embedder.embed("b0"), _payload("doc-b", "b0", 0))

    store.delete_document(name, "doc-a")

    assert store.count(name) == 1
    assert [hit.id for hit in store.search(name, embedder.embed("a0"), limit=5)] == ["b0"]


def test_delete_and_clear():
    embedder = HashEmbeddingClient(EmbeddingConfig(dim=DIM))
    store = _store()
    name = _collection()
    store.upsert(name, "x", embedder.embed("x"), _payload("d", "x", 0))
    store.upsert(name, "y", embedder.embed("y"), _payload("d", "y", 1))

    store.delete(name, "x")
    assert store.count(name) == 1

    store.clear(name)
    assert store.count(name) == 0


def test_ping_reaches_client():
    _store().ping()
