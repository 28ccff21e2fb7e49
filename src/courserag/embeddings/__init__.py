"""Embedding clients and vector storage."""

from .service import EmbeddingClient, EmbeddingConfig, HashEmbeddingClient, OpenAIEmbeddingClient
from .store import ChromaVectorStore, VectorStore

__all__ = [
    "ChromaVectorStore",
    "EmbeddingClient",
    "EmbeddingConfig",
    "HashEmbeddingClient",
    "OpenAIEmbeddingClient",
    "VectorStore",
]
