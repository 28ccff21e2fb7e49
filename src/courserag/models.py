"""Shared domain models used across the courserag pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence

Role = Literal["user", "admin"]
ChatRole = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Principal:
    """Identity resolved by the authentication collaborator."""

    user_id: int
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class ChunkPayload:
    """Payload stored alongside every chunk vector."""

    document_id: str
    content: str
    course_id: int
    title: str
    chunk_index: int
    mime_type: str

    def to_metadata(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "content": self.content,
            "courseId": self.course_id,
            "title": self.title,
            "chunkIndex": self.chunk_index,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True)
class VectorSearchHit:
    """Record returned by a similarity search, most similar first."""

    id: str
    score: float
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def content(self) -> str:
        return str(self.payload.get("content", ""))


@dataclass(frozen=True)
class RetrievedChunk:
    """Chunk content kept for the prompt, with its similarity score."""

    content: str
    score: float
    title: str | None = None


@dataclass(frozen=True)
class RetrievalOutcome:
    """Result of a best-effort retrieval: either chunks or the error that prevented them."""

    chunks: Sequence[RetrievedChunk] = ()
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, chunks: Sequence[RetrievedChunk]) -> "RetrievalOutcome":
        return cls(chunks=tuple(chunks))

    @classmethod
    def failure(cls, error: Exception) -> "RetrievalOutcome":
        return cls(chunks=(), error=error)

    def context_or_empty(self) -> Sequence[RetrievedChunk]:
        return self.chunks if self.ok else ()


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of ingesting a single course document."""

    document_id: str
    chunks_processed: int


@dataclass(frozen=True)
class ChatTurnMessage:
    """One message in the sequence sent to the language model."""

    role: ChatRole
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}
