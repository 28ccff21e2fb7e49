"""Relational store and blob storage collaborators."""

from .blobs import BlobStorage, LocalBlobStorage
from .database import Database
from .repository import (
    AiConfigurationRepository,
    ChatMessageRepository,
    CourseRepository,
    RagDocumentRepository,
    Repositories,
)

__all__ = [
    "AiConfigurationRepository",
    "BlobStorage",
    "ChatMessageRepository",
    "CourseRepository",
    "Database",
    "LocalBlobStorage",
    "RagDocumentRepository",
    "Repositories",
]
