"""Document ingestion pipeline."""

from .chunker import chunk_text
from .extraction import HttpTextExtractor, TextExtractor
from .service import DocumentIngestionPipeline, IngestionConfig, new_vector_id

__all__ = [
    "DocumentIngestionPipeline",
    "HttpTextExtractor",
    "IngestionConfig",
    "TextExtractor",
    "chunk_text",
    "new_vector_id",
]
