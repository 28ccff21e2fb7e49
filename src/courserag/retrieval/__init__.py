"""Retrieval components."""

from .service import CourseRetriever, RetrievalConfig, Retriever

__all__ = ["CourseRetriever", "RetrievalConfig", "Retriever"]
