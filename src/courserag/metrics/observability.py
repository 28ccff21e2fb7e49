"""Structured logging and Prometheus metrics for courserag.

Every component logs through :func:`get_logger`, which emits one JSON object
per line with the request correlation id merged in. Pipeline stages report
durations and counts through :class:`PipelineMetrics`; ``/metrics`` exposes
the default Prometheus registry.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

import structlog
from prometheus_client import Counter, Histogram

_SHARED_PROCESSORS = (
    structlog.contextvars.merge_contextvars,
    structlog.processors.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.JSONRenderer(),
)


def _level_number(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: int | str = logging.INFO) -> None:
    """Route structlog through stdlib logging. Only the first call takes effect."""

    if structlog.is_configured():
        return
    number = _level_number(level)
    logging.basicConfig(level=number, format="%(message)s")
    structlog.configure(
        processors=list(_SHARED_PROCESSORS),
        wrapper_class=structlog.make_filtering_bound_logger(number),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "courserag") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[None]:
    """Attach ``correlation_id`` to every log line emitted inside the block."""

    with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
        yield


class PipelineMetrics:
    """Prometheus instruments for ingestion, retrieval and generation."""

    ingestion_seconds = Histogram(
        "courserag_ingestion_duration_seconds",
        "Time spent ingesting a course document.",
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    )
    ingestion_chunks = Histogram(
        "courserag_ingestion_chunk_count",
        "Chunks produced per ingested document.",
        buckets=(0, 1, 5, 10, 20, 40, 80, 160),
    )
    ingestion_failures = Counter(
        "courserag_ingestion_failures_total",
        "Document ingestions aborted by an error.",
        ["reason"],
    )
    retrieval_seconds = Histogram(
        "courserag_retrieval_duration_seconds",
        "Time spent retrieving context chunks for a chat turn.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    retrieval_chunks = Histogram(
        "courserag_retrieved_chunk_count",
        "Number of chunks returned by retrieval.",
        buckets=(0, 1, 2, 3, 5, 8),
    )
    retrieval_failures = Counter(
        "courserag_retrieval_failures_total",
        "Chat turns that fell back to no retrieved context.",
    )
    chunk_similarity = Histogram(
        "courserag_grounding_score",
        "Similarity score of retrieved chunks.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_seconds = Histogram(
        "courserag_generation_duration_seconds",
        "Time spent waiting on the language model.",
        buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )

    @classmethod
    def record_ingestion(cls, duration_seconds: float, chunk_count: int) -> None:
        cls.ingestion_seconds.observe(duration_seconds)
        cls.ingestion_chunks.observe(chunk_count)

    @classmethod
    def record_ingestion_failure(cls, reason: str) -> None:
        cls.ingestion_failures.labels(reason=reason).inc()

    @classmethod
    def record_retrieval(cls, duration_seconds: float, scores: Iterable[float]) -> None:
        kept = [min(max(score, 0.0), 1.0) for score in scores]
        cls.retrieval_seconds.observe(duration_seconds)
        cls.retrieval_chunks.observe(len(kept))
        for score in kept:
            cls.chunk_similarity.observe(score)

    @classmethod
    def record_retrieval_failure(cls) -> None:
        cls.retrieval_failures.inc()

    @classmethod
    def record_generation(cls, duration_seconds: float) -> None:
        cls.generation_seconds.observe(duration_seconds)


@dataclass
class Elapsed:
    seconds: float = 0.0


@contextmanager
def timed_stage(record: Callable[[float], None]) -> Iterator[Elapsed]:
    """Time the block and hand the duration to ``record``, even on error."""

    elapsed = Elapsed()
    started = time.perf_counter()
    try:
        yield elapsed
    finally:
        elapsed.seconds = time.perf_counter() - started
        record(elapsed.seconds)


__all__ = [
    "Elapsed",
    "PipelineMetrics",
    "configure_logging",
    "correlation_scope",
    "get_logger",
    "timed_stage",
]
