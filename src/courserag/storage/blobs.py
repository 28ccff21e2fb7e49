"""Blob storage for uploaded course files."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from courserag.metrics.observability import get_logger

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStorage(Protocol):
    """Protocol for blob storage backends."""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return a URL it can be fetched from."""


class LocalBlobStorage:
    """Store blobs on the local filesystem and hand out ``file://`` URLs."""

    _logger = get_logger("blobs")

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        destination = self._root / self._safe_key(key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        self._logger.info("blob.stored", key=key, content_type=content_type, size=len(data))
        return destination.resolve().as_uri()

    @staticmethod
    def _safe_key(key: str) -> Path:
        parts = [_UNSAFE_KEY_CHARS.sub("_", part) for part in key.split("/")]
        parts = [part for part in parts if part and part not in (".", "..")]
        if not parts:
            raise ValueError(f"Invalid blob key: {key!r}")
        return Path(*parts)
