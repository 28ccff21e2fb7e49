"""Fetch course documents by URL and turn them into raw text."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Mapping, Protocol
from urllib.parse import unquote, urlparse

import httpx
from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader
from langchain_core.document_loaders import BaseLoader

from courserag.errors import ExtractionError
from courserag.metrics.observability import get_logger

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class TextExtractor(Protocol):
    """Protocol for text extraction implementations."""

    def extract(self, file_url: str, mime_type: str) -> str:
        """Return the raw text of the document at ``file_url``."""


class HttpTextExtractor:
    """Extract text from ``http(s)://`` and ``file://`` URLs.

    Plain text and unrecognized media types are decoded as UTF-8. PDF and DOCX
    are handed to the matching LangChain loader; if the loader cannot decode
    the file the whole extraction fails instead of returning partial text.
    """

    _LOADERS: Mapping[str, type[BaseLoader]] = {
        PDF_MIME: PyPDFLoader,
        DOCX_MIME: Docx2txtLoader,
    }
    _SUFFIXES: Mapping[str, str] = {
        ".pdf": PDF_MIME,
        ".docx": DOCX_MIME,
    }

    _logger = get_logger("extraction")

    def __init__(self, client: httpx.Client | None = None, *, timeout: float = 30.0) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def extract(self, file_url: str, mime_type: str) -> str:
        payload = self._fetch(file_url)
        decoder_mime = self._decoder_for(file_url, mime_type)
        if decoder_mime is None:
            text = payload.decode("utf-8", errors="replace")
        else:
            text = self._decode_with_loader(decoder_mime, payload)
        self._logger.info(
            "extraction.complete",
            url=file_url,
            mime_type=mime_type,
            characters=len(text),
        )
        return text

    def _fetch(self, file_url: str) -> bytes:
        parsed = urlparse(file_url)
        if parsed.scheme == "file":
            path = Path(unquote(parsed.path))
            try:
                return path.read_bytes()
            except OSError as exc:
                raise ExtractionError(f"Failed to fetch file: {exc}") from exc
        try:
            response = self._client.get(file_url)
        except httpx.HTTPError as exc:
            raise ExtractionError(f"Failed to fetch file: {exc}") from exc
        if not response.is_success:
            raise ExtractionError(
                f"Failed to fetch file: {response.status_code} {response.reason_phrase}",
            )
        return response.content

    def _decoder_for(self, file_url: str, mime_type: str) -> str | None:
        normalized = (mime_type or "").split(";")[0].strip().lower()
        if normalized in self._LOADERS:
            return normalized
        if normalized.startswith("text/"):
            return None
        suffix = Path(urlparse(file_url).path).suffix.lower()
        return self._SUFFIXES.get(suffix)

    def _decode_with_loader(self, decoder_mime: str, payload: bytes) -> str:
        loader_cls = self._LOADERS[decoder_mime]
        suffix = ".pdf" if decoder_mime == PDF_MIME else ".docx"
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / f"document{suffix}"
            path.write_bytes(payload)
            try:
                documents = loader_cls(str(path)).load()
            except Exception as exc:
                raise ExtractionError(
                    f"Failed to extract text from {decoder_mime} document: {exc}",
                ) from exc
        return "\n".join(document.page_content for document in documents)


__all__ = ["DOCX_MIME", "HttpTextExtractor", "PDF_MIME", "TextExtractor"]
