"""Embedding clients for courserag."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Protocol, Sequence

import httpx
import openai

from courserag.errors import ConfigurationError, ProviderError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding clients."""

    model: str = "text-embedding-3-small"
    dim: int = 1536
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 30.0
    max_retries: int = 2
    normalize: bool = True


class EmbeddingClient(Protocol):
    """Protocol describing embedding behaviour."""

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for one text."""

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Return one embedding vector per input text, in input order."""


class HashEmbeddingClient:
    """Deterministic lightweight embedding client used for tests and offline development."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def _hash_to_vector(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return vector

    def embed(self, text: str) -> List[float]:
        return self._hash_to_vector(text)

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._hash_to_vector(text) for text in texts]

    def close(self) -> None:
        return None


class OpenAIEmbeddingClient:
    """Embedding client for OpenAI-compatible ``/embeddings`` endpoints.

    The SDK client is built on first use, so the embedding client can be
    constructed at startup even when no API key is configured yet.
    """

    def __init__(self, config: EmbeddingConfig | None = None, *, http_client: httpx.Client | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self._http_client = http_client
        self._client: openai.OpenAI | None = None

    def _get_client(self) -> openai.OpenAI:
        if not self._config.api_key:
            raise ConfigurationError("Embedding API key is not configured")
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                max_retries=self._config.max_retries,
                http_client=self._http_client,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def embed(self, text: str) -> List[float]:
        data = self._request(text)
        return self._validate_vector(getattr(data[0], "embedding", None) if data else None)

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        data = self._request(list(texts))
        if len(data) != len(texts):
            LOGGER.error("Embedding provider returned %d vectors for %d texts", len(data), len(texts))
            raise ProviderError(f"Expected {len(texts)} embeddings, got {len(data)}")
        return [self._validate_vector(getattr(item, "embedding", None)) for item in _by_index(data)]

    def _request(self, payload_input: str | list[str]) -> list[Any]:
        client = self._get_client()
        try:
            response = client.embeddings.create(
                model=self._config.model,
                input=payload_input,
                encoding_format="float",
            )
        except openai.APITimeoutError as exc:
            raise ProviderError(f"Embedding request timed out: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"Embedding request failed: {exc}") from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"Embeddings API failed: {exc.status_code} - {exc.response.text}",
                status_code=exc.status_code,
                body=exc.response.text,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(f"Invalid embedding response: {exc}") from exc
        data = getattr(response, "data", None)
        if not isinstance(data, list):
            raise ProviderError("Invalid embedding response: missing data")
        return data

    def _validate_vector(self, vector: object) -> List[float]:
        if not isinstance(vector, list) or not vector:
            raise ProviderError("Invalid embedding response: missing vector")
        if len(vector) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vector),
            )
        return [float(value) for value in vector]


def _by_index(data: list[Any]) -> list[Any]:
    # Providers tag each vector with its input position; honour it when present.
    if all(isinstance(getattr(item, "index", None), int) for item in data):
        return sorted(data, key=lambda item: item.index)
    return data
