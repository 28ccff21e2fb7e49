"""Language-model backends for course chat."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import httpx
import openai

from courserag.errors import ConfigurationError, ProviderError
from courserag.models import ChatTurnMessage

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationConfig:
    """Configuration for answer generation."""

    model: str = "gpt-4o-mini"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 30.0
    max_retries: int = 2


class ChatModel(Protocol):
    """Protocol describing chat completion behaviour."""

    def complete(
        self,
        messages: Sequence[ChatTurnMessage],
        *,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str | None:
        """Return the text of the first choice, or ``None`` when the model gave none."""


class TemplateChatModel:
    """Deterministic chat model used for tests and offline environments."""

    def complete(
        self,
        messages: Sequence[ChatTurnMessage],
        *,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str | None:
        question = next((m.content for m in reversed(messages) if m.role == "user"), "")
        if not question:
            return None
        return f"You asked: {question}"


class OpenAIChatModel:
    """Chat model for OpenAI-compatible ``/chat/completions`` endpoints."""

    def __init__(self, config: GenerationConfig | None = None, *, http_client: httpx.Client | None = None) -> None:
        self._config = config or GenerationConfig()
        self._http_client = http_client
        self._client: openai.OpenAI | None = None

    def _get_client(self) -> openai.OpenAI:
        if not self._config.api_key:
            raise ConfigurationError("Chat model API key is not configured")
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

    def complete(
        self,
        messages: Sequence[ChatTurnMessage],
        *,
        max_tokens: int,
        temperature: float | None = None,
    ) -> str | None:
        client = self._get_client()
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        try:
            response = client.chat.completions.create(
                model=self._config.model,
                messages=[message.as_dict() for message in messages],
                max_tokens=max_tokens,
                **options,
            )
        except openai.APITimeoutError as exc:
            raise ProviderError(f"Chat completion timed out: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"Chat completion request failed: {exc}") from exc
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"Chat completion failed: {exc.status_code} - {exc.response.text}",
                status_code=exc.status_code,
                body=exc.response.text,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(f"Invalid chat completion response: {exc}") from exc
        return _first_choice_text(response)


def _first_choice_text(response: object) -> str | None:
    choices = getattr(response, "choices", None)
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content
    LOGGER.warning("Chat completion returned no text content")
    return None
