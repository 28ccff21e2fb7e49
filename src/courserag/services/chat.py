"""Retrieval-augmented chat turns for course assistants."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from courserag.errors import NotFoundError
from courserag.metrics.observability import PipelineMetrics, get_logger, timed_stage
from courserag.models import ChatTurnMessage, RetrievedChunk
from courserag.retrieval.service import Retriever
from courserag.services.generation import ChatModel
from courserag.storage.repository import AiConfigurationRepository, ChatMessageRepository, CourseRepository
from courserag.storage.tables import ChatMessage, Course

DEFAULT_SYSTEM_PROMPT = (
    'You are a helpful AI assistant for the course "{title}".\n'
    "Course description: {description}\n"
    "Course transcript: {transcript}\n\n"
    "Help students understand the course content and answer their questions "
    "based on the provided materials."
)
FALLBACK_REPLY = "I couldn't generate a response."

CONTEXT_HEADER = "=== Relevant context from course documents ==="
CONTEXT_FOOTER = "=== End of relevant context ==="


@dataclass(frozen=True)
class PromptBuilderConfig:
    """Configuration for system prompt assembly."""

    max_context_chars: int = 6000
    max_document_titles: int = 10


class PromptBuilder:
    """Builds the system prompt from configuration, retrieved context and document titles."""

    def __init__(self, config: PromptBuilderConfig | None = None) -> None:
        self._config = config or PromptBuilderConfig()

    @staticmethod
    def default_prompt(course: Course) -> str:
        return DEFAULT_SYSTEM_PROMPT.format(
            title=course.title,
            description=course.description or "No description",
            transcript=course.video_transcript or "No transcript",
        )

    def build_context(self, chunks: Sequence[RetrievedChunk]) -> str:
        if not chunks:
            return ""
        budget = self._config.max_context_chars
        sections: List[str] = []
        used = 0
        for index, chunk in enumerate(chunks, start=1):
            section = f"[{index}] {chunk.content}"
            remaining = budget - used
            if remaining <= 0:
                break
            if len(section) > remaining:
                if sections:
                    break
                section = section[:remaining]
            sections.append(section)
            used += len(section)
        return "\n\n".join(sections)

    def build_documents(self, titles: Sequence[str]) -> str:
        listed = list(titles)[: self._config.max_document_titles]
        if not listed:
            return "Available documents: No documents"
        lines = "\n".join(f"- {title}" for title in listed)
        return f"Available documents:\n{lines}"

    def build_system_prompt(self, base_prompt: str, chunks: Sequence[RetrievedChunk], titles: Sequence[str]) -> str:
        parts = [base_prompt]
        context = self.build_context(chunks)
        if context:
            parts.append(f"{CONTEXT_HEADER}\n{context}\n{CONTEXT_FOOTER}")
        parts.append(self.build_documents(titles))
        return "\n\n".join(parts)


@dataclass(frozen=True)
class ChatConfig:
    """Defaults applied when a course has no stored AI configuration."""

    default_max_tokens: int = 2000


class ChatOrchestrator:
    """Runs one chat turn: persist, configure, retrieve, prompt, generate, persist."""

    def __init__(
        self,
        *,
        courses: CourseRepository,
        ai_configs: AiConfigurationRepository,
        messages: ChatMessageRepository,
        retriever: Retriever,
        model: ChatModel,
        prompt_builder: PromptBuilder | None = None,
        config: ChatConfig | None = None,
    ) -> None:
        self._courses = courses
        self._ai_configs = ai_configs
        self._messages = messages
        self._retriever = retriever
        self._model = model
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._config = config or ChatConfig()
        self._logger = get_logger("chat")

    def respond(self, user_id: int, course_id: int, message: str) -> str:
        # Stored first so a failed turn still shows the question in history.
        self._messages.add(user_id=user_id, course_id=course_id, role="user", content=message)

        course = self._courses.get(course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found")

        ai_config = self._ai_configs.get(course_id)
        if ai_config is None:
            base_prompt = self._prompt_builder.default_prompt(course)
            max_tokens = self._config.default_max_tokens
            temperature = None
        else:
            base_prompt = ai_config.system_prompt
            max_tokens = ai_config.max_tokens or self._config.default_max_tokens
            temperature = ai_config.temperature

        outcome = self._retriever.retrieve(course_id, message)
        titles = [document.title for document in self._courses.list_documents(course_id)]
        system_prompt = self._prompt_builder.build_system_prompt(base_prompt, outcome.context_or_empty(), titles)

        history = self._messages.history(user_id, course_id)
        turn_messages = [ChatTurnMessage(role="system", content=system_prompt)]
        turn_messages.extend(ChatTurnMessage(role=m.role, content=m.content) for m in history)  # type: ignore[arg-type]
        if not history or history[-1].role != "user" or history[-1].content != message:
            turn_messages.append(ChatTurnMessage(role="user", content=message))

        with timed_stage(PipelineMetrics.record_generation) as elapsed:
            text = self._model.complete(turn_messages, max_tokens=max_tokens, temperature=temperature)
        reply = text if isinstance(text, str) and text.strip() else FALLBACK_REPLY

        self._messages.add(user_id=user_id, course_id=course_id, role="assistant", content=reply)
        self._logger.info(
            "chat.complete",
            user_id=user_id,
            course_id=course_id,
            history_length=len(history),
            context_chunks=len(outcome.chunks),
            retrieval_ok=outcome.ok,
            duration_seconds=elapsed.seconds,
        )
        return reply

    def history(self, user_id: int, course_id: int) -> Sequence[ChatMessage]:
        return self._messages.history(user_id, course_id)
