"""Keyed lookups, inserts and updates over the relational store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import mysql, postgresql, sqlite

from courserag.errors import ConfigurationError, NotFoundError
from courserag.storage.database import Database
from courserag.storage.tables import AiConfiguration, ChatMessage, Course, CourseDocument, RagDocument

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


class CourseRepository:
    """Course and reference-document accessors."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def create(
        self,
        *,
        title: str,
        instructor_id: int,
        description: str | None = None,
        video_url: str | None = None,
        video_transcript: str | None = None,
        is_published: bool = False,
    ) -> Course:
        course = Course(
            title=title,
            instructor_id=instructor_id,
            description=description,
            video_url=video_url,
            video_transcript=video_transcript,
            is_published=is_published,
        )
        with self._db.session() as session:
            session.add(course)
            session.commit()
        return course

    def get(self, course_id: int) -> Optional[Course]:
        with self._db.session() as session:
            return session.get(Course, course_id)

    def add_document(self, course_id: int, *, title: str, document_url: str, mime_type: str | None = None) -> CourseDocument:
        document = CourseDocument(course_id=course_id, title=title, document_url=document_url, mime_type=mime_type)
        with self._db.session() as session:
            session.add(document)
            session.commit()
        return document

    def list_documents(self, course_id: int) -> List[CourseDocument]:
        with self._db.session() as session:
            result = session.execute(
                select(CourseDocument).where(CourseDocument.course_id == course_id).order_by(CourseDocument.id)
            )
            return list(result.scalars().all())


class AiConfigurationRepository:
    """Per-course AI configuration with insert-or-update keyed by ``course_id``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def get(self, course_id: int) -> Optional[AiConfiguration]:
        with self._db.session() as session:
            result = session.execute(select(AiConfiguration).where(AiConfiguration.course_id == course_id))
            return result.scalar_one_or_none()

    def upsert(self, course_id: int, *, system_prompt: str, temperature: float, max_tokens: int) -> AiConfiguration:
        """Create or update the course configuration in one statement.

        Two concurrent saves for the same course cannot both insert: the unique
        ``course_id`` turns the second insert into an update.
        """

        insert = _UPSERT_DIALECTS.get(self._db.dialect)
        if insert is None:
            raise ConfigurationError(f"Upsert is not supported for database dialect {self._db.dialect!r}")
        now = datetime.now(timezone.utc)
        values = {
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "updated_at": now,
        }
        statement = insert(AiConfiguration).values(course_id=course_id, created_at=now, **values)
        if self._db.dialect in ("mysql", "mariadb"):
            statement = statement.on_duplicate_key_update(**values)
        else:
            statement = statement.on_conflict_do_update(index_elements=[AiConfiguration.course_id], set_=values)
        with self._db.session() as session:
            session.execute(statement)
            session.commit()
        logger.info("Saved AI configuration for course %s", course_id)
        saved = self.get(course_id)
        if saved is None:
            raise NotFoundError(f"AI configuration for course {course_id} vanished after saving")
        return saved


class ChatMessageRepository:
    """Append-only chat history."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def add(self, *, user_id: int, course_id: int, role: str, content: str) -> ChatMessage:
        message = ChatMessage(user_id=user_id, course_id=course_id, role=role, content=content)
        with self._db.session() as session:
            session.add(message)
            session.commit()
        return message

    def history(self, user_id: int, course_id: int) -> List[ChatMessage]:
        with self._db.session() as session:
            result = session.execute(
                select(ChatMessage)
                .where(ChatMessage.user_id == user_id, ChatMessage.course_id == course_id)
                .order_by(ChatMessage.created_at, ChatMessage.id)
            )
            return list(result.scalars().all())


class RagDocumentRepository:
    """Metadata rows for documents ingested into the vector store."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def create(
        self,
        *,
        document_id: str,
        course_id: int,
        title: str,
        content: str,
        vector_id: str,
        chunk_count: int,
        mime_type: str | None,
        file_url: str | None,
    ) -> RagDocument:
        document = RagDocument(
            id=document_id,
            course_id=course_id,
            title=title,
            content=content,
            vector_id=vector_id,
            chunk_count=chunk_count,
            mime_type=mime_type,
            file_url=file_url,
        )
        with self._db.session() as session:
            session.add(document)
            session.commit()
        return document

    def get(self, document_id: str) -> Optional[RagDocument]:
        with self._db.session() as session:
            return session.get(RagDocument, document_id)

    def list_by_course(self, course_id: int) -> List[RagDocument]:
        with self._db.session() as session:
            result = session.execute(
                select(RagDocument).where(RagDocument.course_id == course_id).order_by(RagDocument.created_at)
            )
            return list(result.scalars().all())

    def delete(self, document_id: str) -> None:
        with self._db.session() as session:
            session.execute(delete(RagDocument).where(RagDocument.id == document_id))
            session.commit()

    def delete_by_course(self, course_id: int) -> int:
        with self._db.session() as session:
            result = session.execute(delete(RagDocument).where(RagDocument.course_id == course_id))
            session.commit()
            return int(result.rowcount or 0)


class Repositories:
    """Bundle of repositories sharing one :class:`Database`."""

    def __init__(self, database: Database) -> None:
        self.database = database
        self.courses = CourseRepository(database)
        self.ai_configs = AiConfigurationRepository(database)
        self.chat_messages = ChatMessageRepository(database)
        self.rag_documents = RagDocumentRepository(database)

