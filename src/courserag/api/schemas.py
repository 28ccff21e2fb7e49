"""Pydantic models for the courserag API."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CourseCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    video_url: Optional[str] = None
    video_transcript: Optional[str] = None
    is_published: bool = False


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    instructor_id: int
    video_url: Optional[str] = None
    video_transcript: Optional[str] = None
    is_published: bool


class CourseDocumentRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    document_url: str = Field(..., min_length=1)
    mime_type: Optional[str] = None


class CourseDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    document_url: str
    mime_type: Optional[str] = None


class RagDocumentUrlRequest(BaseModel):
    """Ingest a document that is already reachable by URL."""

    title: str = Field(..., min_length=1, max_length=255)
    file_url: str = Field(..., min_length=1)
    mime_type: str = Field(default="text/plain")


class IngestionResponse(BaseModel):
    document_id: str = Field(..., description="Identifier of the stored document record")
    chunks_processed: int = Field(..., ge=1, description="Number of chunks embedded and indexed")


class RagDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: int
    title: str
    chunk_count: int
    mime_type: Optional[str] = None
    file_url: Optional[str] = None
    created_at: datetime


class ClearIndexResponse(BaseModel):
    course_id: int
    documents_removed: int


class AiConfigRequest(BaseModel):
    system_prompt: str = Field(..., min_length=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=100, le=4000)


class AiConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: int
    system_prompt: str
    temperature: float
    max_tokens: int


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="Student question for the course assistant")


class ChatResponse(BaseModel):
    response: str


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime


class ExamQuestionModel(BaseModel):
    id: int
    correct_answer: Optional[str] = None


class ExamScoreRequest(BaseModel):
    questions: List[ExamQuestionModel]
    answers: Dict[int, str] = Field(default_factory=dict)


class ExamScoreResponse(BaseModel):
    score: Optional[float] = Field(default=None, description="Percentage score, null when the exam has no questions")
