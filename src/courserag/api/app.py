"""FastAPI application exposing courserag services."""

from __future__ import annotations

import mimetypes
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Mapping
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.concurrency import run_in_threadpool

from courserag.api.dependencies import AppDependencies, build_dependencies
from courserag.api.schemas import (
    AiConfigRequest,
    AiConfigResponse,
    ChatMessageResponse,
    ChatRequest,
    ChatResponse,
    ClearIndexResponse,
    CourseCreateRequest,
    CourseDocumentRequest,
    CourseDocumentResponse,
    CourseResponse,
    ExamScoreRequest,
    ExamScoreResponse,
    IngestionResponse,
    RagDocumentResponse,
    RagDocumentUrlRequest,
)
from courserag.config import Settings, get_settings
from courserag.errors import (
    AuthorizationError,
    ConfigurationError,
    CourseRAGError,
    ExtractionError,
    IngestionError,
    NotFoundError,
    ProviderError,
    VectorStoreError,
)
from courserag.ingestion import DocumentIngestionPipeline
from courserag.metrics.observability import configure_logging, correlation_scope, get_logger
from courserag.models import Principal
from courserag.services import ChatOrchestrator, ExamQuestion, calculate_exam_score
from courserag.storage import Repositories
from courserag.storage.tables import Course

ERROR_STATUS: Mapping[type[CourseRAGError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ExtractionError: 422,
    IngestionError: 422,
    ConfigurationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ProviderError: status.HTTP_502_BAD_GATEWAY,
    VectorStoreError: status.HTTP_502_BAD_GATEWAY,
}


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or build_dependencies(settings)

    configure_logging(settings.log_level)
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        deps.database.create_all()
        logger.info("app.startup", environment=settings.environment)
        try:
            yield
        finally:
            deps.close()
            logger.info("app.shutdown")

    app = FastAPI(title="courserag API", version="0.1.0", lifespan=lifespan)
    app.state.dependencies = deps

    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        with correlation_scope(correlation_id):
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    def get_principal(request: Request, _auth: None = Depends(require_api_key)) -> Principal:
        raw_user_id = request.headers.get("X-User-Id")
        if not raw_user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
        try:
            user_id = int(raw_user_id)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user identity") from None
        role = request.headers.get("X-User-Role", "user").strip().lower()
        if role not in ("user", "admin"):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role: {role}")
        return Principal(user_id=user_id, role=role)  # type: ignore[arg-type]

    def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
        if not principal.is_admin:
            raise AuthorizationError("Administrator role required")
        return principal

    @app.exception_handler(CourseRAGError)
    async def handle_domain_error(request: Request, exc: CourseRAGError) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        logger.error(
            "request.error",
            correlation_id=correlation_id,
            error_type=type(exc).__name__,
            status_code=status_code,
            detail=str(exc),
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "correlation_id": correlation_id})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", uuid4().hex)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_repositories(dep: AppDependencies = Depends(get_dependencies)) -> Repositories:
        return dep.repositories

    def get_pipeline(dep: AppDependencies = Depends(get_dependencies)) -> DocumentIngestionPipeline:
        return dep.pipeline

    def get_orchestrator(dep: AppDependencies = Depends(get_dependencies)) -> ChatOrchestrator:
        return dep.orchestrator

    def require_course(course_id: int, repos: Repositories) -> Course:
        course = repos.courses.get(course_id)
        if course is None:
            raise NotFoundError(f"Course {course_id} not found")
        return course

    # Courses

    @app.post("/courses", response_model=CourseResponse, status_code=status.HTTP_201_CREATED)
    def create_course(
        payload: CourseCreateRequest,
        principal: Principal = Depends(require_admin),
        repos: Repositories = Depends(get_repositories),
    ) -> Course:
        return repos.courses.create(
            title=payload.title,
            instructor_id=principal.user_id,
            description=payload.description,
            video_url=payload.video_url,
            video_transcript=payload.video_transcript,
            is_published=payload.is_published,
        )

    @app.get("/courses/{course_id}", response_model=CourseResponse)
    def get_course(
        course_id: int,
        _principal: Principal = Depends(get_principal),
        repos: Repositories = Depends(get_repositories),
    ) -> Course:
        return require_course(course_id, repos)

    @app.post(
        "/courses/{course_id}/documents",
        response_model=CourseDocumentResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def add_course_document(
        course_id: int,
        payload: CourseDocumentRequest,
        _admin: Principal = Depends(require_admin),
        repos: Repositories = Depends(get_repositories),
    ):
        require_course(course_id, repos)
        return repos.courses.add_document(
            course_id,
            title=payload.title,
            document_url=payload.document_url,
            mime_type=payload.mime_type,
        )

    @app.get("/courses/{course_id}/documents", response_model=List[CourseDocumentResponse])
    def list_course_documents(
        course_id: int,
        _principal: Principal = Depends(get_principal),
        repos: Repositories = Depends(get_repositories),
    ):
        require_course(course_id, repos)
        return repos.courses.list_documents(course_id)

    # Retrieval index

    @app.post(
        "/courses/{course_id}/rag-documents",
        response_model=IngestionResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def upload_rag_document(
        course_id: int,
        file: UploadFile = File(...),
        title: str | None = Form(default=None),
        _admin: Principal = Depends(require_admin),
        dep: AppDependencies = Depends(get_dependencies),
    ) -> IngestionResponse:
        await run_in_threadpool(require_course, course_id, dep.repositories)
        filename = Path(file.filename or f"upload-{uuid4().hex}").name
        mime_type = file.content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        allowed = settings.allowed_upload_mime_tuple
        if allowed and mime_type not in allowed:
            await file.close()
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"Unsupported file type: {mime_type}",
            )

        limit = settings.max_upload_size_mb * 1024 * 1024
        data = bytearray()
        while True:
            block = await file.read(1024 * 1024)
            if not block:
                break
            data.extend(block)
            if len(data) > limit:
                await file.close()
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File too large (>{settings.max_upload_size_mb}MB): {filename}",
                )
        await file.close()
        if not data:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"File is empty: {filename}")

        key = f"courses/{course_id}/{uuid4().hex}-{filename}"
        file_url = await run_in_threadpool(dep.blobs.put, key, bytes(data), mime_type)
        result = await run_in_threadpool(
            dep.pipeline.ingest,
            course_id,
            (title or "").strip() or filename,
            file_url,
            mime_type,
        )
        return IngestionResponse(document_id=result.document_id, chunks_processed=result.chunks_processed)

    @app.post(
        "/courses/{course_id}/rag-documents/url",
        response_model=IngestionResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def ingest_rag_document_url(
        course_id: int,
        payload: RagDocumentUrlRequest,
        _admin: Principal = Depends(require_admin),
        repos: Repositories = Depends(get_repositories),
        pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    ) -> IngestionResponse:
        require_course(course_id, repos)
        result = pipeline.ingest(course_id, payload.title, payload.file_url, payload.mime_type)
        return IngestionResponse(document_id=result.document_id, chunks_processed=result.chunks_processed)

    @app.get("/courses/{course_id}/rag-documents", response_model=List[RagDocumentResponse])
    def list_rag_documents(
        course_id: int,
        _admin: Principal = Depends(require_admin),
        repos: Repositories = Depends(get_repositories),
    ):
        return repos.rag_documents.list_by_course(course_id)

    @app.delete("/courses/{course_id}/rag-documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_rag_document(
        course_id: int,
        document_id: str,
        _admin: Principal = Depends(require_admin),
        pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    ) -> Response:
        pipeline.delete_document(document_id, course_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.delete("/courses/{course_id}/rag-index", response_model=ClearIndexResponse)
    def clear_rag_index(
        course_id: int,
        _admin: Principal = Depends(require_admin),
        pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    ) -> ClearIndexResponse:
        removed = pipeline.clear_course(course_id)
        return ClearIndexResponse(course_id=course_id, documents_removed=removed)

    # AI configuration

    @app.get("/courses/{course_id}/ai-config", response_model=AiConfigResponse)
    def get_ai_config(
        course_id: int,
        _principal: Principal = Depends(get_principal),
        repos: Repositories = Depends(get_repositories),
    ):
        config = repos.ai_configs.get(course_id)
        if config is None:
            raise NotFoundError(f"No AI configuration for course {course_id}")
        return config

    @app.put("/courses/{course_id}/ai-config", response_model=AiConfigResponse)
    def set_ai_config(
        course_id: int,
        payload: AiConfigRequest,
        _admin: Principal = Depends(require_admin),
        repos: Repositories = Depends(get_repositories),
    ):
        require_course(course_id, repos)
        return repos.ai_configs.upsert(
            course_id,
            system_prompt=payload.system_prompt,
            temperature=payload.temperature,
            max_tokens=payload.max_tokens,
        )

    # Chat

    @app.post("/courses/{course_id}/chat", response_model=ChatResponse)
    def chat_turn(
        course_id: int,
        payload: ChatRequest,
        principal: Principal = Depends(get_principal),
        orchestrator: ChatOrchestrator = Depends(get_orchestrator),
    ) -> ChatResponse:
        reply = orchestrator.respond(principal.user_id, course_id, payload.message)
        return ChatResponse(response=reply)

    @app.get("/courses/{course_id}/chat", response_model=List[ChatMessageResponse])
    def chat_history(
        course_id: int,
        principal: Principal = Depends(get_principal),
        orchestrator: ChatOrchestrator = Depends(get_orchestrator),
    ):
        return orchestrator.history(principal.user_id, course_id)

    # Exams

    @app.post("/exams/score", response_model=ExamScoreResponse)
    def score_exam(
        payload: ExamScoreRequest,
        _principal: Principal = Depends(get_principal),
    ) -> ExamScoreResponse:
        questions = [ExamQuestion(id=q.id, correct_answer=q.correct_answer) for q in payload.questions]
        return ExamScoreResponse(score=calculate_exam_score(questions, payload.answers))

    # Operations

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from courserag import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    def readiness(dep: AppDependencies = Depends(get_dependencies)) -> dict[str, str]:
        try:
            dep.database.ping()
            dep.store.ping()
        except Exception as exc:
            logger.warning("readiness.failed", detail=str(exc))
            return {"status": "error", "detail": str(exc)}
        return {"status": "ready"}

    return app


app = create_app()
