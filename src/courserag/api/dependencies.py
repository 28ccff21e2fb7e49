"""Construction and teardown of the clients shared by the API and CLI."""

from __future__ import annotations

from dataclasses import dataclass

from courserag.config import Settings
from courserag.embeddings import ChromaVectorStore, EmbeddingClient, EmbeddingConfig, HashEmbeddingClient, OpenAIEmbeddingClient
from courserag.ingestion import DocumentIngestionPipeline, HttpTextExtractor, IngestionConfig
from courserag.retrieval import CourseRetriever, RetrievalConfig
from courserag.services import (
    ChatConfig,
    ChatModel,
    ChatOrchestrator,
    GenerationConfig,
    OpenAIChatModel,
    PromptBuilder,
    PromptBuilderConfig,
    TemplateChatModel,
)
from courserag.storage import BlobStorage, Database, LocalBlobStorage, Repositories


@dataclass(frozen=True)
class AppDependencies:
    database: Database
    repositories: Repositories
    store: ChromaVectorStore
    embedder: EmbeddingClient
    extractor: HttpTextExtractor
    chat_model: ChatModel
    blobs: BlobStorage
    pipeline: DocumentIngestionPipeline
    orchestrator: ChatOrchestrator

    def close(self) -> None:
        for resource in (self.extractor, self.embedder, self.chat_model, self.store):
            close = getattr(resource, "close", None)
            if callable(close):
                close()
        self.database.dispose()


def build_dependencies(settings: Settings) -> AppDependencies:
    database = Database(settings.resolved_database_url, echo=settings.database_echo)
    repositories = Repositories(database)

    embedding_config = EmbeddingConfig(
        model=settings.embedding_model,
        dim=settings.embedding_dim,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout_seconds,
        max_retries=settings.openai_max_retries,
    )
    embedder: EmbeddingClient
    if settings.embedding_provider == "hash":
        embedder = HashEmbeddingClient(embedding_config)
    else:
        embedder = OpenAIEmbeddingClient(embedding_config)

    chat_model: ChatModel
    if settings.chat_provider == "template":
        chat_model = TemplateChatModel()
    else:
        chat_model = OpenAIChatModel(
            GenerationConfig(
                model=settings.chat_model,
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.request_timeout_seconds,
                max_retries=settings.openai_max_retries,
            ),
        )

    store = ChromaVectorStore(
        host=settings.chroma_host,
        port=settings.chroma_port,
        ssl=settings.chroma_ssl,
        persist_directory=None if settings.chroma_host else settings.chroma_persist_dir,
        dimension=settings.embedding_dim,
    )
    extractor = HttpTextExtractor(timeout=settings.request_timeout_seconds)
    pipeline = DocumentIngestionPipeline(
        extractor,
        embedder,
        store,
        repositories.rag_documents,
        IngestionConfig(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            embedding_workers=settings.embedding_workers,
            collection_prefix=settings.collection_prefix,
        ),
    )
    retriever = CourseRetriever(
        embedder,
        store,
        RetrievalConfig(
            search_limit=settings.retrieval_search_limit,
            context_chunks=settings.retrieval_context_chunks,
            collection_prefix=settings.collection_prefix,
        ),
    )
    orchestrator = ChatOrchestrator(
        courses=repositories.courses,
        ai_configs=repositories.ai_configs,
        messages=repositories.chat_messages,
        retriever=retriever,
        model=chat_model,
        prompt_builder=PromptBuilder(
            PromptBuilderConfig(
                max_context_chars=settings.max_context_chars,
                max_document_titles=settings.max_document_titles,
            ),
        ),
        config=ChatConfig(default_max_tokens=settings.default_max_tokens),
    )
    return AppDependencies(
        database=database,
        repositories=repositories,
        store=store,
        embedder=embedder,
        extractor=extractor,
        chat_model=chat_model,
        blobs=LocalBlobStorage(settings.resolved_blob_dir),
        pipeline=pipeline,
        orchestrator=orchestrator,
    )
