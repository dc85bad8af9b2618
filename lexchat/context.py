"""
Dependency-injection context shared by routes, pipelines and the worker.

Every pipeline stage receives its collaborators through a PipelineContext
instead of reaching for module globals.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from . import config
from .interfaces import (
    CompletionService,
    Embedder,
    Extractor,
    JobQueue,
    ObjectStorage,
    UrlFetcher,
    VectorIndex,
)
from .services.conversation_service import ChatStore
from .services.document_service import ChunkStore, DocumentStore, JobStore


@dataclass
class PipelineContext:
    engine: Engine
    chats: ChatStore
    documents: DocumentStore
    jobs: JobStore
    chunks: ChunkStore
    storage: ObjectStorage
    extractor: Extractor
    url_fetcher: UrlFetcher
    embedder: Embedder
    vector_index: VectorIndex
    completion: CompletionService
    queue: JobQueue


def build_context() -> PipelineContext:
    """Wire the production capabilities from configuration."""
    from .db import engine
    from .retrieval import PgVectorIndex
    from .services.model_service import build_completion_service, build_embedder, build_extractor
    from .storage import LocalFileStorage
    from .text_extraction import HttpUrlFetcher
    from .worker import CeleryJobQueue

    return PipelineContext(
        engine=engine,
        chats=ChatStore(engine),
        documents=DocumentStore(engine),
        jobs=JobStore(engine),
        chunks=ChunkStore(engine),
        storage=LocalFileStorage(config.STORAGE_DIR),
        extractor=build_extractor(config.EXTRACTOR),
        url_fetcher=HttpUrlFetcher(config.URL_FETCH_TIMEOUT_SECONDS),
        embedder=build_embedder(config.EMBED_PROVIDER),
        vector_index=PgVectorIndex(engine),
        completion=build_completion_service(config.COMPLETION_MODEL),
        queue=CeleryJobQueue(),
    )


_context: Optional[PipelineContext] = None


def get_context() -> PipelineContext:
    """FastAPI dependency / worker accessor; built once per process."""
    global _context
    if _context is None:
        _context = build_context()
    return _context
