"""Shared pytest fixtures: an in-memory database and fake capabilities."""

from __future__ import annotations

import hashlib
import math
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from lexchat.context import PipelineContext, get_context
from lexchat.errors import CapabilityError, EmbedderUnavailableError, ExtractionError
from lexchat.interfaces import (
    CompletionService,
    Embedder,
    Extractor,
    JobQueue,
    UrlFetcher,
    VectorIndex,
    VectorMatch,
    VectorRecord,
)
from lexchat.models import Base, RELATIONAL_TABLES
from lexchat.schemas import IngestionMessage
from lexchat.services.conversation_service import ChatStore
from lexchat.services.document_service import ChunkStore, DocumentStore, JobStore
from lexchat.storage import LocalFileStorage

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# ---------------------------------------------------------------------------
# Fake capabilities
# ---------------------------------------------------------------------------


class FakeEmbedder(Embedder):
    """Deterministic hash vectors; ``available=False`` simulates a missing backend."""

    def __init__(self, dim: int = 8, available: bool = True):
        self.dim = dim
        self.available = available
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not self.available:
            raise EmbedderUnavailableError("embedder offline")
        self.calls.append(list(texts))
        vectors = []
        for t in texts:
            digest = hashlib.sha256(t.encode("utf-8")).digest()
            vectors.append([b / 255.0 + 0.01 for b in digest[: self.dim]])
        return vectors


class InMemoryVectorIndex(VectorIndex):

    def __init__(self):
        self.records: Dict[str, VectorRecord] = {}
        self.queries: List[Dict[str, Any]] = []
        self.fail_queries = False

    async def upsert(self, vectors: List[VectorRecord]) -> None:
        for v in vectors:
            self.records[v.id] = v

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        self.queries.append({"top_k": top_k, "filter": dict(filter or {})})
        if self.fail_queries:
            raise CapabilityError("index unreachable")

        def cosine(a, b):
            dot = sum(x * y for x, y in zip(a, b))
            norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
            return dot / norm if norm else 0.0

        matches = [
            VectorMatch(id=r.id, score=cosine(vector, r.values), metadata=dict(r.metadata))
            for r in self.records.values()
            if all(r.metadata.get(k) == v for k, v in (filter or {}).items())
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def delete_by_ids(self, ids: List[str]) -> None:
        for i in ids:
            self.records.pop(i, None)


class ScriptedCompletion(CompletionService):
    """Replays fixed deltas, optionally failing after ``fail_after`` of them."""

    def __init__(self, deltas: Optional[List[str]] = None, fail_after: Optional[int] = None):
        self.deltas = deltas if deltas is not None else ["Hello", " there."]
        self.fail_after = fail_after
        self.requests: List[List[Dict[str, str]]] = []

    async def stream_chat(self, messages, temperature, max_tokens) -> AsyncIterator[str]:
        self.requests.append(messages)
        for i, delta in enumerate(self.deltas):
            if self.fail_after is not None and i >= self.fail_after:
                raise CapabilityError("upstream stream broke")
            yield delta
        if self.fail_after is not None and self.fail_after >= len(self.deltas):
            raise CapabilityError("upstream stream broke")


class FakeExtractor(Extractor):

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls: List[str] = []

    async def extract_text(self, data: bytes, file_type: str) -> str:
        self.calls.append(file_type)
        if self.error:
            raise self.error
        return self.text


class FakeUrlFetcher(UrlFetcher):

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages = pages or {}

    async def fetch_text(self, url: str) -> str:
        if url not in self.pages:
            raise ExtractionError("Failed to fetch URL: 404")
        return self.pages[url]


class ListQueue(JobQueue):

    def __init__(self):
        self.messages: List[IngestionMessage] = []

    def send(self, message: IngestionMessage) -> None:
        self.messages.append(message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    """SQLite shared across threads, so TestClient requests see the same data."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng, tables=RELATIONAL_TABLES)
    yield eng
    eng.dispose()


@pytest.fixture
def ctx(engine, tmp_path) -> PipelineContext:
    return PipelineContext(
        engine=engine,
        chats=ChatStore(engine),
        documents=DocumentStore(engine),
        jobs=JobStore(engine),
        chunks=ChunkStore(engine),
        storage=LocalFileStorage(str(tmp_path / "uploads")),
        extractor=FakeExtractor(),
        url_fetcher=FakeUrlFetcher(),
        embedder=FakeEmbedder(),
        vector_index=InMemoryVectorIndex(),
        completion=ScriptedCompletion(),
        queue=ListQueue(),
    )


@pytest.fixture
def chat(ctx) -> Dict[str, Any]:
    return ctx.chats.create_chat(USER_ID, "Lease review")


@pytest.fixture
def client(ctx):
    from lexchat.main import app

    app.dependency_overrides[get_context] = lambda: ctx
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"X-User-Id": USER_ID}
