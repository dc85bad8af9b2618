"""
Capability boundaries consumed by the ingestion and query pipelines.

Each external collaborator (text extraction, embeddings, vector search,
chat completion, object storage, job delivery) is reached only through one
of these narrow interfaces so the pipelines never depend on a concrete
provider. Implementations must convert unexpected upstream response shapes
into :class:`~lexchat.errors.CapabilityError`.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from .schemas import IngestionMessage


@dataclass
class VectorRecord:
    """A vector keyed by chunk id, with the metadata used for filtering."""
    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class Extractor(ABC):
    """Turns stored document bytes into raw text."""

    @abstractmethod
    async def extract_text(self, data: bytes, file_type: str) -> str:
        """
        Args:
            data: Raw file bytes
            file_type: Lower-case extension without the dot ("pdf", "docx", ...)

        Raises:
            CapabilityError: If the document cannot be read
        """


class UrlFetcher(ABC):
    """Fetches a web page and reduces it to plain text."""

    @abstractmethod
    async def fetch_text(self, url: str) -> str:
        """Raises ExtractionError on non-2xx responses or transport errors."""


class Embedder(ABC):
    """Turns a batch of texts into fixed-length vectors."""

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Returns one vector per input text, in input order.

        Raises:
            EmbedderUnavailableError: If no embedding backend is configured
            CapabilityError: If the backend fails or returns a bad shape
        """

    async def warm_up(self) -> None:
        """Load models or open connections ahead of the first request."""


class VectorIndex(ABC):

    @abstractmethod
    async def upsert(self, vectors: List[VectorRecord]) -> None:
        ...

    @abstractmethod
    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        return_metadata: bool = True,
    ) -> List[VectorMatch]:
        """Nearest neighbours of ``vector`` restricted to ``filter`` (equality on metadata)."""

    @abstractmethod
    async def delete_by_ids(self, ids: List[str]) -> None:
        ...


class CompletionService(ABC):
    """Streaming chat-completion provider."""

    @abstractmethod
    def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """Yield incremental text fragments of the assistant reply."""


class ObjectStorage(ABC):

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None if the key does not exist."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class JobQueue(ABC):
    """At-least-once delivery of ingestion messages to the worker pool."""

    @abstractmethod
    def send(self, message: IngestionMessage) -> None:
        ...
